from .config import Config, ModelConfig
from .ai_agent import BaseAIAgent, Decision, HeuristicAIAgent, Personality, UniversalAIAgent
from .decision_service import AnthropicDecisionService, DecisionRequest, DecisionResponse, DecisionService
from .factory import AIAgentFactory, AIAgentFactoryConfig, Connect4AIAgentFactory, ReverseHangmanAIAgentFactory
