"""
Agent factories: turn a PlayerConfig into an AI agent for one game type.
Models are looked up in the registry handed to the factory, never globally.
"""
import logging
from dataclasses import dataclass, field

from games.base import Action, GameState
from games.connect4 import find_threats
from games.errors import InvalidConfigurationError
from .ai_agent import BaseAIAgent, Decision, HeuristicAIAgent, Personality, UniversalAIAgent
from .config import ModelConfig
from .data_collector import (
    BaseGameDataCollector,
    Connect4DataCollector,
    ReverseHangmanDataCollector,
    SimpleGameDataCollector,
)
from .decision_service import DecisionService
from .prompts import CONNECT4_TEMPLATE, DEFAULT_TEMPLATE, REVERSE_HANGMAN_TEMPLATE, PromptTemplate

logger = logging.getLogger("agentarena.agent")

HEURISTIC = "heuristic"


@dataclass
class AIAgentFactoryConfig:
    models: dict[str, ModelConfig]
    default_model: str
    decision_service: DecisionService | None = None
    prompt_templates: dict[str, PromptTemplate] = field(default_factory=dict)


def resolve_personality(value) -> Personality:
    """Accepts a Personality, a preset name, a dict of traits or None."""
    if value is None:
        return Personality()
    if isinstance(value, Personality):
        return value
    if isinstance(value, str):
        return Personality.preset(value)
    if isinstance(value, dict):
        return Personality(**value)
    raise InvalidConfigurationError(f"Unsupported personality: {value!r}")


class AIAgentFactory:
    game_type = "generic"
    template = DEFAULT_TEMPLATE
    agent_class = UniversalAIAgent
    heuristic_class = HeuristicAIAgent

    def __init__(self, config: AIAgentFactoryConfig):
        self.config = config

    def create_collector(self) -> BaseGameDataCollector:
        return SimpleGameDataCollector(game_type=self.game_type)

    def get_template(self) -> PromptTemplate:
        return self.config.prompt_templates.get(self.game_type, self.template)

    def create_agent(self, player_config) -> BaseAIAgent:
        personality = resolve_personality(player_config.personality)
        model_id = player_config.ai_model or self.config.default_model

        if model_id == HEURISTIC:
            return self.heuristic_class(player_config.id, player_config.name, personality)

        model = self.config.models.get(model_id)
        if model is None:
            raise InvalidConfigurationError(f"Unknown AI model: {model_id}", {"player_id": player_config.id})

        if self.config.decision_service is None:
            logger.warning(f"No decision service, {player_config.name} plays heuristically instead of {model.name}")
            return self.heuristic_class(player_config.id, player_config.name, personality)

        logger.info(f"Created {self.game_type} agent {player_config.name} ({model.name}, {personality.style})")
        return self.agent_class(
            player_config.id,
            player_config.name,
            model=model,
            service=self.config.decision_service,
            personality=personality,
            template=self.get_template(),
            collector=self.create_collector(),
        )


# ====== Connect-4 ======

class Connect4TacticsMixin:
    """Fallback that takes an immediate win, then blocks, before the personality pick."""

    def make_fallback_decision(self, state: GameState, valid_actions: list[Action], reason: str = "") -> Decision:
        me = state.get_player(self.player_id)
        board = getattr(state, "board", None)
        if me is not None and board is not None:
            threats = find_threats(board, me.player_number)
            for kind, confidence in (("win", 0.9), ("block", 0.7)):
                columns = {t["col"] for t in threats if t["type"] == kind}
                for action in valid_actions:
                    if action.type == "place" and action.get("column") in columns:
                        return Decision(
                            action=action,
                            confidence=confidence,
                            reasoning=f"Tactical {kind} in column {action.get('column')}",
                            metadata={"source": "fallback"},
                        )
        return super().make_fallback_decision(state, valid_actions, reason)


class Connect4AIAgent(Connect4TacticsMixin, UniversalAIAgent):
    pass


class Connect4HeuristicAgent(Connect4TacticsMixin, HeuristicAIAgent):
    pass


class Connect4AIAgentFactory(AIAgentFactory):
    game_type = "connect4"
    template = CONNECT4_TEMPLATE
    agent_class = Connect4AIAgent
    heuristic_class = Connect4HeuristicAgent

    def create_collector(self) -> BaseGameDataCollector:
        return Connect4DataCollector(include_history=True)


# ====== Reverse-Hangman ======

class ReverseHangmanAIAgentFactory(AIAgentFactory):
    game_type = "reverse-hangman"
    template = REVERSE_HANGMAN_TEMPLATE

    def create_collector(self) -> BaseGameDataCollector:
        return ReverseHangmanDataCollector()
