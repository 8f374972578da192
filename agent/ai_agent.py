"""
AI players. Every agent answers make_decision(state, valid_actions) with a
Decision; a model-backed agent that cannot get a usable answer degrades to a
deterministic personality-driven choice instead of failing the turn.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from games.base import Action, GameState
from games.errors import AITurnError, InvalidConfigurationError, ResponseParseError
from .config import ModelConfig
from .data_collector import BaseGameDataCollector, SimpleGameDataCollector
from .decision_service import DecisionRequest, DecisionResponse, DecisionService
from .prompts import DEFAULT_TEMPLATE, PERSONALITY_STYLES, PromptTemplate, to_json
from .response_parser import match_action, parse_ai_response

logger = logging.getLogger("agentarena.agent")


@dataclass(frozen=True)
class Personality:
    aggressiveness: float = 0.5
    risk_tolerance: float = 0.5
    bluffing_tendency: float = 0.5
    adaptability: float = 0.5

    def __post_init__(self):
        for name in ("aggressiveness", "risk_tolerance", "bluffing_tendency", "adaptability"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise InvalidConfigurationError(f"Personality trait {name} must be in [0, 1], got {value}")

    @classmethod
    def preset(cls, name: str) -> "Personality":
        if name not in PERSONALITY_PRESETS:
            raise InvalidConfigurationError(f"Unknown personality preset: {name}")
        return PERSONALITY_PRESETS[name]

    @property
    def style(self) -> str:
        if self.adaptability >= 0.7:
            return "adaptive"
        if self.aggressiveness >= 0.7:
            return "aggressive"
        if self.aggressiveness <= 0.3 and self.risk_tolerance <= 0.4:
            return "conservative"
        return "balanced"

    def describe(self) -> str:
        return (
            f"{PERSONALITY_STYLES[self.style]} "
            f"(aggressiveness {self.aggressiveness:.1f}, risk tolerance {self.risk_tolerance:.1f}, "
            f"bluffing {self.bluffing_tendency:.1f}, adaptability {self.adaptability:.1f})"
        )


PERSONALITY_PRESETS = {
    "aggressive": Personality(aggressiveness=0.9, risk_tolerance=0.8, bluffing_tendency=0.6, adaptability=0.3),
    "conservative": Personality(aggressiveness=0.2, risk_tolerance=0.2, bluffing_tendency=0.1, adaptability=0.4),
    "balanced": Personality(),
    "adaptive": Personality(aggressiveness=0.5, risk_tolerance=0.5, bluffing_tendency=0.4, adaptability=0.9),
}


@dataclass
class Decision:
    action: Action
    confidence: float = 0.5
    reasoning: str = ""
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        self.confidence = min(1.0, max(0.0, float(self.confidence)))


def _as_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class BaseAIAgent(ABC):
    """
    Template for an AI player.

    make_decision runs collect -> prompt -> request -> parse/match and falls
    back to make_fallback_decision when any step fails.
    """

    # never picked by the fallback while anything else is available
    fallback_excluded_types: tuple[str, ...] = ("timeout",)

    def __init__(self, player_id: str, name: str, personality: Personality | None = None):
        self.player_id = player_id
        self.name = name
        self.personality = personality or Personality()
        self.decision_log: list[dict] = []

    async def make_decision(self, state: GameState, valid_actions: list[Action]) -> Decision:
        if not valid_actions:
            raise AITurnError(self.player_id, f"{self.name} has no valid actions")

        try:
            data = self.collect_game_data(state)
            system_prompt = self.build_system_prompt(data)
            user_prompt = self.build_user_prompt(data, valid_actions)
            response = await self.make_ai_request(system_prompt, user_prompt)
            decision = self.parse_decision(response, valid_actions)
        except Exception as e:
            logger.warning(f"{self.name} could not get a model decision, falling back: {e}")
            decision = self.make_fallback_decision(state, valid_actions, reason=str(e))

        self.decision_log.append({
            "turn": state.turn_count,
            "action": decision.action.to_dict(),
            "confidence": decision.confidence,
            "reasoning": decision.reasoning,
            "source": decision.metadata.get("source"),
        })
        return decision

    def parse_decision(self, response: DecisionResponse, valid_actions: list[Action]) -> Decision:
        parsed = parse_ai_response(response.content)
        action = match_action(parsed, valid_actions)
        if action is None:
            raise ResponseParseError(f"Model chose an invalid action: {parsed.get('action')!r}")
        return Decision(
            action=action,
            confidence=_as_float(parsed.get("confidence"), 0.5),
            reasoning=str(parsed.get("reasoning", "")),
            metadata={"source": "model", "model": response.model, "cached": response.cached},
        )

    def fallback_candidates(self, valid_actions: list[Action]) -> list[Action]:
        # templates with an unfilled free-form field (a guess) cannot be played as-is
        complete = [a for a in valid_actions if all(v is not None for v in a.payload.values())]
        preferred = [a for a in complete if a.type not in self.fallback_excluded_types]
        return preferred or complete or list(valid_actions)

    def make_fallback_decision(self, state: GameState, valid_actions: list[Action], reason: str = "") -> Decision:
        candidates = self.fallback_candidates(valid_actions)
        p = self.personality
        index = min(int((p.risk_tolerance + p.aggressiveness) / 2 * len(candidates)), len(candidates) - 1)
        return Decision(
            action=candidates[index],
            confidence=0.3,
            reasoning=f"Personality fallback ({p.style})" + (f": {reason}" if reason else ""),
            metadata={"source": "fallback"},
        )

    def get_decision_log(self) -> list[dict]:
        return self.decision_log.copy()

    @abstractmethod
    def collect_game_data(self, state: GameState) -> dict:
        pass

    @abstractmethod
    def build_system_prompt(self, data: dict) -> str:
        pass

    @abstractmethod
    def build_user_prompt(self, data: dict, valid_actions: list[Action]) -> str:
        pass

    @abstractmethod
    async def make_ai_request(self, system_prompt: str, user_prompt: str) -> DecisionResponse:
        pass


class UniversalAIAgent(BaseAIAgent):
    """Model-backed agent driven by a prompt template and a data collector."""

    def __init__(
        self,
        player_id: str,
        name: str,
        model: ModelConfig,
        service: DecisionService,
        personality: Personality | None = None,
        template: PromptTemplate = DEFAULT_TEMPLATE,
        collector: BaseGameDataCollector | None = None,
    ):
        super().__init__(player_id, name, personality)
        self.model = model
        self.service = service
        self.template = template
        self.collector = collector or SimpleGameDataCollector()

    def collect_game_data(self, state: GameState) -> dict:
        return self.collector.collect(state, self.player_id)

    def _values(self, data: dict) -> dict:
        return {
            "player_id": self.player_id,
            "player_name": self.name,
            "model_name": self.model.name,
            "personality": self.personality.describe(),
            "game_data": to_json(data),
            **{k: (v if isinstance(v, str) else to_json(v)) for k, v in data.get("game_specific", {}).items()},
        }

    def build_system_prompt(self, data: dict) -> str:
        return self.template.render_system(**self._values(data))

    def build_user_prompt(self, data: dict, valid_actions: list[Action]) -> str:
        actions = [{k: v for k, v in a.to_dict().items() if k != "player_id"} for a in valid_actions]
        return self.template.render_user(**self._values(data), valid_actions=to_json(actions))

    async def make_ai_request(self, system_prompt: str, user_prompt: str) -> DecisionResponse:
        # unset sampling values fall back to the request defaults
        sampling = {"temperature": self.model.temperature, "max_tokens": self.model.max_tokens}
        return await self.service.request(DecisionRequest(
            model=self.model.model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            response_format=self.template.response_format,
            **{k: v for k, v in sampling.items() if v is not None},
        ))


class HeuristicAIAgent(BaseAIAgent):
    """Agent that never calls a model: every decision is the personality fallback."""

    async def make_decision(self, state: GameState, valid_actions: list[Action]) -> Decision:
        if not valid_actions:
            raise AITurnError(self.player_id, f"{self.name} has no valid actions")
        decision = self.make_fallback_decision(state, valid_actions)
        decision.metadata["source"] = "heuristic"
        self.decision_log.append({
            "turn": state.turn_count,
            "action": decision.action.to_dict(),
            "confidence": decision.confidence,
            "reasoning": decision.reasoning,
            "source": "heuristic",
        })
        return decision

    def collect_game_data(self, state: GameState) -> dict:
        return {}

    def build_system_prompt(self, data: dict) -> str:
        return ""

    def build_user_prompt(self, data: dict, valid_actions: list[Action]) -> str:
        return ""

    async def make_ai_request(self, system_prompt: str, user_prompt: str) -> DecisionResponse:
        raise NotImplementedError("Heuristic agents do not call a model")
