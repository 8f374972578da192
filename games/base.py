"""
Base game engine and the data model every concrete game extends.
The engine owns the authoritative state; callers only ever see deep copies.
"""
import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .context import GameContext
from .errors import (
    ActionExecutionError,
    GameError,
    IllegalStateError,
    InvalidActionError,
    InvalidConfigurationError,
)

logger = logging.getLogger("agentarena.engine")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Player:
    id: str
    name: str
    is_ai: bool = False
    is_active: bool = True
    score: float = 0
    avatar: str | None = None


@dataclass
class GameState:
    game_id: str
    phase: str = "waiting"
    start_time: datetime = field(default_factory=_utcnow)
    end_time: datetime | None = None
    current_turn: str | None = None
    turn_count: int = 0
    players: list[Player] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def get_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None


@dataclass(frozen=True)
class Action:
    """An immutable player action. Game-specific fields live in payload."""
    player_id: str
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def get(self, key: str, default=None):
        return self.payload.get(key, default)

    def with_payload(self, **fields) -> "Action":
        return replace(self, payload={**self.payload, **fields})

    def to_dict(self) -> dict:
        return {"type": self.type, "player_id": self.player_id, **self.payload}


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def invalid(cls, *errors: str) -> "ValidationResult":
        return cls(is_valid=False, errors=list(errors))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


@dataclass(frozen=True)
class GameDefinition:
    min_players: int
    max_players: int


def snapshot_state(state: GameState) -> GameState:
    """Deep, independent copy of a game state. Used for get_state() and rollback."""
    return copy.deepcopy(state)


def state_to_dict(state: GameState) -> dict:
    return asdict(state)


class BaseGameEngine(ABC):
    """
    Template for a single game's state machine.

    Subclasses provide the rules through the abstract hooks; the base class
    owns validation order, turn accounting, rollback and lifecycle events.
    """

    def __init__(self, context: GameContext):
        self.context = context
        self.state: GameState | None = None

    @property
    def initialized(self) -> bool:
        return self.state is not None

    def initialize(self, players: list[Player]):
        if self.state is not None:
            raise IllegalStateError("Game already initialized")

        definition = self.get_game_definition()
        if not definition.min_players <= len(players) <= definition.max_players:
            raise InvalidConfigurationError(
                f"Game requires {definition.min_players}-{definition.max_players} players, got {len(players)}",
                {"player_count": len(players)},
            )

        self.state = self.create_initial_state(players)
        logger.info(f"Game {self.context.game_id} initialized with {len(players)} players")
        self.context.emit("game:initialized", {"state": self.get_state()})

    def get_state(self) -> GameState:
        if self.state is None:
            raise IllegalStateError("Game not initialized")
        return snapshot_state(self.state)

    def get_player(self, player_id: str) -> Player | None:
        if self.state is None:
            return None
        return self.state.get_player(player_id)

    def validate_action(self, action: Action) -> ValidationResult:
        if self.state is None:
            return ValidationResult.invalid("Game not initialized")

        errors = []
        if not action.player_id:
            errors.append("Action must have a player id")
        if not action.type:
            errors.append("Action must have a type")

        player = self.state.get_player(action.player_id)
        if player is None:
            errors.append(f"Player {action.player_id} not found")
        elif not player.is_active:
            errors.append(f"Player {action.player_id} is not active")

        if self.state.current_turn and self.state.current_turn != action.player_id:
            errors.append(f"Not {action.player_id}'s turn")

        base = ValidationResult(is_valid=not errors, errors=errors)
        return base.merge(self.validate_game_specific_action(action))

    def execute_action(self, action: Action):
        if self.state is None:
            raise IllegalStateError("Game not initialized")
        if self.is_game_over():
            raise IllegalStateError("Game is already over")

        validation = self.validate_action(action)
        if not validation.is_valid:
            raise InvalidActionError(validation.errors, validation.warnings, {"action": action.to_dict()})

        previous = snapshot_state(self.state)
        try:
            self.apply_action(action)
            self.state.turn_count += 1

            self.context.emit("action:executed", {
                "action": action,
                "previous_state": previous,
                "new_state": self.get_state(),
            }, player_id=action.player_id)

            if self.is_game_over():
                self._handle_game_end()
            else:
                self.advance_turn()
        except GameError:
            self.state = previous
            raise
        except Exception as e:
            self.state = previous
            logger.error(f"Action {action.type} by {action.player_id} failed, state rolled back: {e}")
            raise ActionExecutionError(
                f"Failed to apply {action.type}: {e}", {"action": action.to_dict()}
            ) from e

    def advance_turn(self):
        """Hand the turn to the next active player in seat order, or to nobody."""
        state = self.state
        if not state.current_turn:
            return

        players = state.players
        current = next((i for i, p in enumerate(players) if p.id == state.current_turn), -1)
        # the current player is checked last, after a full lap
        for step in range(1, len(players) + 1):
            candidate = players[(current + step) % len(players)]
            if candidate.is_active:
                state.current_turn = candidate.id
                break
        else:
            state.current_turn = None

        self.context.emit("turn:changed", {
            "current_turn": state.current_turn,
            "turn_count": state.turn_count,
        }, player_id=state.current_turn)

    def _handle_game_end(self):
        self.state.end_time = self.context.clock.now()
        winners = self.get_winners()
        duration = (self.state.end_time - self.state.start_time).total_seconds()
        logger.info(f"Game {self.state.game_id} over after {self.state.turn_count} turns, winners={winners}")
        self.context.emit("game:ended", {
            "winners": winners,
            "final_state": self.get_state(),
            "duration": duration,
        })

    # ====== Hooks ======

    @abstractmethod
    def get_game_definition(self) -> GameDefinition:
        pass

    @abstractmethod
    def create_initial_state(self, players: list[Player]) -> GameState:
        pass

    @abstractmethod
    def apply_action(self, action: Action):
        pass

    @abstractmethod
    def validate_game_specific_action(self, action: Action) -> ValidationResult:
        pass

    @abstractmethod
    def get_valid_actions(self, player_id: str) -> list[Action]:
        pass

    @abstractmethod
    def is_game_over(self) -> bool:
        pass

    @abstractmethod
    def get_winners(self) -> list[str]:
        pass
