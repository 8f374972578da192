"""
Game registry: catalog of playable games and the one place that wires an
engine, scoring system, manager and agent factory together for a match.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from agent.config import Config, GAME_SPEEDS
from agent.decision_service import DecisionService
from agent.factory import AIAgentFactoryConfig, Connect4AIAgentFactory, ReverseHangmanAIAgentFactory
from games.base import BaseGameEngine
from games.connect4 import Connect4Config, Connect4GameEngine, Connect4GameManager, Connect4ScoringSystem
from games.context import Clock, GameContext
from games.errors import InvalidConfigurationError
from games.prompt_database import DIFFICULTIES, PromptDatabase
from games.reverse_hangman import (
    ReverseHangmanConfig,
    ReverseHangmanGameEngine,
    ReverseHangmanGameManager,
    ReverseHangmanScoringSystem,
)

from .manager import BaseGameManager, GameConfig, PlayerConfig
from .scoring import BaseScoringSystem

logger = logging.getLogger("agentarena.registry")


@dataclass
class GameBundle:
    context: GameContext
    engine: BaseGameEngine
    scoring: BaseScoringSystem
    manager: BaseGameManager
    agent_factory: Any = None


@dataclass
class GameDescriptor:
    id: str
    name: str
    description: str
    category: str
    min_players: int
    max_players: int
    factory: Callable[[GameContext, GameConfig], GameBundle]
    default_config: Callable[[], GameConfig]
    validate_config: Callable[[GameConfig], list[str]] | None = None
    tags: list[str] = field(default_factory=list)
    complexity: str = "medium"  # low | medium | high


class GameRegistry:
    def __init__(self):
        self.games: dict[str, GameDescriptor] = {}
        self._listeners: list[Callable[[str, GameDescriptor], None]] = []

    def register(self, descriptor: GameDescriptor):
        if descriptor.id in self.games:
            raise InvalidConfigurationError(f"Game {descriptor.id} is already registered")
        self.games[descriptor.id] = descriptor
        logger.info(f"Registered game {descriptor.id} ({descriptor.name})")
        self._notify("registered", descriptor)

    def unregister(self, game_id: str) -> bool:
        descriptor = self.games.pop(game_id, None)
        if descriptor is None:
            return False
        logger.info(f"Unregistered game {game_id}")
        self._notify("unregistered", descriptor)
        return True

    def get(self, game_id: str) -> GameDescriptor | None:
        return self.games.get(game_id)

    def get_all(self) -> list[GameDescriptor]:
        return list(self.games.values())

    def filter(
        self,
        category: str | None = None,
        player_count: int | None = None,
        tags: list[str] | None = None,
        complexity: str | None = None,
    ) -> list[GameDescriptor]:
        result = []
        for game in self.games.values():
            if category and game.category != category:
                continue
            if player_count is not None and not game.min_players <= player_count <= game.max_players:
                continue
            if tags and not set(tags) <= set(game.tags):
                continue
            if complexity and game.complexity != complexity:
                continue
            result.append(game)
        return result

    def search(self, query: str) -> list[GameDescriptor]:
        q = query.lower().strip()
        if not q:
            return self.get_all()
        return [
            g for g in self.games.values()
            if q in g.name.lower() or q in g.description.lower() or any(q in t.lower() for t in g.tags)
        ]

    def categories(self) -> list[str]:
        return sorted({g.category for g in self.games.values()})

    def stats(self) -> dict:
        by_category: dict[str, int] = {}
        by_complexity: dict[str, int] = {}
        for g in self.games.values():
            by_category[g.category] = by_category.get(g.category, 0) + 1
            by_complexity[g.complexity] = by_complexity.get(g.complexity, 0) + 1
        return {
            "total_games": len(self.games),
            "by_category": by_category,
            "by_complexity": by_complexity,
        }

    def validate(self, game_id: str, config: GameConfig) -> list[str]:
        game = self._require(game_id)
        errors = []
        count = len(config.player_configs)
        if not game.min_players <= count <= game.max_players:
            errors.append(f"{game.name} needs {game.min_players}-{game.max_players} players, got {count}")
        ids = [pc.id for pc in config.player_configs]
        if len(set(ids)) != len(ids):
            errors.append("Player ids must be unique")
        if config.thinking_time <= 0:
            errors.append("Thinking time must be positive")
        if config.speed not in GAME_SPEEDS:
            errors.append(f"Unknown speed: {config.speed}")
        if game.validate_config:
            errors.extend(game.validate_config(config))
        return errors

    def create_game(
        self,
        game_id: str,
        config: GameConfig | None = None,
        seed: int | None = None,
        clock: Clock | None = None,
    ) -> GameBundle:
        game = self._require(game_id)
        config = config or game.default_config()
        errors = self.validate(game_id, config)
        if errors:
            raise InvalidConfigurationError(f"Invalid configuration for {game_id}: {'; '.join(errors)}", {"errors": errors})

        context = GameContext.create(seed=seed, clock=clock)
        bundle = game.factory(context, config)
        logger.info(f"Created {game_id} game {context.game_id}")
        return bundle

    def on_change(self, listener: Callable[[str, GameDescriptor], None]) -> Callable[[], None]:
        """Subscribe to register/unregister; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _require(self, game_id: str) -> GameDescriptor:
        game = self.games.get(game_id)
        if game is None:
            raise InvalidConfigurationError(f"Unknown game: {game_id}")
        return game

    def _notify(self, change: str, descriptor: GameDescriptor):
        for listener in list(self._listeners):
            try:
                listener(change, descriptor)
            except Exception as e:
                logger.error(f"Registry listener failed on {change} {descriptor.id}: {e}")


# ====== Built-in games ======

def _validate_hangman(config: ReverseHangmanConfig) -> list[str]:
    errors = []
    if config.max_rounds < 1:
        errors.append("At least one round is required")
    if config.max_attempts < 1:
        errors.append("At least one attempt per round is required")
    if config.difficulty not in DIFFICULTIES + ["mixed"]:
        errors.append(f"Unknown difficulty: {config.difficulty}")
    return errors


def build_default_registry(config: Config, decision_service: DecisionService | None = None) -> GameRegistry:
    """Registry with Connect-4 and Reverse-Hangman wired to the given model registry."""
    agent_config = AIAgentFactoryConfig(
        models=config.models,
        default_model=config.default_model,
        decision_service=decision_service,
    )
    default_model = config.default_model if decision_service is not None else "heuristic"

    def connect4(context: GameContext, game_config: Connect4Config) -> GameBundle:
        engine = Connect4GameEngine(context)
        scoring = Connect4ScoringSystem(context)
        factory = Connect4AIAgentFactory(agent_config)
        manager = Connect4GameManager(engine, game_config, context, scoring, factory)
        return GameBundle(context, engine, scoring, manager, factory)

    def connect4_defaults() -> Connect4Config:
        return Connect4Config(
            player_configs=[
                PlayerConfig("red", "Red Bot", default_model, "aggressive"),
                PlayerConfig("yellow", "Yellow Bot", default_model, "conservative"),
            ],
            thinking_time=config.thinking_time,
            speed=config.game_speed,
        )

    def hangman(context: GameContext, game_config: ReverseHangmanConfig) -> GameBundle:
        engine = ReverseHangmanGameEngine(
            context,
            prompt_source=PromptDatabase(rng=context.rng),
            max_attempts=game_config.max_attempts,
            max_rounds=game_config.max_rounds,
        )
        scoring = ReverseHangmanScoringSystem(context)
        factory = ReverseHangmanAIAgentFactory(agent_config)
        manager = ReverseHangmanGameManager(engine, game_config, context, scoring, factory)
        return GameBundle(context, engine, scoring, manager, factory)

    def hangman_defaults() -> ReverseHangmanConfig:
        return ReverseHangmanConfig(
            player_configs=[PlayerConfig("guesser", "Guesser Bot", default_model, "balanced")],
            thinking_time=config.thinking_time,
            speed=config.game_speed,
        )

    registry = GameRegistry()
    registry.register(GameDescriptor(
        id="connect4",
        name="Connect 4",
        description="Drop pieces on an 8x8 board and connect four in a row",
        category="strategy",
        min_players=2,
        max_players=2,
        factory=connect4,
        default_config=connect4_defaults,
        tags=["board", "classic", "two-player"],
        complexity="low",
    ))
    registry.register(GameDescriptor(
        id="reverse-hangman",
        name="Reverse Hangman",
        description="Read an AI output and guess the prompt that produced it",
        category="word",
        min_players=1,
        max_players=4,
        factory=hangman,
        default_config=hangman_defaults,
        validate_config=_validate_hangman,
        tags=["prompts", "deduction", "rounds"],
        complexity="medium",
    ))
    return registry
