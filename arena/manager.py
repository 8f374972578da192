"""
Game Manager: drives turn-taking for one game between AI agents and humans.

A single asyncio task runs the scheduling loop. It reads the engine's current
turn, asks an AI agent (with timeout, retries and a fallback action) or waits
for a human action, and yields between iterations. When no player holds the
turn the concrete game's phase tick advances the game instead.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from games.base import Action, BaseGameEngine, GameState, Player
from games.context import EventBus, EventHandler, GameContext, GameEvent
from games.errors import AITurnError, GameError, IllegalStateError, InvalidConfigurationError

from .scoring import BaseScoringSystem

logger = logging.getLogger("agentarena.manager")

MAX_AI_RETRIES = 3
# consecutive phase ticks without progress before the loop gives up
MAX_IDLE_TICKS = 10

# engine and scoring events re-published to manager listeners
FORWARDED_EVENTS = (
    "game:initialized",
    "turn:changed",
    "action:executed",
    "scores:updated",
    "achievements:unlocked",
    "round:started",
    "round:won",
    "round:lost",
    "guess:made",
)


class ManagerState(Enum):
    SETUP = "setup"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass
class PlayerConfig:
    id: str
    name: str
    ai_model: str | None = None  # model id, "heuristic", or None for a human
    personality: Any = None
    avatar: str | None = None

    @property
    def is_ai(self) -> bool:
        return self.ai_model is not None


@dataclass
class GameConfig:
    player_configs: list[PlayerConfig] = field(default_factory=list)
    thinking_time: float = 30.0
    speed: str = "normal"


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class BaseGameManager(ABC):
    """
    Lifecycle SETUP -> PLAYING <-> PAUSED -> FINISHED around one engine.

    Concrete games implement process_game_tick and get_fallback_action and
    may override the player/agent construction hooks.
    """

    MAX_AI_RETRIES = MAX_AI_RETRIES
    # games that start their loop later (per round/hand) switch this off
    starts_loop_on_start = True

    def __init__(
        self,
        engine: BaseGameEngine,
        config: GameConfig,
        context: GameContext,
        scoring: BaseScoringSystem,
        agent_factory=None,
    ):
        self.engine = engine
        self.config = config
        self.context = context
        self.scoring = scoring
        self.agent_factory = agent_factory

        self.state = ManagerState.SETUP
        self.ai_agents: dict[str, Any] = {}
        self.ai_retry_count: dict[str, int] = {}
        self.loop_error: Exception | None = None
        self.turn_delay = 0.0

        self._signals = EventBus()
        self._human_actions: asyncio.Queue | None = None
        self._loop_running = False
        self._loop_task: asyncio.Task | None = None
        self._processing_tick = False
        self._last_tick_phase: str | None = None
        self._idle_ticks = 0
        self._stalled_players: set[str] = set()

        self._setup_internal_event_handlers()

    # ====== Signals ======

    def on(self, event_type: str, handler: EventHandler):
        self._signals.on(event_type, handler)

    def off(self, event_type: str, handler: EventHandler):
        self._signals.off(event_type, handler)

    def emit(self, event_type: str, data: dict | None = None, player_id: str | None = None):
        self._signals.emit(GameEvent(
            type=event_type,
            timestamp=self.context.clock.now(),
            player_id=player_id,
            data=data or {},
        ))

    def _setup_internal_event_handlers(self):
        bus = self.context.event_bus
        bus.on("action:executed", self._on_action_executed)
        bus.on("game:ended", self._on_engine_game_ended)
        for event_type in FORWARDED_EVENTS:
            bus.on(event_type, self._forward)

    def _teardown_internal_event_handlers(self):
        bus = self.context.event_bus
        bus.off("action:executed", self._on_action_executed)
        bus.off("game:ended", self._on_engine_game_ended)
        for event_type in FORWARDED_EVENTS:
            bus.off(event_type, self._forward)

    def _on_action_executed(self, event: GameEvent):
        self.scoring.track_event(event)

    def _on_engine_game_ended(self, event: GameEvent):
        self.scoring.track_event(event)
        self.scoring.calculate_score(event.data["final_state"])

    def _forward(self, event: GameEvent):
        self._signals.emit(event)

    # ====== Lifecycle ======

    async def start_game(self):
        if self.state is not ManagerState.SETUP:
            raise IllegalStateError(f"Cannot start a game that is {self.state.value}")

        try:
            players = await self.initialize_players()
            self.engine.initialize(players)
            for player_config in self.config.player_configs:
                if player_config.ai_model:
                    self.ai_agents[player_config.id] = await self.create_ai_agent(player_config)
        except Exception as e:
            logger.error(f"Failed to start game {self.context.game_id}: {e}")
            raise

        self.state = ManagerState.PLAYING
        logger.info(f"Game {self.context.game_id} started with {len(players)} players ({len(self.ai_agents)} AI)")
        self.emit("game:started", {
            "config": self.config,
            "players": players,
            "state": self.engine.get_state(),
        })

        if self.starts_loop_on_start:
            self.run_game_loop()

    async def pause_game(self):
        if self.state is not ManagerState.PLAYING:
            raise IllegalStateError(f"Cannot pause a game that is {self.state.value}")
        self.state = ManagerState.PAUSED
        await self._stop_loop()
        logger.info(f"Game {self.context.game_id} paused")
        self.emit("game:paused", {"state": self.engine.get_state()})

    async def resume_game(self):
        if self.state is not ManagerState.PAUSED:
            raise IllegalStateError(f"Cannot resume a game that is {self.state.value}")
        self.state = ManagerState.PLAYING
        logger.info(f"Game {self.context.game_id} resumed")
        self.emit("game:resumed", {"state": self.engine.get_state()})
        self.run_game_loop()

    async def end_game(self):
        """Finish the game. Safe to call more than once."""
        if self.state is ManagerState.FINISHED:
            return

        self.state = ManagerState.FINISHED
        await self._stop_loop()
        self.ai_retry_count.clear()

        final_state = None
        winners: list[str] = []
        if self.engine.initialized:
            final_state = self.engine.get_state()
            winners = self.engine.get_winners()
            if not self.engine.is_game_over():
                # ended early: the engine never emitted game:ended
                self.scoring.calculate_score(final_state)

        logger.info(f"Game {self.context.game_id} finished, winners={winners}")
        self.emit("game:ended", {
            "state": final_state,
            "scores": self.scoring.get_leaderboard(),
            "winners": winners,
        })
        await self.cleanup()

    async def join(self):
        """Wait until the scheduling loop stops (game over, paused, or halted)."""
        while self._loop_task is not None and not self._loop_task.done():
            await asyncio.wait({self._loop_task})

    def get_state(self) -> GameState:
        return self.engine.get_state()

    @property
    def is_loop_running(self) -> bool:
        return self._loop_running

    @property
    def human_actions(self) -> asyncio.Queue:
        if self._human_actions is None:
            self._human_actions = asyncio.Queue()
        return self._human_actions

    def submit_human_action(self, action: Action):
        if self.state in (ManagerState.SETUP, ManagerState.FINISHED):
            raise IllegalStateError(f"Cannot accept actions while the game is {self.state.value}")
        self.human_actions.put_nowait(action)

    # ====== Scheduling loop ======

    def run_game_loop(self) -> asyncio.Task | None:
        """Start the loop task unless one is already running."""
        if self._loop_running:
            logger.debug("Game loop already running")
            return self._loop_task
        if self.state is not ManagerState.PLAYING:
            return None
        self._loop_running = True
        self._loop_task = asyncio.get_running_loop().create_task(self._game_loop())
        return self._loop_task

    async def _stop_loop(self):
        task = self._loop_task
        if task is None or task is _current_task():
            # called from inside the loop: it exits on the state check
            return
        self._loop_running = False
        self._loop_task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _game_loop(self):
        try:
            while self._loop_running and self.state is ManagerState.PLAYING:
                if not await self._process_next_turn():
                    break
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            logger.debug("Game loop cancelled")
            raise
        except Exception as e:
            self.loop_error = e
            logger.error(f"Game loop halted: {e}")
        finally:
            if self._loop_task is _current_task():
                self._loop_running = False
                self._loop_task = None

    async def _process_next_turn(self) -> bool:
        """One loop iteration. Returns False when the loop should stop."""
        if self.state is not ManagerState.PLAYING:
            return False
        if self.engine.is_game_over():
            await self.end_game()
            return False

        state = self.engine.get_state()
        if not state.current_turn:
            return await self._run_phase_tick(state.phase)

        player = state.get_player(state.current_turn)
        if player is None or not player.is_active or self.is_player_disqualified(player):
            logger.warning(f"Player {state.current_turn} cannot act, forcing a phase tick")
            return await self._run_phase_tick(state.phase)

        if player.id in self._stalled_players:
            self._stalled_players.discard(player.id)
            return await self._run_phase_tick(state.phase)

        if player.is_ai:
            if self.ai_retry_count.get(player.id, 0) >= self.MAX_AI_RETRIES:
                self.ai_retry_count[player.id] = 0
                return await self._run_phase_tick(state.phase)
            await self._handle_ai_turn(player.id)
        else:
            await self._handle_human_turn(player.id)

        self._last_tick_phase = None
        self._idle_ticks = 0
        if self.turn_delay and self.state is ManagerState.PLAYING:
            await self.context.clock.sleep(self.turn_delay)
        return True

    async def _run_phase_tick(self, phase: str) -> bool:
        if self._processing_tick:
            return True

        if phase == self._last_tick_phase:
            self._idle_ticks += 1
        else:
            self._last_tick_phase = phase
            self._idle_ticks = 1

        if self._idle_ticks > MAX_IDLE_TICKS:
            logger.error(f"Phase '{phase}' made no progress after {MAX_IDLE_TICKS} ticks, stopping game loop")
            self._loop_running = False
            return False

        self._processing_tick = True
        try:
            await self.process_game_tick()
        finally:
            self._processing_tick = False
        return True

    # ====== Turn handling ======

    async def _handle_ai_turn(self, player_id: str):
        agent = self.ai_agents.get(player_id)
        if agent is None:
            raise IllegalStateError(f"No AI agent for player {player_id}")

        self.emit("ai:thinking:start", {"player_id": player_id}, player_id)
        started = self.context.clock.monotonic()
        try:
            state = self.engine.get_state()
            valid_actions = self.engine.get_valid_actions(player_id)
            try:
                decision = await asyncio.wait_for(
                    agent.make_decision(state, valid_actions),
                    timeout=self.config.thinking_time,
                )
            except asyncio.TimeoutError as e:
                raise AITurnError(player_id, f"AI thinking timed out after {self.config.thinking_time}s") from e

            self.emit("ai:thinking:end", {
                "player_id": player_id,
                "decision": decision,
                "thinking_time": self.context.clock.monotonic() - started,
            }, player_id)
            self.emit("ai:decision", {
                "player_id": player_id,
                "decision": decision,
                "state": self.engine.get_state(),
            }, player_id)

            self.engine.execute_action(decision.action)
            self.ai_retry_count[player_id] = 0
        except Exception as e:
            self._handle_ai_failure(player_id, e)

    def _handle_ai_failure(self, player_id: str, error: Exception):
        retries = self.ai_retry_count.get(player_id, 0) + 1
        self.ai_retry_count[player_id] = retries
        logger.error(f"AI turn failed for {player_id} (attempt {retries}/{self.MAX_AI_RETRIES}): {error}")
        if retries < self.MAX_AI_RETRIES:
            return

        fallback = self.get_fallback_action(player_id)
        if fallback is None:
            logger.error(f"No fallback action for {player_id}")
            self.emit("ai:turn:failed", {"player_id": player_id, "error": str(error), "no_fallback": True}, player_id)
            self._stalled_players.add(player_id)
        else:
            try:
                self.engine.execute_action(fallback)
                logger.warning(f"Executed fallback {fallback.type} for {player_id}")
                self.emit("ai:fallback", {
                    "player_id": player_id,
                    "action": fallback,
                    "reason": "max_retries_exceeded",
                    "error": str(error),
                }, player_id)
            except GameError as fallback_error:
                logger.error(f"Fallback action failed for {player_id}: {fallback_error}")
                self.emit("ai:turn:failed", {
                    "player_id": player_id,
                    "error": str(error),
                    "fallback_error": str(fallback_error),
                }, player_id)
                self._stalled_players.add(player_id)

        self.ai_retry_count[player_id] = 0

    async def _handle_human_turn(self, player_id: str):
        self.emit("human:turn:start", {
            "player_id": player_id,
            "valid_actions": self.engine.get_valid_actions(player_id),
        }, player_id)

        while self.state is ManagerState.PLAYING:
            action = await self.human_actions.get()
            if action.player_id != player_id:
                self.emit("human:action:invalid", {
                    "player_id": action.player_id,
                    "action": action,
                    "errors": [f"It is {player_id}'s turn"],
                }, action.player_id)
                continue

            try:
                self.engine.execute_action(action)
            except GameError as e:
                logger.info(f"Rejected action from {player_id}: {e}")
                self.emit("human:action:invalid", {
                    "player_id": player_id,
                    "action": action,
                    "errors": getattr(e, "errors", [str(e)]),
                }, player_id)
                continue

            self.emit("human:turn:end", {"player_id": player_id, "action": action}, player_id)
            return

    # ====== Hooks ======

    async def initialize_players(self) -> list[Player]:
        return [
            Player(id=pc.id, name=pc.name, is_ai=pc.is_ai, avatar=pc.avatar)
            for pc in self.config.player_configs
        ]

    async def create_ai_agent(self, player_config: PlayerConfig):
        if self.agent_factory is None:
            raise InvalidConfigurationError(f"No AI agent factory to create player {player_config.id}")
        return self.agent_factory.create_agent(player_config)

    def is_player_disqualified(self, player: Player) -> bool:
        return False

    async def cleanup(self):
        self._teardown_internal_event_handlers()

    @abstractmethod
    async def process_game_tick(self):
        pass

    @abstractmethod
    def get_fallback_action(self, player_id: str) -> Action | None:
        pass
