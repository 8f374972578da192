"""Tests for the game manager's scheduling loop (Connect-4 as the concrete game)."""
import sys
import os
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agent.ai_agent import Decision
from agent.factory import AIAgentFactoryConfig, Connect4AIAgentFactory
from arena.manager import MAX_IDLE_TICKS, ManagerState, PlayerConfig
from games.base import Action
from games.connect4 import Connect4Config, Connect4GameEngine, Connect4GameManager, Connect4ScoringSystem
from games.context import Clock, GameContext
from games.errors import IllegalStateError, InvalidConfigurationError


class FakeClock(Clock):
    """Virtual time: sleeps are recorded and return at once."""

    def __init__(self):
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.elapsed = 0.0
        self.slept = []

    def now(self):
        return self.current

    def monotonic(self):
        return self.elapsed

    async def sleep(self, seconds):
        self.slept.append(seconds)
        self.elapsed += seconds
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)


class StubFactory:
    """Hands out prepared agents by player id."""

    def __init__(self, agents):
        self.agents = agents

    def create_agent(self, player_config):
        return self.agents[player_config.id]


def stub_agent(*, decision=None, error=None, delay=None):
    agent = MagicMock()
    if delay is not None:
        async def slow(state, valid_actions):
            await asyncio.sleep(delay)
        agent.make_decision = AsyncMock(side_effect=slow)
    elif error is not None:
        agent.make_decision = AsyncMock(side_effect=error)
    else:
        agent.make_decision = AsyncMock(return_value=decision)
    return agent


def make_manager(players, factory=None, speed="normal", thinking_time=5.0, manager_class=Connect4GameManager):
    clock = FakeClock()
    context = GameContext.create(game_id="managed", seed=11, clock=clock)
    engine = Connect4GameEngine(context)
    config = Connect4Config(player_configs=players, thinking_time=thinking_time, speed=speed)
    manager = manager_class(engine, config, context, Connect4ScoringSystem(context), factory)
    return manager, clock


def record(manager, *event_types):
    events = []
    for event_type in event_types:
        manager.on(event_type, events.append)
    return events


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


async def wait_until(predicate, ticks: int = 500, delay: float = 0):
    for _ in range(ticks):
        if predicate():
            return
        await asyncio.sleep(delay)
    raise AssertionError("condition never became true")


HUMANS = [PlayerConfig("alice", "Alice"), PlayerConfig("bob", "Bob")]


class TestLifecycle:
    def test_start_twice(self):
        async def scenario():
            manager, _ = make_manager(HUMANS)
            await manager.start_game()
            with pytest.raises(IllegalStateError):
                await manager.start_game()
            await manager.end_game()

        asyncio.run(scenario())

    def test_ai_player_needs_factory(self):
        async def scenario():
            manager, _ = make_manager([PlayerConfig("a", "A", ai_model="claude-haiku"), HUMANS[1]])
            with pytest.raises(InvalidConfigurationError):
                await manager.start_game()
            assert manager.state is ManagerState.SETUP

        asyncio.run(scenario())

    def test_pause_resume_and_end(self):
        async def scenario():
            manager, _ = make_manager(HUMANS)
            events = record(manager, "game:started", "game:paused", "game:resumed", "game:ended", "human:turn:end")

            with pytest.raises(IllegalStateError):
                await manager.pause_game()

            await manager.start_game()
            await asyncio.sleep(0)
            await manager.pause_game()
            assert manager.state is ManagerState.PAUSED
            assert not manager.is_loop_running
            with pytest.raises(IllegalStateError):
                await manager.pause_game()

            manager.submit_human_action(Action("alice", "place", {"column": 3}))
            await manager.resume_game()
            assert manager.is_loop_running
            await wait_until(lambda: of_type(events, "human:turn:end"))
            assert manager.get_state().current_turn == "bob"

            await manager.end_game()
            await manager.end_game()
            assert manager.state is ManagerState.FINISHED
            assert not manager.is_loop_running
            assert len(of_type(events, "game:ended")) == 1
            assert of_type(events, "game:started")[0].data["state"].current_turn == "alice"
            with pytest.raises(IllegalStateError):
                manager.submit_human_action(Action("bob", "place", {"column": 0}))

        asyncio.run(scenario())


class TestHumanTurns:
    def test_invalid_then_valid_action(self):
        async def scenario():
            manager, _ = make_manager(HUMANS)
            events = record(manager, "human:turn:start", "human:action:invalid", "human:turn:end", "action:executed")

            await manager.start_game()
            manager.submit_human_action(Action("bob", "place", {"column": 0}))
            manager.submit_human_action(Action("alice", "place", {"column": 99}))
            manager.submit_human_action(Action("alice", "place", {"column": 2}))
            await wait_until(lambda: of_type(events, "human:turn:end"))

            invalid = of_type(events, "human:action:invalid")
            assert invalid[0].data["errors"] == ["It is alice's turn"]
            assert "Invalid column" in invalid[1].data["errors"]
            assert len(of_type(events, "action:executed")) == 1
            assert of_type(events, "human:turn:start")[0].data["player_id"] == "alice"
            await manager.end_game()

        asyncio.run(scenario())


class TestAITurns:
    def test_successful_decision(self):
        async def scenario():
            agent = stub_agent(decision=Decision(Action("bot", "place", {"column": 4}), confidence=0.7))
            manager, clock = make_manager(
                [PlayerConfig("bot", "Bot", ai_model="stub"), HUMANS[1]], StubFactory({"bot": agent}), speed="fast",
            )
            events = record(manager, "ai:thinking:start", "ai:thinking:end", "ai:decision", "scores:updated")

            await manager.start_game()
            await wait_until(lambda: manager.get_state().current_turn == "bob")

            assert [e.type for e in events][:3] == ["ai:thinking:start", "ai:thinking:end", "ai:decision"]
            assert of_type(events, "ai:decision")[0].data["state"].move_count == 0
            assert manager.get_state().board[-1][4] == 1
            assert manager.ai_retry_count["bot"] == 0
            assert 0.2 in clock.slept
            await manager.end_game()
            assert of_type(events, "scores:updated")

        asyncio.run(scenario())

    def test_retry_ladder_ends_in_fallback(self):
        async def scenario():
            agent = stub_agent(error=RuntimeError("model down"))
            manager, _ = make_manager([PlayerConfig("bot", "Bot", ai_model="stub"), HUMANS[1]], StubFactory({"bot": agent}))
            events = record(manager, "ai:fallback", "ai:turn:failed")

            await manager.start_game()
            await wait_until(lambda: of_type(events, "ai:fallback"))

            fallback = of_type(events, "ai:fallback")[0]
            assert fallback.data["reason"] == "max_retries_exceeded"
            assert fallback.data["action"].type == "timeout"
            assert agent.make_decision.await_count == 3
            state = manager.get_state()
            assert state.get_player("bot").timeouts == 1
            assert state.current_turn == "bob"
            assert manager.ai_retry_count["bot"] == 0
            assert not of_type(events, "ai:turn:failed")
            await manager.end_game()

        asyncio.run(scenario())

    def test_thinking_timeout_counts_as_failure(self):
        async def scenario():
            agent = stub_agent(delay=10)
            manager, _ = make_manager(
                [PlayerConfig("bot", "Bot", ai_model="stub"), HUMANS[1]], StubFactory({"bot": agent}), thinking_time=0.01,
            )
            events = record(manager, "ai:fallback")

            await manager.start_game()
            await wait_until(lambda: of_type(events, "ai:fallback"), ticks=1000, delay=0.005)
            assert "timed out" in of_type(events, "ai:fallback")[0].data["error"]
            await manager.end_game()

        asyncio.run(scenario())

    def test_no_fallback_emits_turn_failed(self):
        class NoFallbackManager(Connect4GameManager):
            def get_fallback_action(self, player_id):
                return None

        async def scenario():
            agent = stub_agent(error=RuntimeError("model down"))
            manager, _ = make_manager(
                [PlayerConfig("bot", "Bot", ai_model="stub"), HUMANS[1]],
                StubFactory({"bot": agent}),
                manager_class=NoFallbackManager,
            )
            events = record(manager, "ai:turn:failed")

            await manager.start_game()
            await wait_until(lambda: of_type(events, "ai:turn:failed"))
            assert of_type(events, "ai:turn:failed")[0].data["no_fallback"]
            assert manager.get_state().current_turn == "bot"
            await manager.end_game()

        asyncio.run(scenario())


class TestLoop:
    def test_heuristic_game_runs_to_completion(self):
        async def scenario():
            factory = Connect4AIAgentFactory(AIAgentFactoryConfig(models={}, default_model="heuristic"))
            manager, _ = make_manager(
                [
                    PlayerConfig("red", "Red", ai_model="heuristic", personality="aggressive"),
                    PlayerConfig("yellow", "Yellow", ai_model="heuristic", personality="conservative"),
                ],
                factory,
                speed="fast",
            )
            events = record(manager, "game:ended", "achievements:unlocked")

            await manager.start_game()
            await manager.join()

            assert manager.state is ManagerState.FINISHED
            assert manager.engine.is_game_over()
            ended = of_type(events, "game:ended")
            assert len(ended) == 1
            assert ended[0].data["winners"] == manager.engine.get_winners()
            assert len(ended[0].data["scores"]) == 2
            assert manager.loop_error is None

        asyncio.run(scenario())

    def test_idle_guard_stops_the_loop(self):
        async def scenario():
            manager, _ = make_manager(HUMANS)
            await manager.start_game()
            # the player on turn can no longer act and nothing else advances the game
            manager.engine.state.players[0].is_active = False
            tick = AsyncMock()
            manager.process_game_tick = tick
            await manager.join()

            assert not manager.is_loop_running
            assert manager.state is ManagerState.PLAYING
            assert tick.await_count == MAX_IDLE_TICKS
            await manager.end_game()

        asyncio.run(scenario())
