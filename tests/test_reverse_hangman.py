"""Tests for the Reverse-Hangman engine, scoring and round-driven manager."""
import sys
import os
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agent.factory import AIAgentFactoryConfig, ReverseHangmanAIAgentFactory
from arena.manager import ManagerState, PlayerConfig
from games.base import Action, Player
from games.context import Clock, GameContext
from games.errors import IllegalStateError, InvalidConfigurationError, PromptGenerationUnavailableError
from games.prompt_database import PromptDatabase, PromptPair
from games.reverse_hangman import (
    SKIPPED,
    ReverseHangmanConfig,
    ReverseHangmanGameEngine,
    ReverseHangmanGameManager,
    ReverseHangmanScoringSystem,
)

HAIKU = PromptPair(
    "easy-1", "Write a haiku about spring flowers",
    "Cherry blossoms bloom\nPetals dance on gentle breeze\nSpring's beauty unfolds", "easy", "poetry",
)


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


def make_engine(players: int = 1, max_attempts: int = 3, max_rounds: int = 2, prompts=None):
    context = GameContext.create(game_id="rh", seed=3)
    events = []
    for event_type in ("round:started", "guess:made", "round:won", "round:lost", "game:ended"):
        context.event_bus.on(event_type, events.append)
    engine = ReverseHangmanGameEngine(
        context,
        prompt_source=PromptDatabase([HAIKU] if prompts is None else prompts, rng=context.rng),
        max_attempts=max_attempts,
        max_rounds=max_rounds,
    )
    engine.initialize([Player(f"p{i + 1}", f"P{i + 1}", is_ai=False) for i in range(players)])
    return engine, events


def start_playing(engine):
    engine.start_new_round("easy")
    engine.begin_guessing()


def guess(engine, text, player_id="p1"):
    engine.execute_action(Action(player_id, "guess", {"guess": text}))


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


class TestRounds:
    def test_initial_state(self):
        engine, _ = make_engine()
        state = engine.get_state()
        assert state.phase == "waiting"
        assert state.round_number == 0
        assert state.current_turn is None

    def test_player_limits(self):
        engine = ReverseHangmanGameEngine(GameContext.create())
        with pytest.raises(InvalidConfigurationError):
            engine.initialize([Player(str(i), str(i)) for i in range(5)])

    def test_start_new_round(self):
        engine, events = make_engine()
        engine.start_new_round("easy")

        assert engine.state.phase == "selecting"
        assert engine.state.round_number == 1
        assert engine.get_output() == HAIKU.output
        assert engine.get_revealed_prompt() is None
        started = of_type(events, "round:started")[0]
        assert started.data == {"round_number": 1, "difficulty": "easy", "category": "poetry"}

    def test_no_guessing_while_selecting(self):
        engine, _ = make_engine()
        engine.start_new_round("easy")
        result = engine.validate_action(Action("p1", "guess", {"guess": "hello"}))
        assert "Round is not in the playing phase" in result.errors

    def test_cannot_start_round_mid_round(self):
        engine, _ = make_engine()
        start_playing(engine)
        with pytest.raises(IllegalStateError):
            engine.start_new_round("easy")

    def test_no_prompt_source(self):
        engine, _ = make_engine(prompts=[])
        with pytest.raises(PromptGenerationUnavailableError) as exc:
            engine.start_new_round("hard")
        assert not exc.value.recoverable
        assert engine.state.round_number == 0
        assert engine.state.phase == "waiting"

    def test_begin_guessing_hands_turn_to_guesser(self):
        engine, _ = make_engine()
        start_playing(engine)
        assert engine.state.phase == "playing"
        assert engine.state.current_turn == "p1"
        assert [a.type for a in engine.get_valid_actions("p1")] == ["guess", "skip"]


class TestGuessing:
    def test_exact_guess_wins_round(self):
        engine, events = make_engine(max_attempts=3)
        start_playing(engine)
        guess(engine, "write a haiku about spring flowers")

        state = engine.get_state()
        assert state.phase == "round-complete"
        assert state.current_turn is None
        player = state.get_player("p1")
        assert player.rounds_won == 1
        assert player.total_score == 100 + 20 * 2
        assert of_type(events, "guess:made")[0].data["attempts_remaining"] == 2
        assert of_type(events, "round:won")[0].data["points"] == 140
        assert engine.get_revealed_prompt() == HAIKU.prompt

    def test_three_misses_lose_round_without_rotating_turn(self):
        engine, events = make_engine(players=2, max_attempts=3)
        phases = []
        engine.context.event_bus.on("round:lost", lambda e: phases.append(engine.state.phase))
        start_playing(engine)

        for text in ("tell me a joke", "describe spring", "list flowers"):
            assert engine.state.current_turn == "p1"
            guess(engine, text)

        assert phases == ["lost"]
        assert engine.state.phase == "round-complete"
        assert of_type(events, "round:lost")[0].data["correct_prompt"] == HAIKU.prompt
        assert engine.state.get_player("p1").total_score == 0

    def test_guesser_rotates_between_rounds(self):
        engine, _ = make_engine(players=2, max_attempts=1, max_rounds=3)
        start_playing(engine)
        guess(engine, "wrong")
        start_playing(engine)
        assert engine.state.current_turn == "p2"

    def test_skip_uses_an_attempt(self):
        engine, _ = make_engine(max_attempts=3)
        start_playing(engine)
        engine.execute_action(Action("p1", "skip"))
        assert engine.state.attempts[-1].guess == SKIPPED
        assert engine.state.get_player("p1").skips == 1
        assert engine.get_attempts_remaining() == 2

    def test_guess_validation(self):
        engine, _ = make_engine()
        start_playing(engine)
        assert "Guess text is required" in engine.validate_action(Action("p1", "guess", {"guess": "  "})).errors
        assert "Guess text is required" in engine.validate_action(Action("p1", "guess")).errors
        too_long = engine.validate_action(Action("p1", "guess", {"guess": "x" * 501}))
        assert not too_long.is_valid
        assert "Invalid action type: place" in engine.validate_action(Action("p1", "place")).errors

    def test_game_ends_after_max_rounds(self):
        engine, events = make_engine(max_attempts=2, max_rounds=2)
        start_playing(engine)
        guess(engine, HAIKU.prompt)
        start_playing(engine)
        guess(engine, "nope")
        guess(engine, "still nope")

        assert engine.is_game_over()
        ended = of_type(events, "game:ended")
        assert len(ended) == 1
        assert ended[0].data["winners"] == ["p1"]
        assert engine.state.end_time is not None
        with pytest.raises(IllegalStateError):
            engine.start_new_round("easy")

    def test_no_winner_without_points(self):
        engine, _ = make_engine(max_attempts=1, max_rounds=1)
        start_playing(engine)
        guess(engine, "nope")
        assert engine.is_game_over()
        assert engine.get_winners() == []


class TestScoring:
    def test_round_points_and_first_try(self):
        engine, _ = make_engine(max_attempts=3, max_rounds=2)
        context = engine.context
        scoring = ReverseHangmanScoringSystem(context)
        context.event_bus.on("action:executed", scoring.track_event)
        unlocked = []
        context.event_bus.on("achievements:unlocked", unlocked.append)

        start_playing(engine)
        guess(engine, HAIKU.prompt)
        start_playing(engine)
        engine.execute_action(Action("p1", "skip"))

        result = scoring.calculate_score(engine.get_state())[0]
        assert result.base_points == 100
        assert result.bonus_points == 40
        assert result.penalty_points == 10
        assert result.total_score == 130
        assert unlocked[0].data["achievements"] == ["first_try"]
        assert scoring.get_tracker("p1")["successes"] == 1


class TestManager:
    def make_manager(self, players, max_rounds=2, max_attempts=2, speed="normal"):
        clock = FakeClock()
        context = GameContext.create(game_id="rh-managed", seed=5, clock=clock)
        engine = ReverseHangmanGameEngine(
            context,
            prompt_source=PromptDatabase([HAIKU], rng=context.rng),
            max_attempts=max_attempts,
            max_rounds=max_rounds,
        )
        config = ReverseHangmanConfig(
            player_configs=players,
            thinking_time=1.0,
            speed=speed,
            max_rounds=max_rounds,
            max_attempts=max_attempts,
            difficulty="mixed",
        )
        factory = ReverseHangmanAIAgentFactory(AIAgentFactoryConfig(models={}, default_model="heuristic"))
        manager = ReverseHangmanGameManager(engine, config, context, ReverseHangmanScoringSystem(context), factory)
        return manager, clock

    def test_start_game_does_not_start_loop(self):
        async def scenario():
            manager, _ = self.make_manager([PlayerConfig("h", "Human")])
            await manager.start_game()
            assert not manager.is_loop_running
            assert manager.engine.state.phase == "waiting"
            await manager.end_game()

        asyncio.run(scenario())

    def test_human_round(self):
        async def scenario():
            manager, clock = self.make_manager([PlayerConfig("h", "Human")], max_rounds=1)
            ended = []
            manager.on("game:ended", ended.append)

            await manager.start_game()
            manager.submit_human_action(Action("h", "guess", {"guess": HAIKU.prompt}))
            await manager.start_new_round()
            await manager.join()

            assert manager.state is ManagerState.FINISHED
            assert len(ended) == 1
            assert ended[0].data["winners"] == ["h"]
            assert manager.engine.state.round_results[0]["outcome"] == "won"
            assert [g["guess"] for g in manager.get_guess_history()] == [HAIKU.prompt]
            # animation delay before guessing opens
            assert clock.slept[0] == 2.0

        asyncio.run(scenario())

    def test_heuristic_agent_plays_all_rounds(self):
        async def scenario():
            manager, clock = self.make_manager([PlayerConfig("bot", "Bot", ai_model="heuristic")], speed="fast")
            completed = []
            manager.on("round:complete", completed.append)

            await manager.start_game()
            await manager.start_new_round()
            await manager.join()

            state = manager.engine.state
            assert manager.state is ManagerState.FINISHED
            assert state.round_number == 2
            assert [r["outcome"] for r in state.round_results] == ["lost", "lost"]
            assert state.get_player("bot").skips == 4
            assert len(completed) == 1
            assert 0.5 in clock.slept

        asyncio.run(scenario())

    def test_fallback_is_skip(self):
        async def scenario():
            manager, _ = self.make_manager([PlayerConfig("h", "Human")])
            await manager.start_game()
            assert manager.get_fallback_action("h") is None
            manager.engine.start_new_round("easy")
            manager.engine.begin_guessing()
            assert manager.get_fallback_action("h").type == "skip"
            await manager.end_game()

        asyncio.run(scenario())

    def test_start_new_round_requires_playing(self):
        async def scenario():
            manager, _ = self.make_manager([PlayerConfig("h", "Human")])
            with pytest.raises(IllegalStateError):
                await manager.start_new_round()

        asyncio.run(scenario())
