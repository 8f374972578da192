"""Tests for the base game engine lifecycle, validation and rollback."""
import sys
import os
from dataclasses import dataclass

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from games.base import (
    Action, BaseGameEngine, GameDefinition, GameState, Player, ValidationResult, snapshot_state,
)
from games.context import GameContext
from games.errors import (
    ActionExecutionError, IllegalStateError, InvalidActionError, InvalidConfigurationError,
)


@dataclass
class CounterState(GameState):
    total: int = 0


class CounterEngine(BaseGameEngine):
    """Players take turns adding to a shared total; reaching 10 ends the game."""

    def get_game_definition(self):
        return GameDefinition(min_players=2, max_players=3)

    def create_initial_state(self, players):
        return CounterState(
            game_id=self.context.game_id,
            phase="playing",
            players=list(players),
            current_turn=players[0].id,
        )

    def apply_action(self, action):
        if action.type == "boom":
            self.state.total += 100
            raise RuntimeError("boom")
        amount = action.get("amount", 1)
        self.state.total += amount
        self.state.get_player(action.player_id).score += amount

    def validate_game_specific_action(self, action):
        if action.type not in ("add", "boom"):
            return ValidationResult.invalid(f"Invalid action type: {action.type}")
        return ValidationResult.ok()

    def get_valid_actions(self, player_id):
        return [Action(player_id, "add", {"amount": 1})]

    def is_game_over(self):
        return self.state is not None and self.state.total >= 10

    def get_winners(self):
        best = max(p.score for p in self.state.players)
        return [p.id for p in self.state.players if p.score == best]


def make_engine(n: int = 2):
    context = GameContext.create(game_id="test-game", seed=1)
    events = []
    for event_type in ("game:initialized", "action:executed", "turn:changed", "game:ended"):
        context.event_bus.on(event_type, events.append)
    engine = CounterEngine(context)
    engine.initialize([Player(id=f"p{i + 1}", name=f"P{i + 1}") for i in range(n)])
    return engine, events


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


class TestInitialize:
    def test_initial_state(self):
        engine, events = make_engine()
        state = engine.get_state()
        assert state.game_id == "test-game"
        assert state.current_turn == "p1"
        assert state.turn_count == 0
        assert len(of_type(events, "game:initialized")) == 1

    def test_double_initialize(self):
        engine, _ = make_engine()
        with pytest.raises(IllegalStateError):
            engine.initialize([Player("a", "A"), Player("b", "B")])

    def test_player_count_out_of_range(self):
        engine = CounterEngine(GameContext.create())
        with pytest.raises(InvalidConfigurationError):
            engine.initialize([Player("a", "A")])
        with pytest.raises(InvalidConfigurationError):
            engine.initialize([Player(str(i), str(i)) for i in range(4)])
        assert not engine.initialized

    def test_get_state_before_initialize(self):
        with pytest.raises(IllegalStateError):
            CounterEngine(GameContext.create()).get_state()


class TestSnapshots:
    def test_get_state_is_independent(self):
        engine, _ = make_engine()
        snapshot = engine.get_state()
        snapshot.total = 99
        snapshot.players[0].name = "Mallory"
        assert engine.state.total == 0
        assert engine.state.players[0].name == "P1"

    def test_snapshot_state_deep_copies(self):
        state = CounterState(game_id="g", players=[Player("a", "A")])
        copy = snapshot_state(state)
        copy.players.append(Player("b", "B"))
        assert len(state.players) == 1


class TestExecuteAction:
    def test_valid_action_advances_turn(self):
        engine, events = make_engine()
        engine.execute_action(Action("p1", "add", {"amount": 2}))

        state = engine.get_state()
        assert state.total == 2
        assert state.turn_count == 1
        assert state.current_turn == "p2"

        executed = of_type(events, "action:executed")[0]
        assert executed.player_id == "p1"
        assert executed.data["previous_state"].total == 0
        assert executed.data["new_state"].total == 2
        assert of_type(events, "turn:changed")[0].data["current_turn"] == "p2"

    def test_wrong_turn_is_rejected(self):
        engine, _ = make_engine()
        with pytest.raises(InvalidActionError) as exc:
            engine.execute_action(Action("p2", "add"))
        assert "Not p2's turn" in exc.value.errors
        assert engine.state.turn_count == 0

    def test_rejected_action_leaves_state_untouched(self):
        engine, events = make_engine()
        engine.execute_action(Action("p1", "add", {"amount": 2}))
        before = engine.get_state()
        seen = len(events)

        with pytest.raises(InvalidActionError):
            engine.execute_action(Action("p1", "add"))
        with pytest.raises(InvalidActionError):
            engine.execute_action(Action("p2", "dance"))

        assert engine.get_state() == before
        assert len(events) == seen

    def test_end_time_is_set_only_once_the_game_is_over(self):
        engine, events = make_engine()
        n = 0
        while not engine.is_game_over():
            assert engine.get_state().end_time is None
            engine.execute_action(Action(engine.state.current_turn, "add", {"amount": 1}))
            n += 1
            assert (engine.get_state().end_time is not None) == engine.is_game_over()

        state = engine.get_state()
        assert n == 10
        assert state.turn_count == n
        assert len(of_type(events, "game:ended")) == 1

    def test_unknown_player_and_type(self):
        engine, _ = make_engine()
        result = engine.validate_action(Action("ghost", "dance"))
        assert not result.is_valid
        assert "Player ghost not found" in result.errors
        assert "Invalid action type: dance" in result.errors

    def test_inactive_player_is_rejected(self):
        engine, _ = make_engine()
        engine.state.players[0].is_active = False
        result = engine.validate_action(Action("p1", "add"))
        assert "Player p1 is not active" in result.errors

    def test_failed_transition_rolls_back(self):
        engine, events = make_engine()
        engine.execute_action(Action("p1", "add", {"amount": 3}))

        with pytest.raises(ActionExecutionError) as exc:
            engine.execute_action(Action("p2", "boom"))

        assert isinstance(exc.value.__cause__, RuntimeError)
        assert engine.state.total == 3
        assert engine.state.turn_count == 1
        assert engine.state.current_turn == "p2"
        assert len(of_type(events, "action:executed")) == 1

    def test_game_end(self):
        engine, events = make_engine()
        engine.execute_action(Action("p1", "add", {"amount": 4}))
        engine.execute_action(Action("p2", "add", {"amount": 7}))

        assert engine.is_game_over()
        ended = of_type(events, "game:ended")
        assert len(ended) == 1
        assert ended[0].data["winners"] == ["p2"]
        assert ended[0].data["final_state"].end_time is not None
        assert ended[0].data["duration"] >= 0

        with pytest.raises(IllegalStateError):
            engine.execute_action(Action("p1", "add"))


class TestAdvanceTurn:
    def test_skips_inactive_players(self):
        engine, _ = make_engine(3)
        engine.state.players[1].is_active = False
        engine.execute_action(Action("p1", "add"))
        assert engine.state.current_turn == "p3"

    def test_wraps_around(self):
        engine, _ = make_engine(3)
        for pid in ("p1", "p2", "p3"):
            engine.execute_action(Action(pid, "add"))
        assert engine.state.current_turn == "p1"

    def test_current_player_is_checked_last(self):
        engine, _ = make_engine(3)
        engine.state.players[1].is_active = False
        engine.state.players[2].is_active = False
        engine.execute_action(Action("p1", "add"))
        assert engine.state.current_turn == "p1"

    def test_no_active_player_clears_turn(self):
        engine, _ = make_engine(2)
        for player in engine.state.players:
            player.is_active = False
        engine.advance_turn()
        assert engine.state.current_turn is None


class TestAction:
    def test_with_payload_builds_new_action(self):
        action = Action("p1", "guess", {"guess": None})
        filled = action.with_payload(guess="hello")
        assert action.get("guess") is None
        assert filled.get("guess") == "hello"
        assert filled.to_dict() == {"type": "guess", "player_id": "p1", "guess": "hello"}

    def test_validation_merge(self):
        merged = ValidationResult.ok().merge(ValidationResult.invalid("bad"))
        assert not merged.is_valid
        assert merged.errors == ["bad"]
