"""Tests for the scoring contract, leaderboard and achievements."""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from arena.achievements import (
    AchievementCheck, FIRST_WIN, RARITY_POINTS, counter_achievement, evaluate_achievements,
    streak_achievement, win_achievement,
)
from arena.scoring import BaseScoringSystem, ScoreBreakdown, ScoringRule
from games.base import Action, GameState, Player
from games.context import GameContext, GameEvent


class PointsScoring(BaseScoringSystem):
    """Base points are the player's score; one bonus point per executed action."""

    def initialize_rules(self):
        self.rules = [
            ScoringRule("leader", "Leader", "bonus", "Leading player", lambda state, pid: 5 if pid == "a" else 0),
        ]

    def calculate_base_points(self, state, player_id):
        return state.get_player(player_id).score

    def calculate_penalty_points(self, state, player_id):
        return 2 if player_id == "b" else 0

    def get_penalty_breakdown(self, state, player_id):
        return [ScoreBreakdown("penalty", "Fouls", -2)] if player_id == "b" else []

    def is_scorable_event(self, event):
        return event.type == "action:executed"

    def process_scorable_event(self, event):
        self.get_tracker(event.player_id)["successes"] += 1

    def get_event_bonus(self, event, player_id):
        return 1 if event.type == "action:executed" and event.player_id == player_id else 0

    def detect_achievements(self, event):
        tracker = self.get_tracker(event.player_id) if event.player_id else {}
        if tracker.get("actions", 0) >= 2:
            return {event.player_id: ["busy"]}
        return {}


def make_state(scores):
    return GameState(
        game_id="g",
        players=[Player(pid, pid.upper(), score=score) for pid, score in scores.items()],
    )


def executed(player_id):
    return GameEvent(type="action:executed", player_id=player_id, data={"action": Action(player_id, "move")})


class TestCalculateScore:
    def test_totals_and_breakdown(self):
        context = GameContext.create()
        updates = []
        context.event_bus.on("scores:updated", updates.append)
        scoring = PointsScoring(context)
        scoring.track_event(executed("a"))

        results = {r.player_id: r for r in scoring.calculate_score(make_state({"a": 10, "b": 20}))}

        assert results["a"].total_score == 10 + 5 + 1
        assert results["b"].total_score == 20 - 2
        assert [b.category for b in results["a"].breakdown] == ["base", "bonus", "bonus"]
        assert results["b"].breakdown[-1].description == "Fouls"
        assert len(updates) == 1
        assert [e.player_id for e in updates[0].data["leaderboard"]] == ["b", "a"]

    def test_events_are_not_deduplicated(self):
        scoring = PointsScoring(GameContext.create())
        event = executed("a")
        scoring.track_event(event)
        scoring.track_event(event)
        assert scoring.calculate_event_bonuses("a") == 2
        assert scoring.get_tracker("a")["actions"] == 2
        assert scoring.get_tracker("a")["successes"] == 2

    def test_reset(self):
        scoring = PointsScoring(GameContext.create())
        scoring.track_event(executed("a"))
        scoring.calculate_score(make_state({"a": 1}))
        scoring.reset()
        assert scoring.scores == {}
        assert scoring.events == []
        assert scoring.bonus_trackers == {}
        assert len(scoring.rules) == 1


class TestLeaderboard:
    def test_ties_get_sequential_ranks(self):
        scoring = PointsScoring(GameContext.create())
        scoring.scores = {"a": 50, "b": 80, "c": 80, "d": 10}
        ranks = {e.player_id: e.rank for e in scoring.get_leaderboard()}
        assert ranks == {"a": 3, "b": 1, "c": 2, "d": 4}

    def test_player_name_falls_back_to_id(self):
        scoring = PointsScoring(GameContext.create())
        scoring.scores = {"ghost": 1}
        assert scoring.get_leaderboard()[0].player_name == "ghost"


class TestAchievements:
    def test_unlocked_once_per_player(self):
        context = GameContext.create()
        unlocked = []
        context.event_bus.on("achievements:unlocked", unlocked.append)
        scoring = PointsScoring(context)

        for _ in range(3):
            scoring.track_event(executed("a"))

        assert len(unlocked) == 1
        assert unlocked[0].player_id == "a"
        assert unlocked[0].data["achievements"] == ["busy"]

    def test_builders(self):
        ended = GameEvent(type="game:ended", data={"winners": ["a"]})
        tracker = {"actions": 3, "streaks": {"current": 0, "best": 4}}
        check = AchievementCheck("a", ended, None, tracker, winners=["a"])

        achievements = [
            FIRST_WIN,
            counter_achievement("busy", "Busy", "3 actions", "actions", 3),
            counter_achievement("very_busy", "Very busy", "10 actions", "actions", 10),
            streak_achievement("streak", "Streak", "4 in a row", 4),
            win_achievement("lucky", "Lucky", "never", condition=lambda ctx: False),
        ]
        assert evaluate_achievements(achievements, check) == ["first_win", "busy", "streak"]

        loser = AchievementCheck("b", ended, None, {}, winners=["a"])
        assert evaluate_achievements([FIRST_WIN], loser) == []

    def test_rarity_points(self):
        assert FIRST_WIN.points == RARITY_POINTS["common"]
