"""
Scoring: turns the engine's event stream plus game state into per-player scores
and a leaderboard. Scores are derived values, never authoritative game state.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from games.base import GameState
from games.context import GameContext, GameEvent

logger = logging.getLogger("agentarena.scoring")


@dataclass
class ScoreBreakdown:
    category: str
    description: str
    points: float


@dataclass
class ScoreResult:
    player_id: str
    base_points: float
    bonus_points: float
    penalty_points: float
    total_score: float
    breakdown: list[ScoreBreakdown] = field(default_factory=list)


@dataclass
class LeaderboardEntry:
    player_id: str
    player_name: str
    score: float
    rank: int


@dataclass
class ScoringRule:
    id: str
    name: str
    category: str
    description: str
    evaluate: Callable[[GameState, str], float]


def new_bonus_tracker() -> dict:
    return {
        "actions": 0,
        "successes": 0,
        "failures": 0,
        "streaks": {"current": 0, "best": 0},
    }


class BaseScoringSystem(ABC):
    """
    Template for a game's scoring. Subclasses supply base/bonus/penalty
    hooks, decide which events matter and detect achievements.
    """

    def __init__(self, context: GameContext):
        self.context = context
        self.scores: dict[str, float] = {}
        self.events: list[GameEvent] = []
        self.rules: list[ScoringRule] = []
        self.bonus_trackers: dict[str, dict] = {}
        self.unlocked: dict[str, set[str]] = {}
        self.player_names: dict[str, str] = {}
        self.initialize_rules()

    def calculate_score(self, state: GameState) -> list[ScoreResult]:
        results = []
        for player in state.players:
            self.player_names[player.id] = player.name
            base = self.calculate_base_points(state, player.id)
            bonus = self.calculate_bonus_points(state, player.id)
            penalty = self.calculate_penalty_points(state, player.id)
            total = base + bonus - penalty
            self.scores[player.id] = total

            results.append(ScoreResult(
                player_id=player.id,
                base_points=base,
                bonus_points=bonus,
                penalty_points=penalty,
                total_score=total,
                breakdown=self.get_score_breakdown(state, player.id),
            ))

        self.context.emit("scores:updated", {
            "scores": results,
            "leaderboard": self.get_leaderboard(),
        })
        return results

    def track_event(self, event: GameEvent):
        """Feed one event. No dedup: submitting an event twice counts it twice."""
        self.events.append(event)
        self._update_bonus_trackers(event)

        if self.is_scorable_event(event):
            self.process_scorable_event(event)

        self._check_achievements(event)

    def get_leaderboard(self) -> list[LeaderboardEntry]:
        # stable sort, sequential ranks: equal scores are not merged
        ordered = sorted(self.scores.items(), key=lambda item: item[1], reverse=True)
        return [
            LeaderboardEntry(
                player_id=player_id,
                player_name=self.get_player_name(player_id),
                score=score,
                rank=index + 1,
            )
            for index, (player_id, score) in enumerate(ordered)
        ]

    def reset(self):
        self.scores.clear()
        self.events = []
        self.bonus_trackers.clear()
        self.unlocked.clear()
        self.rules = []
        self.initialize_rules()

    def get_tracker(self, player_id: str) -> dict:
        return self.bonus_trackers.setdefault(player_id, new_bonus_tracker())

    def get_score_breakdown(self, state: GameState, player_id: str) -> list[ScoreBreakdown]:
        breakdown = [ScoreBreakdown("base", "Base score", self.calculate_base_points(state, player_id))]

        for rule in self.rules:
            points = rule.evaluate(state, player_id)
            if points:
                breakdown.append(ScoreBreakdown(rule.category, rule.description, points))

        event_bonus = self.calculate_event_bonuses(player_id)
        if event_bonus:
            breakdown.append(ScoreBreakdown("bonus", "Event bonuses", event_bonus))

        breakdown.extend(self.get_penalty_breakdown(state, player_id))
        return breakdown

    def calculate_bonus_points(self, state: GameState, player_id: str) -> float:
        bonus = sum(rule.evaluate(state, player_id) for rule in self.rules if rule.category == "bonus")
        return bonus + self.calculate_event_bonuses(player_id)

    def calculate_event_bonuses(self, player_id: str) -> float:
        return sum(self.get_event_bonus(event, player_id) for event in self.events)

    def get_player_name(self, player_id: str) -> str:
        return self.player_names.get(player_id, player_id)

    def _update_bonus_trackers(self, event: GameEvent):
        if not event.player_id:
            return
        self.update_tracker_with_event(self.get_tracker(event.player_id), event)

    def _check_achievements(self, event: GameEvent):
        for player_id, achievements in self.detect_achievements(event).items():
            already = self.unlocked.setdefault(player_id, set())
            fresh = [a for a in achievements if a not in already]
            if not fresh:
                continue
            already.update(fresh)
            logger.info(f"{player_id} unlocked: {', '.join(fresh)}")
            self.context.emit("achievements:unlocked", {"achievements": fresh}, player_id=player_id)

    def update_tracker_with_event(self, tracker: dict, event: GameEvent):
        if event.type == "action:executed":
            tracker["actions"] += 1

    def detect_achievements(self, event: GameEvent) -> dict[str, list[str]]:
        """Achievement ids unlocked by this event, keyed by player id."""
        return {}

    # ====== Hooks ======

    @abstractmethod
    def initialize_rules(self):
        pass

    @abstractmethod
    def calculate_base_points(self, state: GameState, player_id: str) -> float:
        pass

    @abstractmethod
    def calculate_penalty_points(self, state: GameState, player_id: str) -> float:
        pass

    @abstractmethod
    def get_penalty_breakdown(self, state: GameState, player_id: str) -> list[ScoreBreakdown]:
        pass

    @abstractmethod
    def is_scorable_event(self, event: GameEvent) -> bool:
        pass

    @abstractmethod
    def process_scorable_event(self, event: GameEvent):
        pass

    @abstractmethod
    def get_event_bonus(self, event: GameEvent, player_id: str) -> float:
        pass
