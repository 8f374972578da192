"""
Achievement definitions. Achievements are informational: they never change a
score unless a game's bonus hook reads them.
"""
from dataclasses import dataclass, field
from typing import Callable

from games.base import GameState
from games.context import GameEvent

RARITY_POINTS = {"common": 10, "uncommon": 25, "rare": 50, "epic": 100, "legendary": 250}


@dataclass
class AchievementCheck:
    """What an achievement predicate gets to look at."""
    player_id: str
    event: GameEvent
    state: GameState | None
    tracker: dict
    winners: list[str] = field(default_factory=list)

    @property
    def is_winner(self) -> bool:
        return self.player_id in self.winners


@dataclass
class Achievement:
    id: str
    name: str
    description: str
    condition: Callable[[AchievementCheck], bool]
    category: str = "general"
    rarity: str = "common"

    @property
    def points(self) -> int:
        return RARITY_POINTS.get(self.rarity, 0)

    def check(self, ctx: AchievementCheck) -> bool:
        return bool(self.condition(ctx))


def counter_achievement(id: str, name: str, description: str, key: str, target: int, **kwargs) -> Achievement:
    """Unlocks once tracker[key] reaches target."""
    return Achievement(id, name, description, lambda ctx: ctx.tracker.get(key, 0) >= target, **kwargs)


def streak_achievement(id: str, name: str, description: str, length: int, **kwargs) -> Achievement:
    return Achievement(
        id, name, description,
        lambda ctx: ctx.tracker.get("streaks", {}).get("best", 0) >= length,
        **kwargs,
    )


def win_achievement(id: str, name: str, description: str, condition=None, **kwargs) -> Achievement:
    """Unlocks for a winner of the ended game, optionally under an extra condition."""
    return Achievement(
        id, name, description,
        lambda ctx: ctx.event.type == "game:ended" and ctx.is_winner and (condition is None or condition(ctx)),
        **kwargs,
    )


FIRST_WIN = win_achievement("first_win", "First Victory", "Win your first game", category="victory")
MARATHON = counter_achievement(
    "marathon", "Marathon", "Take 50 actions in one game", "actions", 50, category="endurance", rarity="uncommon",
)

COMMON_ACHIEVEMENTS = [FIRST_WIN, MARATHON]


def evaluate_achievements(achievements: list[Achievement], ctx: AchievementCheck) -> list[str]:
    return [a.id for a in achievements if a.check(ctx)]
