"""
Runtime context shared by an engine, its manager and its scoring system:
the event bus, the clock and the seeded randomizer.
"""
import asyncio
import logging
import random
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger("agentarena.events")


@dataclass
class GameEvent:
    type: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    player_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """String-topic publish/subscribe. Handlers run synchronously in subscription order."""

    def __init__(self):
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def on(self, event_type: str, handler: EventHandler):
        self._handlers[event_type].append(handler)

    def off(self, event_type: str, handler: EventHandler):
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: GameEvent):
        for handler in list(self._handlers.get(event.type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler for '{event.type}' failed: {e}")

    def listener_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    def clear(self):
        self._handlers.clear()


class Clock:
    """Wall clock. Tests swap in a clock whose sleep returns immediately."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float):
        await asyncio.sleep(seconds)


@dataclass
class GameContext:
    game_id: str = field(default_factory=lambda: f"game-{uuid.uuid4().hex[:8]}")
    event_bus: EventBus = field(default_factory=EventBus)
    clock: Clock = field(default_factory=Clock)
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(cls, game_id: str | None = None, seed: int | None = None, clock: Clock | None = None) -> "GameContext":
        ctx = cls(rng=random.Random(seed), clock=clock or Clock())
        if game_id:
            ctx.game_id = game_id
        return ctx

    def emit(self, event_type: str, data: dict | None = None, player_id: str | None = None):
        self.event_bus.emit(GameEvent(
            type=event_type,
            timestamp=self.clock.now(),
            player_id=player_id,
            data=data or {},
        ))
