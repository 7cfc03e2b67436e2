"""
Outbound session events.

Listeners are async callables registered on an EventBus. Delivery is
best-effort and at-most-once: a failing listener is logged and skipped, and
never affects the command that produced the event or the other listeners.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pods.session.types import SessionSnapshot

logger = structlog.get_logger()


class EventType(StrEnum):
    PARTICIPANT_JOINED = "participant_joined"
    ROUND_GENERATED = "round_generated"
    ROUND_STARTED = "round_started"
    ROUND_RESET = "round_reset"
    ROUND_ENDED = "round_ended"
    GAME_ENDED = "game_ended"
    PARTICIPANT_DROPPED = "participant_dropped"
    SETTINGS_UPDATED = "settings_updated"
    SESSION_ENDED = "session_ended"
    SESSION_EXPIRED = "session_expired"


@dataclass(frozen=True)
class SessionEvent:
    type: EventType
    session: SessionSnapshot
    payload: dict[str, Any] = field(default_factory=dict)


type EventListener = Callable[[SessionEvent], Awaitable[None]]


class EventBus:
    """Multicast of session events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[tuple[EventListener, frozenset[EventType] | None]] = []

    def subscribe(self, listener: EventListener, *event_types: EventType) -> None:
        """Register a listener for the given event types, or for all events when none are given."""
        self._listeners.append((listener, frozenset(event_types) or None))

    def unsubscribe(self, listener: EventListener) -> None:
        self._listeners = [(fn, types) for fn, types in self._listeners if fn is not listener]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, event: SessionEvent) -> None:
        for listener, event_types in list(self._listeners):
            if event_types is not None and event.type not in event_types:
                continue
            try:
                await listener(event)
            except Exception:
                logger.exception("event listener failed", event_type=event.type, code=event.session.code)
