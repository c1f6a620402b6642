from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registered:
    user_id: UUID


@dataclass(frozen=True)
class Verified:
    user_id: UUID


@dataclass(frozen=True)
class PasswordReset:
    user_id: UUID


class EventBus:
    """In-process, synchronous dispatch of domain events to subscribers."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self._handlers[event_type].remove(handler)

    def emit(self, event: object) -> None:
        for handler in list(self._handlers[type(event)]):
            handler(event)


event_bus = EventBus()


def _log_event(event: object) -> None:
    logger.info("%s: user %s", type(event).__name__, getattr(event, "user_id", "?"))


for _event_type in (Registered, Verified, PasswordReset):
    event_bus.subscribe(_event_type, _log_event)
