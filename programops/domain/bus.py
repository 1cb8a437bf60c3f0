"""Synchronous in-process bus for scheduling and workflow events."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Publish/subscribe bus for domain events.

    Handlers run synchronously in registration order. The last
    ``keep`` published events are retained in ``published`` so callers can
    report what a request triggered.
    """

    def __init__(self, keep: int = 100) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)
        if keep < 1:
            raise ValueError(f"keep must be at least 1, got {keep}")
        self.published: deque[Any] = deque(maxlen=keep)

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event: Any) -> None:
        handlers = self._subscribers.get(type(event), [])
        logger.debug("Publishing %s to %d handlers", type(event).__name__, len(handlers))
        self.published.append(event)
        for handler in handlers:
            handler(event)

    def published_of(self, event_type: type) -> list[Any]:
        return [e for e in self.published if isinstance(e, event_type)]
