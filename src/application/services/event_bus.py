"""In-process publish/subscribe for plan notifications.

Handlers run synchronously in emit order. Notifications are
fire-and-forget: a failing handler is logged and the remaining handlers
still run.
"""

from collections import defaultdict
from collections.abc import Callable
from contextlib import suppress
from typing import Any

from loguru import logger

from src.domain.value_objects.plan_event import PlanEvent

PlanEventHandler = Callable[[Any], None]


class PlanEventBus:
    def __init__(self) -> None:
        self._handlers: dict[PlanEvent, list[PlanEventHandler]] = defaultdict(list)

    def subscribe(self, event: PlanEvent, handler: PlanEventHandler) -> Callable[[], None]:
        """Register handler for event and return a function that removes
        it again."""
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            with suppress(ValueError):
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: PlanEvent, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for '{}' event failed", event.value)

    def handler_count(self, event: PlanEvent) -> int:
        return len(self._handlers.get(event, ()))

    def clear(self) -> None:
        self._handlers.clear()
