"""In-process publish/subscribe channel for plan display requests."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from domain.models import PlanRequest
from domain.ports import PlanChannelPort

logger = logging.getLogger(__name__)

Handler = Callable[[PlanRequest], None]


class InMemoryPlanChannel(PlanChannelPort):
    """Fan-out channel: every subscriber receives every request.

    Publishing is fire-and-forget. A failing handler is logged and the
    remaining handlers still receive the message.
    """

    def __init__(self):
        self._handlers: list[Handler] = []
        self._lock = threading.Lock()

    def publish(self, request: PlanRequest) -> None:
        with self._lock:
            handlers = list(self._handlers)
        if not handlers:
            logger.debug("Plan request for %s published with no listener", request.subject_id)
        for handler in handlers:
            try:
                handler(request)
            except Exception:
                logger.exception("Plan listener %r failed for %s", handler, request.subject_id)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
