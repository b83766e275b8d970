"""Topic-scoped publish/subscribe for document updates.

The repair coordinator writes a repaired diagram to its own store before it
publishes, so subscribers observe the change and must not re-apply it to
that store.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List


logger = logging.getLogger(__name__)

DIAGRAM_UPDATED = "documentation:diagram-updated"

Handler = Callable[[Any], None]


class EventBus:
    """Synchronous in-process event bus.

    Handlers run in subscription order on the publisher's thread. A failing
    handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, payload: Any) -> int:
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception("Event handler failed", extra={"topic": topic})
        return delivered

