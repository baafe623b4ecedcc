"""
booking_kernel.services.dispatcher -- in-process domain event fan-out.

Responsibility:
    Lets callers subscribe to ``RequestAccepted``, ``AssignmentStatusChanged``
    and ``CategoryOverBudget`` to drive notifications.  Registries publish
    only after their unit of work is committed and the event lock released,
    so handlers may safely call back into the kernel.

Failure modes:
    A handler that raises is logged (``domain_event_handler_failed``) and
    the remaining handlers still run.  The committed state is not rolled
    back; notification delivery is the subscriber's concern.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable, Iterable

from booking_kernel.domain.events import DomainEvent
from booking_kernel.logging_config import get_logger

logger = get_logger("services.dispatcher")

Handler = Callable[[DomainEvent], None]


class EventDispatcher:
    """Synchronous publish/subscribe keyed by event class.

    Subscribing to ``DomainEvent`` receives every event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[DomainEvent],
        handler: Handler,
    ) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            with self._lock:
                handlers = [
                    h
                    for event_cls, hs in self._handlers.items()
                    if isinstance(event, event_cls)
                    for h in hs
                ]
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception("domain_event_handler_failed", extra={
                        "domain_event": type(event).__name__,
                        "event_id": event.event_id,
                    })
