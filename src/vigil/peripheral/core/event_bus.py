"""In-process bus carrying process notifications and runtime status.

Notifications such as :data:`~vigil.peripheral.core.events.ADDRESS_FOUND`
arrive from whatever watches the game process; the runtime core, the
scheduler and the rule engine publish and consume through the same bus.
"""

from __future__ import annotations

import bisect
import heapq
import threading
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Optional

from vigil.peripheral.core import Input
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)

__all__ = ["EventBus", "EventCallback", "SubscriptionHandle"]


EventCallback = Callable[[Input], None]


@dataclass(frozen=True, order=True)
class SubscriptionHandle:
    """Opaque handle returned when subscribing to the bus.

    Handles order by dispatch position: descending priority, then
    subscription order.
    """

    sort_key: tuple[int, int] = field(repr=False)
    event_type: Optional[str] = field(compare=False)
    callback: EventCallback = field(compare=False)

    @property
    def priority(self) -> int:
        return -self.sort_key[0]

    @property
    def sequence(self) -> int:
        return self.sort_key[1]


class EventBus:
    """Synchronous pub/sub dispatcher for :class:`Input` events.

    Callbacks run on the emitting thread. Subscribing and emitting may happen
    from different threads; dispatch works on a snapshot of the subscriber
    lists so callbacks can subscribe or unsubscribe while being notified.
    """

    def __init__(self) -> None:
        # event type (None for wildcard) -> handles kept in dispatch order
        self._registry: dict[Optional[str], list[SubscriptionHandle]] = {}
        self._next_sequence = 0
        self._lock = threading.RLock()

    def subscribe(
        self,
        event_type: Optional[str],
        callback: EventCallback,
        *,
        priority: int = 0,
    ) -> SubscriptionHandle:
        """Register ``callback`` for ``event_type`` events (``None`` for all)."""

        with self._lock:
            handle = SubscriptionHandle((-priority, self._next_sequence), event_type, callback)
            self._next_sequence += 1
            bisect.insort(self._registry.setdefault(event_type, []), handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Remove ``handle``; unknown or already removed handles are ignored."""

        with self._lock:
            handles = self._registry.get(handle.event_type)
            if handles is None or handle not in handles:
                return
            handles.remove(handle)
            if not handles:
                del self._registry[handle.event_type]

    def emit(
        self, event: Input | str, /, data: Any = None, *, producer_id: int = 0
    ) -> int:
        """Deliver ``event`` to its subscribers; return how many succeeded.

        A plain event name is wrapped in an :class:`Input` carrying ``data``.
        A failing callback is logged and the remaining callbacks still run.
        """

        if not isinstance(event, Input):
            event = Input(event_type=event, data=data, producer_id=producer_id)

        started_at = perf_counter()
        delivered = 0
        for handle in self._targets(event.event_type):
            try:
                handle.callback(event)
            except Exception:
                logger.exception(
                    "Subscriber %r failed for event %s", handle.callback, event.event_type
                )
            else:
                delivered += 1
        logger.debug(
            "Delivered %s to %d subscriber(s) in %.3fms",
            event.event_type,
            delivered,
            (perf_counter() - started_at) * 1000,
        )
        return delivered

    def run_on_event(
        self, event_type: Optional[str], *, priority: int = 0
    ) -> Callable[[EventCallback], EventCallback]:
        """Decorator variant of :meth:`subscribe`."""

        def decorator(callback: EventCallback) -> EventCallback:
            self.subscribe(event_type, callback, priority=priority)
            return callback

        return decorator

    def subscriber_count(self, event_type: Optional[str]) -> int:
        with self._lock:
            return len(self._registry.get(event_type, ()))

    def _targets(self, event_type: str) -> list[SubscriptionHandle]:
        with self._lock:
            wildcard = list(self._registry.get(None, ()))
            specific = list(self._registry.get(event_type, ()))
        return list(heapq.merge(wildcard, specific))
