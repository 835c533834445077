"""Shared message types and the base class for status-publishing devices."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Any, Generic, TypeVar

import reactivex
from reactivex import operators as ops

from vigil.utilities.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class Input:
    """Message carried by the event bus.

    ``data`` is whatever the producer attaches: ``None`` for bare process
    notifications, a ``MirrorStatus`` or a ``DispatchRecord`` otherwise.
    """

    event_type: str
    data: Any = None
    producer_id: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


A = TypeVar("A")


@dataclass(frozen=True, slots=True)
class PeripheralInfo:
    id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class PeripheralMessageEnvelope(Generic[A]):
    peripheral_info: PeripheralInfo
    data: A

    @classmethod
    def unwrap_peripheral(cls, wrapper: PeripheralMessageEnvelope[A]) -> A:
        return wrapper.data


class Peripheral(Generic[A]):
    """Base class for devices that publish a stream of updates.

    Subclasses provide :meth:`_event_stream`; :attr:`observe` wraps every item
    with the device identity at the moment it was emitted and shares one
    upstream subscription between all observers.
    """

    def _event_stream(self) -> reactivex.Observable[A]:
        return reactivex.empty()

    def peripheral_info(self) -> PeripheralInfo:
        return PeripheralInfo()

    @cached_property
    def observe(self) -> reactivex.Observable[PeripheralMessageEnvelope[A]]:
        def wrap(item: A) -> PeripheralMessageEnvelope[A]:
            return PeripheralMessageEnvelope(self.peripheral_info(), item)

        def log_failure(error: Exception) -> None:
            logger.error("%s stream failed: %s", type(self).__name__, error)

        return self._event_stream().pipe(
            ops.map(wrap),
            ops.do_action(on_error=log_failure),
            ops.share(),
        )

    @cached_property
    def updates(self) -> reactivex.Observable[A]:
        """:attr:`observe` without the envelopes."""

        return self.observe.pipe(ops.map(PeripheralMessageEnvelope.unwrap_peripheral))
