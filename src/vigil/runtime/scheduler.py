"""Cooperative, priority-ordered scheduler for generator routines.

Routines are generators that suspend by yielding a wait condition::

    def sync_cell() -> Routine:
        while True:
            yield WaitEvent(ADDRESS_FOUND)
            cell.address = table.lookup(cell.key)

A raised event marks every routine waiting on it as ready; the next
:meth:`CooperativeScheduler.tick` resumes all ready routines once, highest
priority first and in registration order for equal priorities. Only one
routine runs at a time, so routines never need locks among themselves, but a
routine that does not reach its next ``yield`` promptly stalls every routine
after it in the tick.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Generator, Iterable, Union

from vigil.utilities.logging import get_logger

if TYPE_CHECKING:
    from vigil.peripheral.core.event_bus import EventBus, SubscriptionHandle

logger = get_logger(__name__)

MAX_PRIORITY = 2**31 - 1


@dataclass(frozen=True, slots=True)
class WaitEvent:
    """Suspend until the named event is raised."""

    name: str


@dataclass(frozen=True, slots=True)
class WaitTask:
    """Suspend until another task finishes, faults or is cancelled."""

    task: "TaskHandle"


@dataclass(frozen=True, slots=True)
class WaitSeconds:
    """Suspend until ``seconds`` of tick time have accumulated."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("WaitSeconds.seconds must be non-negative")


Wait = Union[WaitEvent, WaitTask, WaitSeconds]
Routine = Generator[Wait, None, None]


class TaskState(StrEnum):
    WAITING = "waiting"
    READY = "ready"
    FINISHED = "finished"
    FAULTED = "faulted"
    CANCELLED = "cancelled"


_TERMINAL_STATES = frozenset({TaskState.FINISHED, TaskState.FAULTED, TaskState.CANCELLED})


class TaskHandle:
    """Handle to a routine registered with a :class:`CooperativeScheduler`."""

    __slots__ = (
        "name",
        "priority",
        "sequence",
        "state",
        "_routine",
        "_scheduler",
        "_wait",
        "_deadline",
        "_cancel_requested",
    )

    def __init__(
        self,
        scheduler: CooperativeScheduler,
        routine: Routine,
        *,
        name: str,
        priority: int,
        sequence: int,
    ) -> None:
        self.name = name
        self.priority = priority
        self.sequence = sequence
        self.state = TaskState.READY
        self._routine = routine
        self._scheduler = scheduler
        self._wait: Wait | None = None
        self._deadline: float | None = None
        self._cancel_requested = False

    @property
    def done(self) -> bool:
        return self.state in _TERMINAL_STATES

    @property
    def waiting_on(self) -> Wait | None:
        return self._wait

    def cancel(self) -> None:
        self._scheduler.cancel(self)

    def __repr__(self) -> str:
        return (
            f"TaskHandle(name={self.name!r}, priority={self.priority}, "
            f"state={self.state.value})"
        )


class CooperativeScheduler:
    """Run generator routines on a single logical thread of control.

    ``raise_event`` may be called from any thread; routines only ever run
    inside :meth:`start` and :meth:`tick` on the caller's thread.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks: list[TaskHandle] = []
        self._ready: list[TaskHandle] = []
        self._event_waiters: dict[str, list[TaskHandle]] = {}
        self._task_waiters: dict[int, list[TaskHandle]] = {}
        self._timers: list[TaskHandle] = []
        self._elapsed = 0.0
        self._next_sequence = 0

    @property
    def tasks(self) -> tuple[TaskHandle, ...]:
        """Live (not yet terminated) tasks in registration order."""

        with self._lock:
            return tuple(self._tasks)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def start(
        self,
        routine: Routine,
        *,
        priority: int = 0,
        name: str | None = None,
    ) -> TaskHandle:
        """Register ``routine`` and run it up to its first suspension point."""

        with self._lock:
            sequence = self._next_sequence
            self._next_sequence += 1
            task = TaskHandle(
                self,
                routine,
                name=name or getattr(routine, "__name__", f"task-{sequence}"),
                priority=priority,
                sequence=sequence,
            )
            self._tasks.append(task)
        logger.debug("Starting routine %s with priority %d", task.name, priority)
        self._advance(task)
        return task

    def raise_event(self, name: str) -> int:
        """Mark every task waiting on ``name`` ready for the next tick."""

        with self._lock:
            waiters = self._event_waiters.pop(name, [])
            for task in waiters:
                self._make_ready(task)
        logger.debug("Event %s released %d task(s)", name, len(waiters))
        return len(waiters)

    def tick(self, delta_seconds: float = 0.0) -> int:
        """Resume every ready task once; return how many were resumed."""

        if delta_seconds < 0:
            raise ValueError("delta_seconds must be non-negative")

        with self._lock:
            self._elapsed += delta_seconds
            self._release_due_timers()
            batch = sorted(self._ready, key=lambda task: (-task.priority, task.sequence))
            self._ready = []

        resumed = 0
        for task in batch:
            if task.state is not TaskState.READY:
                continue
            self._advance(task)
            resumed += 1
        return resumed

    def cancel(self, task: TaskHandle) -> None:
        """Terminate ``task``; tasks waiting on it become ready."""

        if task.done:
            return
        if getattr(task._routine, "gi_running", False):
            # Cancelled from inside its own body; finish once it yields.
            task._cancel_requested = True
            return
        with self._lock:
            self._detach(task)
        task._routine.close()
        self._finish(task, TaskState.CANCELLED)

    def attach(self, bus: EventBus, *event_types: str) -> list[SubscriptionHandle]:
        """Forward bus events of ``event_types`` to :meth:`raise_event`."""

        return [
            bus.subscribe(event_type, lambda event: self.raise_event(event.event_type))
            for event_type in event_types
        ]

    # Internal helpers ---------------------------------------------------
    def _advance(self, task: TaskHandle) -> None:
        try:
            wait = next(task._routine)
        except StopIteration:
            self._finish(task, TaskState.FINISHED)
            return
        except Exception:
            logger.exception("Routine %s faulted and was terminated", task.name)
            self._finish(task, TaskState.FAULTED)
            return

        if task._cancel_requested:
            task._routine.close()
            self._finish(task, TaskState.CANCELLED)
            return

        if not isinstance(wait, (WaitEvent, WaitTask, WaitSeconds)):
            logger.error(
                "Routine %s yielded %r, which is not a wait condition", task.name, wait
            )
            task._routine.close()
            self._finish(task, TaskState.FAULTED)
            return

        self._arm(task, wait)

    def _arm(self, task: TaskHandle, wait: Wait) -> None:
        with self._lock:
            task._wait = wait
            task.state = TaskState.WAITING
            if isinstance(wait, WaitEvent):
                self._event_waiters.setdefault(wait.name, []).append(task)
            elif isinstance(wait, WaitTask):
                if wait.task.done:
                    self._make_ready(task)
                else:
                    self._task_waiters.setdefault(wait.task.sequence, []).append(task)
            else:
                task._deadline = self._elapsed + wait.seconds
                self._timers.append(task)

    def _make_ready(self, task: TaskHandle) -> None:
        task.state = TaskState.READY
        task._wait = None
        task._deadline = None
        self._ready.append(task)

    def _release_due_timers(self) -> None:
        due = [
            task
            for task in self._timers
            if task._deadline is not None and task._deadline <= self._elapsed
        ]
        for task in due:
            self._timers.remove(task)
            self._make_ready(task)

    def _detach(self, task: TaskHandle) -> None:
        for bucket in self._iter_wait_buckets():
            if task in bucket:
                bucket.remove(task)
        if task in self._ready:
            self._ready.remove(task)

    def _iter_wait_buckets(self) -> Iterable[list[TaskHandle]]:
        yield from self._event_waiters.values()
        yield from self._task_waiters.values()
        yield self._timers

    def _finish(self, task: TaskHandle, state: TaskState) -> None:
        with self._lock:
            task.state = state
            task._wait = None
            if task in self._tasks:
                self._tasks.remove(task)
            for waiter in self._task_waiters.pop(task.sequence, []):
                self._make_ready(waiter)
        logger.debug("Routine %s ended as %s", task.name, state.value)
