"""Explicitly constructed runtime context shared by every component."""

from __future__ import annotations

from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Callable, Protocol

from reactivex.abc import DisposableBase

from vigil.peripheral.core import PeripheralMessageEnvelope
from vigil.peripheral.core.event_bus import EventBus, SubscriptionHandle
from vigil.peripheral.core.events import (ADDRESS_FOUND, CONTROLLER_STATUS,
                                          PROCESS_CLOSED)
from vigil.peripheral.gamepad.mirror import (InputMirror, MirrorState,
                                             MirrorStatus)
from vigil.runtime.scheduler import (MAX_PRIORITY, CooperativeScheduler,
                                     Routine, TaskHandle, WaitEvent)
from vigil.runtime.state_cache import AddressCell, AddressTable, StateCache
from vigil.utilities.env import Configuration
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)

DISTRIBUTION_NAME = "vigil"

MirrorFactory = Callable[[], InputMirror | None]


@dataclass(frozen=True, slots=True)
class CoreSettings:
    enable_controller_mode: bool = False
    close_on_exit: bool = False

    @classmethod
    def from_configuration(cls) -> CoreSettings:
        return cls(
            enable_controller_mode=Configuration.controller_mode_enabled(),
            close_on_exit=Configuration.close_on_exit(),
        )


class Closable(Protocol):
    def close(self) -> None: ...


def get_version() -> str:
    try:
        return f"v{version(DISTRIBUTION_NAME)}"
    except PackageNotFoundError:
        return "Dev"


class Core:
    """Owns the bus, the scheduler, the state cache and the controller mirror.

    Construct one per process and pass it to whatever needs it.
    """

    def __init__(
        self,
        *,
        bus: EventBus,
        scheduler: CooperativeScheduler,
        cache: StateCache,
        address_table: AddressTable,
        settings: CoreSettings,
        overlay: Closable | None = None,
        mirror_factory: MirrorFactory | None = None,
    ) -> None:
        self.bus = bus
        self.scheduler = scheduler
        self.cache = cache
        self.address_table = address_table
        self.settings = settings
        self.overlay = overlay
        self.controller: InputMirror | None = None
        self._mirror_factory = mirror_factory
        self._routines: list[TaskHandle] = []
        self._bus_subscriptions: list[SubscriptionHandle] = []
        self._status_subscription: DisposableBase | None = None
        self._initialized = False
        self._disposed = False

    @property
    def routines(self) -> tuple[TaskHandle, ...]:
        return tuple(self._routines)

    def initialize(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        if self.settings.enable_controller_mode:
            self._start_controller()
        self.initialize_routines()

    def initialize_routines(self) -> None:
        if self._routines:
            logger.debug("Core routines already registered")
            return

        self._routines.append(
            self.scheduler.start(
                self._game_closed_actions(), priority=0, name="game_closed_actions"
            )
        )
        for cell, priority in self._sync_plan():
            self._routines.append(
                self.scheduler.start(
                    self._sync_address(cell),
                    priority=priority,
                    name=f"sync:{cell.key}",
                )
            )
        self._bus_subscriptions = self.scheduler.attach(
            self.bus, ADDRESS_FOUND, PROCESS_CLOSED
        )
        logger.info("Registered %d runtime routines", len(self._routines))

    def tick(self, delta_seconds: float = 0.0) -> int:
        return self.scheduler.tick(delta_seconds)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for handle in self._bus_subscriptions:
            self.bus.unsubscribe(handle)
        self._bus_subscriptions = []
        for task in self._routines:
            task.cancel()
        if self._status_subscription is not None:
            self._status_subscription.dispose()
            self._status_subscription = None
        controller, self.controller = self.controller, None
        if controller is not None:
            controller.stop()
            controller.dispose()

    # Routines -------------------------------------------------------------
    def _sync_plan(self) -> list[tuple[AddressCell, int]]:
        cache = self.cache
        return [
            (cache.game_states, MAX_PRIORITY - 3),
            (cache.loaded_files, MAX_PRIORITY - 2),
            (cache.area_change_counter, MAX_PRIORITY - 1),
            (cache.game_cull, MAX_PRIORITY),
            (cache.rotation_selector, MAX_PRIORITY),
            (cache.rotator_helper, MAX_PRIORITY),
        ]

    def _sync_address(self, cell: AddressCell) -> Routine:
        while True:
            yield WaitEvent(ADDRESS_FOUND)
            cell.address = self.address_table.lookup(cell.key)
            logger.debug("%s resolved to %#x", cell.key, cell.address)

    def _game_closed_actions(self) -> Routine:
        while True:
            yield WaitEvent(PROCESS_CLOSED)
            self.cache.reset()
            if self.settings.close_on_exit and self.overlay is not None:
                logger.info("Observed process closed; closing overlay")
                self.overlay.close()

    # Controller -----------------------------------------------------------
    def _start_controller(self) -> None:
        if self._mirror_factory is None:
            logger.warning("Controller mode is enabled but no mirror factory is configured")
            return
        try:
            mirror = self._mirror_factory()
        except Exception:
            logger.exception("Controller mirror could not be created")
            return
        if mirror is None:
            logger.warning("Controller mode is enabled but no virtual controller is available")
            return
        if mirror.state is MirrorState.DISABLED:
            logger.warning("Controller mirror disabled: %s", mirror.status)
            mirror.dispose()
            return

        self._status_subscription = mirror.observe.subscribe(self._forward_status)
        mirror.start()
        self.controller = mirror

    def _forward_status(self, envelope: PeripheralMessageEnvelope[MirrorStatus]) -> None:
        self.bus.emit(CONTROLLER_STATUS, PeripheralMessageEnvelope.unwrap_peripheral(envelope))
