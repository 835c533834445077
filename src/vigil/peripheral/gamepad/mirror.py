"""Mirror a physical controller onto a virtual one on a background thread."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

import reactivex
from reactivex.subject import BehaviorSubject

from vigil.peripheral.core import Peripheral, PeripheralInfo
from vigil.peripheral.gamepad.errors import ControllerError, InputLostError
from vigil.peripheral.gamepad.mapping import map_sample
from vigil.peripheral.gamepad.physical import (ControllerBackend, DeviceKind,
                                               JoystickSample,
                                               PhysicalController)
from vigil.peripheral.gamepad.virtual import (VirtualButton,
                                              VirtualController,
                                              VirtualDeviceState)
from vigil.utilities.logging import get_logger
from vigil.utilities.logging_control import get_logging_controller

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL_MS = 16
DEFAULT_BACKOFF_SECONDS = 1.0
DEFAULT_PRESS_DURATION_MS = 150


class MirrorState(StrEnum):
    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    ENUMERATING = "enumerating"
    NO_DEVICE_FOUND = "no_device_found"
    ACQUIRED = "acquired"
    POLLING = "polling"
    REACQUIRING = "reacquiring"
    FAILED = "failed"
    STOPPED = "stopped"


# States in which the mirror will never submit another report.
TERMINAL_STATES = frozenset(
    {
        MirrorState.DISABLED,
        MirrorState.NO_DEVICE_FOUND,
        MirrorState.FAILED,
        MirrorState.STOPPED,
    }
)


@dataclass(frozen=True, slots=True)
class MirrorStatus:
    state: MirrorState
    message: str
    device_name: str | None = None

    def __str__(self) -> str:
        return self.message


class InputMirror(Peripheral[MirrorStatus]):
    """Copy physical controller input to a virtual controller.

    The polling thread and :meth:`press_button` share one report. Both take
    the report lock before touching it, and polling skips submission while a
    press is held, so an injected press is never overwritten mid-hold.
    """

    def __init__(
        self,
        virtual: VirtualController | None,
        backend: ControllerBackend,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        press_duration_ms: int = DEFAULT_PRESS_DURATION_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__()
        self._backend = backend
        self._poll_interval = poll_interval_ms / 1000
        self._backoff = backoff_seconds
        self.press_duration_ms = press_duration_ms
        self._sleep = sleep

        self._stop_event = threading.Event()
        self._injecting = threading.Event()
        self._report_lock = threading.Lock()
        self._press_lock = threading.Lock()
        self._report = VirtualDeviceState()
        self._device: PhysicalController | None = None
        self._thread: threading.Thread | None = None
        self._disposed = False
        self.reports_submitted = 0

        self._status = MirrorStatus(MirrorState.UNINITIALIZED, "Controller mirror not started")
        self._status_subject: BehaviorSubject[MirrorStatus] = BehaviorSubject(self._status)

        self._virtual: VirtualController | None = None
        if virtual is None:
            self._set_status(MirrorState.DISABLED, "Virtual controller unavailable")
            return
        try:
            virtual.connect()
        except Exception as exc:
            logger.error("Failed to initialize the virtual controller: %s", exc)
            self._set_status(
                MirrorState.DISABLED, f"Failed to initialize the virtual controller: {exc}"
            )
            return
        self._virtual = virtual

    # Status ---------------------------------------------------------------
    @property
    def state(self) -> MirrorState:
        return self._status.state

    @property
    def status(self) -> str:
        return self._status.message

    @property
    def available(self) -> bool:
        """Whether injected presses currently reach a virtual controller."""

        return (
            not self._disposed
            and self._virtual is not None
            and self._status.state not in TERMINAL_STATES
        )

    @property
    def report(self) -> VirtualDeviceState:
        """A copy of the report as last written."""

        with self._report_lock:
            return self._report.copy()

    @property
    def injecting(self) -> bool:
        return self._injecting.is_set()

    def peripheral_info(self) -> PeripheralInfo:
        device = self._device
        return PeripheralInfo(id="input-mirror", name=device.name if device else None)

    def _event_stream(self) -> reactivex.Observable[MirrorStatus]:
        return self._status_subject

    def _set_status(
        self,
        state: MirrorState,
        message: str,
        *,
        level: int = logging.INFO,
    ) -> None:
        device = self._device
        self._status = MirrorStatus(state, message, device.name if device else None)
        logger.log(level, "Controller mirror %s: %s", state.value, message)
        try:
            self._status_subject.on_next(self._status)
        except Exception:
            logger.exception("Controller status subscriber failed")

    # Lifecycle ------------------------------------------------------------
    def start(self) -> bool:
        """Start the polling thread; return ``False`` when it cannot run."""

        if self._disposed or self._virtual is None:
            return False
        if self._thread is not None:
            return self._thread.is_alive()
        self._thread = threading.Thread(
            target=self._run,
            name="vigil-input-mirror",
            daemon=True,
        )
        self._thread.start()
        return True

    def stop(self, timeout: float | None = None) -> None:
        """Signal cancellation and wait for the polling thread to exit."""

        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def join(self, timeout: float | None = None) -> bool:
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def dispose(self) -> None:
        """Release the virtual then the physical device. Safe to repeat."""

        if self._disposed:
            return
        self._disposed = True
        self.stop()
        with self._report_lock:
            self._release_virtual()
        self._release_device()
        if self._status.state not in TERMINAL_STATES:
            self._set_status(MirrorState.STOPPED, "Controller mirror stopped")
        self._status_subject.on_completed()

    def __enter__(self) -> InputMirror:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # Injection ------------------------------------------------------------
    def press_button(self, button: VirtualButton, duration_ms: int | None = None) -> bool:
        """Hold ``button`` for ``duration_ms`` then release it.

        Blocks for the whole hold. Returns ``False`` without doing anything
        when no virtual controller can receive the press.
        """

        if not self.available:
            return False
        hold_ms = self.press_duration_ms if duration_ms is None else duration_ms

        with self._press_lock:
            with self._report_lock:
                virtual = self._virtual
                if virtual is None:
                    return False
                self._injecting.set()
                try:
                    self._report.set_button(button, True)
                    virtual.submit(self._report)
                except Exception:
                    logger.exception("Failed to press virtual button %s", button.value)
                    self._report.set_button(button, False)
                    self._injecting.clear()
                    return False
            try:
                self._sleep(hold_ms / 1000)
            finally:
                with self._report_lock:
                    self._report.set_button(button, False)
                    try:
                        if self._virtual is not None:
                            self._virtual.submit(self._report)
                    finally:
                        self._injecting.clear()
        logger.debug("Pressed virtual button %s for %d ms", button.value, hold_ms)
        return True

    # Polling thread -------------------------------------------------------
    def _run(self) -> None:
        try:
            device = self._enumerate()
            if device is None:
                return
            self._device = device
            self._mirror(device)
        except Exception as exc:
            logger.exception("Controller mirroring stopped unexpectedly")
            self._set_status(
                MirrorState.FAILED, f"General mirroring error: {exc}", level=logging.ERROR
            )
        finally:
            stopping = self._stop_event.is_set()
            if stopping:
                with self._report_lock:
                    self._release_virtual()
            self._release_device()
            if stopping and self._status.state not in TERMINAL_STATES:
                    self._set_status(MirrorState.STOPPED, "Controller mirror stopped")

    def _enumerate(self) -> PhysicalController | None:
        self._set_status(MirrorState.ENUMERATING, "Looking for a physical controller")
        for kind in (DeviceKind.GAMEPAD, DeviceKind.JOYSTICK):
            device = self._backend.find(kind)
            if device is not None:
                logger.info("Found %s %s", kind.value, device.name)
                return device
        self._set_status(
            MirrorState.NO_DEVICE_FOUND,
            "No physical controller was found",
            level=logging.WARNING,
        )
        return None

    def _mirror(self, device: PhysicalController) -> None:
        try:
            device.acquire()
        except InputLostError as exc:
            self._set_status(
                MirrorState.REACQUIRING, f"Could not acquire {device.name}: {exc}"
            )
        else:
            self._set_status(
                MirrorState.ACQUIRED, f"Physical controller found: {device.name}. Mirroring..."
            )

        sampled = get_logging_controller()
        while not self._stop_event.is_set():
            try:
                device.poll()
                self._submit_sample(device.read())
            except InputLostError as exc:
                sampled.log(
                    "mirror.input_lost",
                    logger,
                    logging.WARNING,
                    "Input lost on %s: %s",
                    device.name,
                    exc,
                )
                self._set_status(MirrorState.REACQUIRING, f"Input lost, re-acquiring: {exc}")
                try:
                    device.acquire()
                except ControllerError as retry_exc:
                    self._set_status(
                        MirrorState.REACQUIRING,
                        f"Re-acquire failed, retrying in {self._backoff:g}s: {retry_exc}",
                    )
                    if self._stop_event.wait(self._backoff):
                        break
                    continue
            except ControllerError as exc:
                self._set_status(
                    MirrorState.FAILED,
                    f"Unrecoverable mirroring error: {exc}",
                    level=logging.ERROR,
                )
                return
            else:
                if self._status.state is not MirrorState.POLLING:
                    self._set_status(MirrorState.POLLING, f"Mirroring {device.name}")

            if self._stop_event.wait(self._poll_interval):
                break

    def _submit_sample(self, sample: JoystickSample) -> bool:
        with self._report_lock:
            virtual = self._virtual
            if virtual is None or self._injecting.is_set():
                return False
            map_sample(sample, self._report)
            try:
                virtual.submit(self._report)
            except Exception as exc:
                get_logging_controller().log(
                    "mirror.submit_failed",
                    logger,
                    logging.ERROR,
                    "Virtual controller update failed: %s",
                    exc,
                )
                return False
            self.reports_submitted += 1
            return True

    def _release_device(self) -> None:
        device, self._device = self._device, None
        if device is None:
            return
        try:
            device.release()
        except ControllerError as exc:
            logger.warning("Releasing %s failed: %s", device.name, exc)

    def _release_virtual(self) -> None:
        virtual, self._virtual = self._virtual, None
        if virtual is None:
            return
        try:
            virtual.disconnect()
        except Exception as exc:
            logger.warning("Disconnecting the virtual controller failed: %s", exc)
