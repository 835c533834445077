import threading
import time

import pytest
from helpers.gamepad import (FakeControllerBackend, FakePhysicalController,
                             FakeVirtualController, wait_until)

from vigil.peripheral.gamepad import (ControllerDeviceError, InputLostError,
                                      InputMirror, MirrorState)
from vigil.peripheral.gamepad.physical import DeviceKind, JoystickSample
from vigil.peripheral.gamepad.virtual import (VirtualAxis, VirtualButton,
                                              VirtualDeviceState)

NEUTRAL_BUTTONS = (False,) * 10


def _mirror(
    virtual: FakeVirtualController | None,
    device: FakePhysicalController | None = None,
    *,
    kind: DeviceKind = DeviceKind.GAMEPAD,
    **kwargs,
) -> InputMirror:
    backend = FakeControllerBackend({kind: device} if device is not None else {})
    kwargs.setdefault("poll_interval_ms", 1)
    return InputMirror(virtual, backend, **kwargs)


def _record_states(mirror: InputMirror) -> list[MirrorState]:
    states: list[MirrorState] = []
    mirror.observe.subscribe(lambda envelope: states.append(envelope.data.state))
    return states


class TestInputMirrorPolling:
    """Group polling tests so physical input keeps reaching the virtual controller."""

    def test_polling_submits_mapped_reports(self) -> None:
        """Verify that a polled sample is translated and submitted to the virtual controller."""
        virtual = FakeVirtualController()
        device = FakePhysicalController(
            sample=JoystickSample(x=65535, buttons=(True,) + NEUTRAL_BUTTONS[1:])
        )
        mirror = _mirror(virtual, device)
        states = _record_states(mirror)

        try:
            assert mirror.start()
            assert virtual.wait_for_reports(1)
            assert wait_until(lambda: mirror.state is MirrorState.POLLING)
        finally:
            mirror.dispose()

        report = virtual.reports[0]
        assert report.axes[VirtualAxis.LEFT_X] == 32767
        assert report.buttons[VirtualButton.A]
        assert states[:3] == [
            MirrorState.UNINITIALIZED,
            MirrorState.ENUMERATING,
            MirrorState.ACQUIRED,
        ]
        assert mirror.reports_submitted >= 1

    def test_joystick_is_used_when_no_gamepad_exists(self) -> None:
        virtual = FakeVirtualController()
        device = FakePhysicalController("Flight Stick")
        mirror = _mirror(virtual, device, kind=DeviceKind.JOYSTICK)

        try:
            mirror.start()
            assert virtual.wait_for_reports(1)
            assert mirror.peripheral_info().name == "Flight Stick"
        finally:
            mirror.dispose()

    def test_no_device_found_is_terminal_and_keeps_virtual_connected(self) -> None:
        """Verify that an empty enumeration ends the loop without tearing down the virtual device."""
        virtual = FakeVirtualController()
        backend = FakeControllerBackend()
        mirror = InputMirror(virtual, backend)

        mirror.start()
        assert mirror.join(2.0)

        assert mirror.state is MirrorState.NO_DEVICE_FOUND
        assert backend.searched == [DeviceKind.GAMEPAD, DeviceKind.JOYSTICK]
        assert virtual.connected
        assert not mirror.press_button(VirtualButton.A)

        mirror.dispose()
        assert virtual.disconnect_calls == 1
        assert mirror.state is MirrorState.NO_DEVICE_FOUND

    def test_submit_failure_is_logged_and_polling_continues(self) -> None:
        class FlakyVirtual(FakeVirtualController):
            def __init__(self) -> None:
                super().__init__()
                self.failures = 1

            def submit(self, state: VirtualDeviceState) -> None:
                if self.failures:
                    self.failures -= 1
                    raise OSError("uinput busy")
                super().submit(state)

        virtual = FlakyVirtual()
        mirror = _mirror(virtual, FakePhysicalController())

        try:
            mirror.start()
            assert virtual.wait_for_reports(1)
            assert mirror.state is not MirrorState.FAILED
        finally:
            mirror.dispose()


class TestInputMirrorRecovery:
    """Group recovery tests so transient device loss never ends mirroring."""

    def test_input_loss_reacquires_without_waiting_for_backoff(self) -> None:
        """Verify that a successful immediate re-acquire resumes polling without sleeping the backoff."""
        virtual = FakeVirtualController()
        device = FakePhysicalController(poll_errors=[InputLostError("unplugged")])
        mirror = _mirror(virtual, device, backoff_seconds=30.0)
        states = _record_states(mirror)

        try:
            mirror.start()
            assert virtual.wait_for_reports(1)
        finally:
            mirror.dispose()

        assert device.acquire_calls == 2
        assert MirrorState.REACQUIRING in states
        assert states.index(MirrorState.REACQUIRING) < states.index(MirrorState.POLLING)

    def test_failed_reacquire_backs_off_until_stopped(self) -> None:
        """Ensure a failed re-acquire waits out the backoff and that stopping interrupts the wait."""

        class ReacquireFails(FakePhysicalController):
            def acquire(self) -> None:
                self.acquire_calls += 1
                if self.acquire_calls == 2:
                    raise InputLostError("still unplugged")

        virtual = FakeVirtualController()
        device = ReacquireFails(poll_errors=[InputLostError("unplugged")])
        mirror = _mirror(virtual, device, backoff_seconds=30.0)

        mirror.start()
        assert wait_until(lambda: "Re-acquire failed" in mirror.status)
        time.sleep(0.05)
        assert virtual.reports == []
        assert mirror.state is MirrorState.REACQUIRING

        started = time.monotonic()
        mirror.dispose()

        assert time.monotonic() - started < 5.0
        assert mirror.state is MirrorState.STOPPED
        assert device.release_calls == 1

    def test_initial_acquire_loss_enters_reacquire_path(self) -> None:
        virtual = FakeVirtualController()
        device = FakePhysicalController(acquire_errors=[InputLostError("busy")])
        mirror = _mirror(virtual, device)
        states = _record_states(mirror)

        try:
            mirror.start()
            assert virtual.wait_for_reports(1)
        finally:
            mirror.dispose()

        assert MirrorState.REACQUIRING in states
        assert MirrorState.ACQUIRED not in states

    def test_device_error_fails_and_releases_the_device(self) -> None:
        """Verify that an unrecoverable device error stops the loop and releases the physical device."""
        virtual = FakeVirtualController()
        device = FakePhysicalController(poll_errors=[ControllerDeviceError("firmware fault")])
        mirror = _mirror(virtual, device)

        mirror.start()
        assert mirror.join(2.0)

        assert mirror.state is MirrorState.FAILED
        assert "firmware fault" in mirror.status
        assert device.release_calls == 1
        assert not mirror.available
        mirror.dispose()

    def test_unexpected_error_is_reported_as_general_failure(self) -> None:
        virtual = FakeVirtualController()
        device = FakePhysicalController(poll_errors=[RuntimeError("driver crashed")])
        mirror = _mirror(virtual, device)

        mirror.start()
        assert mirror.join(2.0)

        assert mirror.state is MirrorState.FAILED
        assert mirror.status.startswith("General mirroring error")
        mirror.dispose()


class TestInputMirrorLifecycle:
    """Group lifecycle tests so the mirror releases its devices exactly once."""

    def test_stop_halts_reports_and_disconnects_virtual(self) -> None:
        """Verify that stopping ends polling, disconnects the virtual device and reports STOPPED."""
        virtual = FakeVirtualController()
        mirror = _mirror(virtual, FakePhysicalController())

        mirror.start()
        assert virtual.wait_for_reports(2)
        mirror.stop(2.0)
        submitted = len(virtual.reports)
        time.sleep(0.05)

        assert len(virtual.reports) == submitted
        assert mirror.state is MirrorState.STOPPED
        assert virtual.disconnect_calls == 1
        mirror.dispose()
        assert virtual.disconnect_calls == 1

    def test_dispose_while_polling_disconnects_virtual_before_releasing_physical(self) -> None:
        """Ensure a running mirror is torn down virtual device first, then physical device."""
        teardown: list[str] = []

        class OrderedVirtual(FakeVirtualController):
            def disconnect(self) -> None:
                teardown.append("virtual")
                super().disconnect()

        class OrderedPhysical(FakePhysicalController):
            def release(self) -> None:
                teardown.append("physical")
                super().release()

        virtual = OrderedVirtual()
        mirror = _mirror(virtual, OrderedPhysical())

        mirror.start()
        assert virtual.wait_for_reports(1)
        assert wait_until(lambda: mirror.state is MirrorState.POLLING)
        mirror.dispose()

        assert teardown == ["virtual", "physical"]
        assert mirror.state is MirrorState.STOPPED

    def test_connect_failure_disables_the_mirror(self) -> None:
        virtual = FakeVirtualController(connect_error=OSError("permission denied"))
        mirror = _mirror(virtual, FakePhysicalController())

        assert mirror.state is MirrorState.DISABLED
        assert mirror.status.startswith("Failed to initialize the virtual controller")
        assert mirror.start() is False
        assert mirror.press_button(VirtualButton.A) is False

    def test_missing_virtual_controller_disables_the_mirror(self) -> None:
        mirror = _mirror(None)

        assert mirror.state is MirrorState.DISABLED
        assert not mirror.available

    def test_dispose_before_start_is_idempotent(self) -> None:
        """Ensure disposing an unstarted mirror releases the virtual device once and completes the status stream."""
        virtual = FakeVirtualController()
        mirror = _mirror(virtual)
        completed: list[bool] = []
        mirror.observe.subscribe(on_completed=lambda: completed.append(True))

        mirror.dispose()
        mirror.dispose()

        assert virtual.disconnect_calls == 1
        assert mirror.state is MirrorState.STOPPED
        assert completed == [True]
        assert mirror.start() is False

    def test_context_manager_disposes(self) -> None:
        virtual = FakeVirtualController()

        with _mirror(virtual) as mirror:
            assert mirror.available

        assert virtual.disconnect_calls == 1


class TestInputMirrorPress:
    """Group injected press tests so rule actions are never clobbered by polling."""

    def test_press_holds_then_releases_button(self) -> None:
        holds: list[float] = []
        virtual = FakeVirtualController()
        mirror = _mirror(virtual, sleep=holds.append, press_duration_ms=150)

        assert mirror.press_button(VirtualButton.START)
        assert mirror.press_button(VirtualButton.B, duration_ms=40)

        assert holds == [pytest.approx(0.15), pytest.approx(0.04)]
        assert [report.buttons[VirtualButton.START] for report in virtual.reports[:2]] == [
            True,
            False,
        ]
        assert not mirror.report.buttons[VirtualButton.B]
        assert not mirror.injecting
        mirror.dispose()

    def test_polling_does_not_overwrite_a_held_press(self) -> None:
        """Verify that polling skips submission while a press is held so the button stays down for the full hold."""
        virtual = FakeVirtualController()
        submitted_during_hold: list[int] = []

        def hold(seconds: float) -> None:
            before = len(virtual.reports)
            time.sleep(0.05)
            submitted_during_hold.append(len(virtual.reports) - before)

        device = FakePhysicalController(sample=JoystickSample(buttons=NEUTRAL_BUTTONS))
        mirror = _mirror(virtual, device, sleep=hold)

        try:
            mirror.start()
            assert wait_until(lambda: mirror.state is MirrorState.POLLING)
            assert mirror.press_button(VirtualButton.A)
            released = len(virtual.reports)
            assert virtual.wait_for_reports(released + 1)
        finally:
            mirror.dispose()

        assert submitted_during_hold == [0]
        pressed = [index for index, report in enumerate(virtual.reports) if report.buttons[VirtualButton.A]]
        assert len(pressed) == 1
        assert not virtual.reports[pressed[0] + 1].buttons[VirtualButton.A]

    def test_concurrent_presses_are_serialized(self) -> None:
        """Ensure two presses from different threads never overlap their holds."""
        active = 0
        peak = 0
        guard = threading.Lock()

        def hold(seconds: float) -> None:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with guard:
                active -= 1

        mirror = _mirror(FakeVirtualController(), sleep=hold)
        results: list[bool] = []
        threads = [
            threading.Thread(target=lambda b=button: results.append(mirror.press_button(b)))
            for button in (VirtualButton.A, VirtualButton.B, VirtualButton.X)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(2.0)

        assert results == [True, True, True]
        assert peak == 1
        mirror.dispose()
