"""Physical controller access through ``pygame.joystick``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, Sequence

import pygame
import pygame.joystick

from vigil.peripheral.gamepad.errors import ControllerDeviceError, InputLostError
from vigil.utilities.logging import get_logger
from vigil.utilities.optional_imports import optional_import

logger = get_logger(__name__)

RAW_AXIS_MAX = 65535
RAW_AXIS_CENTER = 32768
NEUTRAL_POV = -1

# Hat positions in pygame's (x, y) convention, y up, to POV centidegrees.
_HAT_TO_POV: dict[tuple[int, int], int] = {
    (0, 1): 0,
    (1, 1): 4500,
    (1, 0): 9000,
    (1, -1): 13500,
    (0, -1): 18000,
    (-1, -1): 22500,
    (-1, 0): 27000,
    (-1, 1): 31500,
}


class DeviceKind(StrEnum):
    GAMEPAD = "gamepad"
    JOYSTICK = "joystick"


@dataclass(frozen=True, slots=True)
class JoystickSample:
    """One snapshot of a physical device.

    Axes are unsigned 0-65535 with sticks centred at 32768 and triggers at rest
    at 0. ``pov`` is in centidegrees clockwise from up, or -1 when neutral.
    """

    x: int = RAW_AXIS_CENTER
    y: int = RAW_AXIS_CENTER
    z: int = 0
    rotation_x: int = RAW_AXIS_CENTER
    rotation_y: int = RAW_AXIS_CENTER
    rotation_z: int = 0
    buttons: tuple[bool, ...] = ()
    pov: int = NEUTRAL_POV


@dataclass(frozen=True, slots=True)
class AxisLayout:
    """Physical axis indices feeding each sample field."""

    x: int = 0
    y: int = 1
    z: int = 2
    rotation_x: int = 3
    rotation_y: int = 4
    rotation_z: int = 5

    @classmethod
    def from_indices(cls, indices: Sequence[int]) -> AxisLayout:
        """Build a layout from ``(lx, ly, lt, rx, ry, rt)``."""

        x, y, z, rotation_x, rotation_y, rotation_z = indices
        return cls(x, y, z, rotation_x, rotation_y, rotation_z)


class PhysicalController(Protocol):
    @property
    def name(self) -> str: ...

    def acquire(self) -> None: ...

    def poll(self) -> None: ...

    def read(self) -> JoystickSample: ...

    def release(self) -> None: ...


class ControllerBackend(Protocol):
    def find(self, kind: DeviceKind) -> PhysicalController | None: ...


def axis_to_raw(value: float) -> int:
    """Convert a pygame axis value in [-1, 1] to the 0-65535 range."""

    clamped = max(-1.0, min(1.0, value))
    return int(round((clamped + 1.0) * RAW_AXIS_MAX / 2))


def hat_to_pov(hat: tuple[int, int]) -> int:
    return _HAT_TO_POV.get((int(hat[0]), int(hat[1])), NEUTRAL_POV)


class PygameController:
    """A joystick opened through pygame, reporting :class:`JoystickSample`."""

    def __init__(
        self,
        device_index: int,
        *,
        layout: AxisLayout | None = None,
        joystick: pygame.joystick.JoystickType | None = None,
    ) -> None:
        self.device_index = device_index
        self.layout = layout or AxisLayout()
        self._joystick = joystick

    @property
    def name(self) -> str:
        if self._joystick is None:
            return f"joystick {self.device_index}"
        return self._joystick.get_name()

    def acquire(self) -> None:
        try:
            if pygame.joystick.get_count() <= self.device_index:
                raise InputLostError(f"Joystick {self.device_index} is not connected")
            if self._joystick is None:
                self._joystick = pygame.joystick.Joystick(self.device_index)
            self._joystick.init()
        except pygame.error as exc:
            raise InputLostError(f"Could not acquire joystick: {exc}") from exc

    def poll(self) -> None:
        # Without pumping, pygame keeps returning stale axis and button values.
        try:
            pygame.event.pump()
        except pygame.error as exc:
            raise InputLostError(str(exc)) from exc

    def read(self) -> JoystickSample:
        joystick = self._joystick
        if joystick is None:
            raise InputLostError("Joystick is not acquired")
        try:
            num_axes = joystick.get_numaxes()
            axes = [joystick.get_axis(index) for index in range(num_axes)]
            buttons = tuple(
                bool(joystick.get_button(index))
                for index in range(joystick.get_numbuttons())
            )
            pov = hat_to_pov(joystick.get_hat(0)) if joystick.get_numhats() > 0 else NEUTRAL_POV
        except pygame.error as exc:
            raise InputLostError(str(exc)) from exc
        except (AttributeError, TypeError) as exc:
            raise ControllerDeviceError(f"Unusable joystick state: {exc}") from exc

        def stick(index: int) -> int:
            return axis_to_raw(axes[index]) if index < num_axes else RAW_AXIS_CENTER

        def trigger(index: int) -> int:
            return axis_to_raw(axes[index]) if index < num_axes else 0

        layout = self.layout
        return JoystickSample(
            x=stick(layout.x),
            y=stick(layout.y),
            z=trigger(layout.z),
            rotation_x=stick(layout.rotation_x),
            rotation_y=stick(layout.rotation_y),
            rotation_z=trigger(layout.rotation_z),
            buttons=buttons,
            pov=pov,
        )

    def release(self) -> None:
        joystick, self._joystick = self._joystick, None
        if joystick is None:
            return
        try:
            joystick.quit()
        except pygame.error:
            logger.debug("Joystick %s was already gone on release", self.device_index)


class PygameControllerBackend:
    """Enumerate devices through pygame.

    Gamepad-class devices are those SDL recognises as game controllers; any
    other device counts as a generic joystick.
    """

    def __init__(self, *, layout: AxisLayout | None = None) -> None:
        self.layout = layout or AxisLayout()
        self._sdl_controller = optional_import("pygame._sdl2.controller", logger=logger)

    def _ensure_initialized(self) -> None:
        if not pygame.joystick.get_init():
            pygame.joystick.init()
        if self._sdl_controller is not None and not self._sdl_controller.get_init():
            self._sdl_controller.init()

    def _is_gamepad(self, index: int) -> bool:
        if self._sdl_controller is None:
            return False
        return bool(self._sdl_controller.is_controller(index))

    def find(self, kind: DeviceKind) -> PhysicalController | None:
        try:
            self._ensure_initialized()
            count = pygame.joystick.get_count()
        except pygame.error as exc:
            logger.warning("Joystick enumeration failed: %s", exc)
            return None

        for index in range(count):
            if kind is DeviceKind.GAMEPAD and not self._is_gamepad(index):
                continue
            return PygameController(index, layout=self.layout)
        return None
