"""Virtual controller report and output backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from vigil.utilities.env import VirtualControllerBackend
from vigil.utilities.logging import get_logger
from vigil.utilities.optional_imports import optional_import

logger = get_logger(__name__)

SHORT_MIN = -32768
SHORT_MAX = 32767
BYTE_MAX = 255


class VirtualButton(Enum):
    # Ordered as offered to users when picking a rule's controller button.
    A = "A"
    B = "B"
    X = "X"
    Y = "Y"
    LEFT_SHOULDER = "LeftShoulder"
    RIGHT_SHOULDER = "RightShoulder"
    LEFT_THUMB = "LeftThumb"
    RIGHT_THUMB = "RightThumb"
    START = "Start"
    BACK = "Back"
    UP = "Up"
    DOWN = "Down"
    LEFT = "Left"
    RIGHT = "Right"

    @classmethod
    def from_name(cls, name: str) -> VirtualButton:
        """Resolve a button from its display name (``"LeftShoulder"``) or member name."""

        for button in cls:
            if name in (button.value, button.name):
                return button
        raise ValueError(f"Unknown controller button {name!r}")


class VirtualAxis(Enum):
    LEFT_X = "LeftThumbX"
    LEFT_Y = "LeftThumbY"
    RIGHT_X = "RightThumbX"
    RIGHT_Y = "RightThumbY"


class VirtualSlider(Enum):
    LEFT_TRIGGER = "LeftTrigger"
    RIGHT_TRIGGER = "RightTrigger"


@dataclass
class VirtualDeviceState:
    """The report submitted to the virtual controller.

    Stick axes are signed 16-bit with up and right positive; triggers are 0-255.
    """

    axes: dict[VirtualAxis, int] = field(
        default_factory=lambda: {axis: 0 for axis in VirtualAxis}
    )
    sliders: dict[VirtualSlider, int] = field(
        default_factory=lambda: {slider: 0 for slider in VirtualSlider}
    )
    buttons: dict[VirtualButton, bool] = field(
        default_factory=lambda: {button: False for button in VirtualButton}
    )

    def set_axis(self, axis: VirtualAxis, value: int) -> None:
        if not SHORT_MIN <= value <= SHORT_MAX:
            raise ValueError(f"{axis.value} value {value} is outside the signed 16-bit range")
        self.axes[axis] = value

    def set_slider(self, slider: VirtualSlider, value: int) -> None:
        if not 0 <= value <= BYTE_MAX:
            raise ValueError(f"{slider.value} value {value} is outside 0-255")
        self.sliders[slider] = value

    def set_button(self, button: VirtualButton, pressed: bool) -> None:
        self.buttons[button] = bool(pressed)

    @property
    def left_stick(self) -> tuple[int, int]:
        return self.axes[VirtualAxis.LEFT_X], self.axes[VirtualAxis.LEFT_Y]

    @property
    def right_stick(self) -> tuple[int, int]:
        return self.axes[VirtualAxis.RIGHT_X], self.axes[VirtualAxis.RIGHT_Y]

    def copy(self) -> VirtualDeviceState:
        return VirtualDeviceState(
            axes=dict(self.axes),
            sliders=dict(self.sliders),
            buttons=dict(self.buttons),
        )


class VirtualController(Protocol):
    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def submit(self, state: VirtualDeviceState) -> None: ...


class UInputVirtualController:
    """Xbox 360 style virtual pad exposed through Linux ``uinput``."""

    NAME = "vigil virtual controller"
    VENDOR = 0x045E
    PRODUCT = 0x028E

    def __init__(self, evdev: Any) -> None:
        self._evdev = evdev
        self._device: Any | None = None
        ecodes = evdev.ecodes
        self._button_codes = {
            VirtualButton.A: ecodes.BTN_A,
            VirtualButton.B: ecodes.BTN_B,
            VirtualButton.X: ecodes.BTN_X,
            VirtualButton.Y: ecodes.BTN_Y,
            VirtualButton.LEFT_SHOULDER: ecodes.BTN_TL,
            VirtualButton.RIGHT_SHOULDER: ecodes.BTN_TR,
            VirtualButton.LEFT_THUMB: ecodes.BTN_THUMBL,
            VirtualButton.RIGHT_THUMB: ecodes.BTN_THUMBR,
            VirtualButton.START: ecodes.BTN_START,
            VirtualButton.BACK: ecodes.BTN_SELECT,
            VirtualButton.UP: ecodes.BTN_DPAD_UP,
            VirtualButton.DOWN: ecodes.BTN_DPAD_DOWN,
            VirtualButton.LEFT: ecodes.BTN_DPAD_LEFT,
            VirtualButton.RIGHT: ecodes.BTN_DPAD_RIGHT,
        }
        self._axis_codes = {
            VirtualAxis.LEFT_X: ecodes.ABS_X,
            VirtualAxis.LEFT_Y: ecodes.ABS_Y,
            VirtualAxis.RIGHT_X: ecodes.ABS_RX,
            VirtualAxis.RIGHT_Y: ecodes.ABS_RY,
        }
        self._slider_codes = {
            VirtualSlider.LEFT_TRIGGER: ecodes.ABS_Z,
            VirtualSlider.RIGHT_TRIGGER: ecodes.ABS_RZ,
        }

    @property
    def connected(self) -> bool:
        return self._device is not None

    def connect(self) -> None:
        if self._device is not None:
            return
        ecodes = self._evdev.ecodes
        stick = self._evdev.AbsInfo(
            value=0, min=SHORT_MIN, max=SHORT_MAX, fuzz=16, flat=128, resolution=0
        )
        trigger = self._evdev.AbsInfo(
            value=0, min=0, max=BYTE_MAX, fuzz=0, flat=0, resolution=0
        )
        capabilities = {
            ecodes.EV_KEY: list(self._button_codes.values()),
            ecodes.EV_ABS: [
                *((code, stick) for code in self._axis_codes.values()),
                *((code, trigger) for code in self._slider_codes.values()),
            ],
        }
        self._device = self._evdev.UInput(
            capabilities,
            name=self.NAME,
            vendor=self.VENDOR,
            product=self.PRODUCT,
        )
        logger.info("Virtual controller connected as %s", self.NAME)

    def disconnect(self) -> None:
        device, self._device = self._device, None
        if device is not None:
            device.close()
            logger.info("Virtual controller disconnected")

    def submit(self, state: VirtualDeviceState) -> None:
        if self._device is None:
            raise RuntimeError("Virtual controller is not connected")
        ecodes = self._evdev.ecodes
        for axis, code in self._axis_codes.items():
            value = state.axes[axis]
            if axis in (VirtualAxis.LEFT_Y, VirtualAxis.RIGHT_Y):
                # evdev reports down as positive.
                value = max(SHORT_MIN, min(SHORT_MAX, -value))
            self._device.write(ecodes.EV_ABS, code, value)
        for slider, code in self._slider_codes.items():
            self._device.write(ecodes.EV_ABS, code, state.sliders[slider])
        for button, code in self._button_codes.items():
            self._device.write(ecodes.EV_KEY, code, int(state.buttons[button]))
        self._device.syn()


def create_virtual_controller(
    backend: VirtualControllerBackend,
) -> VirtualController | None:
    """Build the configured virtual controller, or ``None`` when unavailable."""

    if backend is VirtualControllerBackend.NONE:
        return None
    evdev = optional_import("evdev", logger=logger)
    if evdev is None:
        logger.warning(
            "Virtual controller backend %s needs the 'evdev' package; controller mode disabled",
            backend.value,
        )
        return None
    return UInputVirtualController(evdev)
