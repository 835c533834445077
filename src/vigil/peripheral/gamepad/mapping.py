"""Translation from physical samples to virtual controller reports.

The button table and the POV sectors are part of the public contract; other
tools replicate them to stay compatible with the mirrored output.
"""

from __future__ import annotations

from dataclasses import dataclass

from vigil.peripheral.gamepad.physical import JoystickSample
from vigil.peripheral.gamepad.virtual import (SHORT_MAX, SHORT_MIN,
                                              VirtualAxis, VirtualButton,
                                              VirtualDeviceState,
                                              VirtualSlider)

CENTER = 32768
POV_FULL_CIRCLE = 36000

# Physical button ordinal -> virtual button, in the layout of a PS3-style pad.
BUTTON_MAP: tuple[tuple[int, VirtualButton], ...] = (
    (0, VirtualButton.A),  # Cross
    (1, VirtualButton.B),  # Circle
    (2, VirtualButton.X),  # Square
    (3, VirtualButton.Y),  # Triangle
    (4, VirtualButton.LEFT_SHOULDER),  # L1
    (5, VirtualButton.RIGHT_SHOULDER),  # R1
    (6, VirtualButton.BACK),  # Select
    (7, VirtualButton.START),
    (8, VirtualButton.LEFT_THUMB),  # L3
    (9, VirtualButton.RIGHT_THUMB),  # R3
)


@dataclass(frozen=True, slots=True)
class PovSector:
    """Half-open centidegree ranges that press ``button``."""

    button: VirtualButton
    ranges: tuple[tuple[int, int], ...]

    def contains(self, pov: int) -> bool:
        return any(start <= pov < end for start, end in self.ranges)


POV_SECTORS: tuple[PovSector, ...] = (
    PovSector(VirtualButton.UP, ((0, 4500), (31500, POV_FULL_CIRCLE))),
    PovSector(VirtualButton.RIGHT, ((4500, 13500),)),
    PovSector(VirtualButton.DOWN, ((13500, 22500),)),
    PovSector(VirtualButton.LEFT, ((22500, 31500),)),
)


def map_stick_axis(raw: int, *, invert: bool = False) -> int:
    """Map an unsigned 0-65535 stick axis to a signed 16-bit axis."""

    value = raw - CENTER
    if invert:
        value = max(SHORT_MIN, min(SHORT_MAX, -value))
    return value


def map_trigger(raw: int) -> int:
    """Map an unsigned 0-65535 trigger axis to 0-255."""

    return raw // 256


def map_pov(pov: int) -> dict[VirtualButton, bool]:
    """Directional buttons for a POV reading; out-of-range readings are neutral."""

    valid = 0 <= pov < POV_FULL_CIRCLE
    return {sector.button: valid and sector.contains(pov) for sector in POV_SECTORS}


def map_sample(sample: JoystickSample, report: VirtualDeviceState) -> VirtualDeviceState:
    """Write ``sample`` into ``report`` and return it."""

    report.set_axis(VirtualAxis.LEFT_X, map_stick_axis(sample.x))
    report.set_axis(VirtualAxis.LEFT_Y, map_stick_axis(sample.y, invert=True))
    report.set_axis(VirtualAxis.RIGHT_X, map_stick_axis(sample.rotation_x))
    report.set_axis(VirtualAxis.RIGHT_Y, map_stick_axis(sample.rotation_y, invert=True))
    report.set_slider(VirtualSlider.LEFT_TRIGGER, map_trigger(sample.z))
    report.set_slider(VirtualSlider.RIGHT_TRIGGER, map_trigger(sample.rotation_z))

    for index, button in BUTTON_MAP:
        if index < len(sample.buttons):
            report.set_button(button, sample.buttons[index])

    for button, pressed in map_pov(sample.pov).items():
        report.set_button(button, pressed)
    return report


def describe_button_map() -> list[tuple[int, str]]:
    return [(index, button.value) for index, button in BUTTON_MAP]


def describe_pov_sectors() -> list[tuple[str, str]]:
    def fmt(ranges: tuple[tuple[int, int], ...]) -> str:
        return " + ".join(f"[{start}, {end})" for start, end in ranges)

    return [(sector.button.value, fmt(sector.ranges)) for sector in POV_SECTORS]
