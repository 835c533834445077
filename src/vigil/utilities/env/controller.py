import os

from vigil.utilities.env.enums import VirtualControllerBackend
from vigil.utilities.env.parsing import (_env_flag, _env_float, _env_int,
                                         _env_int_list)

DEFAULT_STICK_AXES = (0, 1, 2, 3, 4, 5)


class ControllerConfiguration:
    @classmethod
    def controller_mode_enabled(cls) -> bool:
        return _env_flag("VIGIL_CONTROLLER_MODE")

    @classmethod
    def mirror_poll_interval_ms(cls) -> int:
        return _env_int("VIGIL_MIRROR_POLL_MS", default=16, minimum=1)

    @classmethod
    def mirror_backoff_seconds(cls) -> float:
        return _env_float(
            "VIGIL_MIRROR_BACKOFF_S", default=1.0, minimum=0.0, exclusive_minimum=True
        )

    @classmethod
    def press_duration_ms(cls) -> int:
        return _env_int("VIGIL_PRESS_DURATION_MS", default=150, minimum=0)

    @classmethod
    def virtual_controller_backend(cls) -> VirtualControllerBackend:
        backend = os.environ.get("VIGIL_VIRTUAL_CONTROLLER", "uinput").strip().lower()
        try:
            return VirtualControllerBackend(backend)
        except ValueError as exc:
            raise ValueError(
                "VIGIL_VIRTUAL_CONTROLLER must be 'uinput' or 'none'"
            ) from exc

    @classmethod
    def stick_axes(cls) -> tuple[int, ...]:
        """Physical axis indices for ``lx, ly, lt, rx, ry, rt``."""

        return _env_int_list("VIGIL_STICK_AXES", default=DEFAULT_STICK_AXES, length=6)
