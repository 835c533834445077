class ControllerError(Exception):
    """Base class for controller mirroring failures."""


class InputLostError(ControllerError):
    """The physical device stopped delivering input or is no longer acquired.

    Recoverable: the mirror re-acquires the device and keeps polling.
    """


class ControllerDeviceError(ControllerError):
    """Unrecoverable device failure; the mirror loop stops."""
