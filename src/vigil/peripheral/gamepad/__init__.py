"""Convenience imports for controller mirroring."""

from .errors import ControllerDeviceError as ControllerDeviceError
from .errors import ControllerError as ControllerError
from .errors import InputLostError as InputLostError
from .mirror import InputMirror as InputMirror
from .mirror import MirrorState as MirrorState
from .mirror import MirrorStatus as MirrorStatus
from .physical import DeviceKind as DeviceKind
from .physical import JoystickSample as JoystickSample
from .physical import PygameControllerBackend as PygameControllerBackend
from .virtual import VirtualButton as VirtualButton
from .virtual import VirtualDeviceState as VirtualDeviceState
from .virtual import create_virtual_controller as create_virtual_controller
