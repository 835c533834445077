from enum import StrEnum


class VirtualControllerBackend(StrEnum):
    UINPUT = "uinput"
    NONE = "none"
