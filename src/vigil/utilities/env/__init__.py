"""Environment configuration helpers."""

from vigil.utilities.env.config import Configuration as Configuration
from vigil.utilities.env.enums import \
    VirtualControllerBackend as VirtualControllerBackend
