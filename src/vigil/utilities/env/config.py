from vigil.utilities.env.controller import ControllerConfiguration
from vigil.utilities.env.system import SystemConfiguration


class Configuration(
    SystemConfiguration,
    ControllerConfiguration,
):
    """Aggregate environment configuration helpers."""
