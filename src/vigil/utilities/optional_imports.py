"""Helpers for platform-specific dependencies that may be missing.

``evdev`` only installs on Linux and ``pynput`` needs a running display
server, so both come from the ``devices`` extra and a failed import turns the
matching feature off instead of stopping the process.
"""

from __future__ import annotations

import importlib
import importlib.util
from logging import Logger
from types import ModuleType

from vigil.utilities.logging import get_logger

INSTALL_HINT = "install the 'devices' extra (pip install 'vigil[devices]')"


def _top_level(module_name: str) -> str:
    return module_name.partition(".")[0]


def optional_import(
    module_name: str,
    *,
    logger: Logger | None = None,
) -> ModuleType | None:
    """Return the imported module if available, otherwise ``None``."""

    resolved_logger = logger or get_logger(__name__)

    # find_spec on a dotted name imports the parent package, which can fail.
    try:
        spec = importlib.util.find_spec(module_name)
    except (ImportError, ValueError) as exc:
        resolved_logger.debug("Looking up %s failed: %s", module_name, exc)
        spec = None
    if spec is None:
        resolved_logger.debug(
            "%s is not installed; %s to enable it.", _top_level(module_name), INSTALL_HINT
        )
        return None

    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        # pynput raises backend-specific errors when no display is reachable.
        resolved_logger.warning("%s is installed but failed to import: %s", module_name, exc)
        return None
