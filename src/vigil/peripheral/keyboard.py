"""Keyboard key injection for rule actions."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from vigil.utilities.logging import get_logger
from vigil.utilities.logging_control import get_logging_controller
from vigil.utilities.optional_imports import optional_import

logger = get_logger(__name__)

_LEGACY_PREFIXES = ("KEY_", "VK_")


class KeyInjector(Protocol):
    def inject(self, key: str) -> bool: ...


def normalize_key_name(name: str) -> str:
    """Reduce ``KEY_1``/``VK_F1`` style names to ``1``/``f1``.

    Single characters keep their case; longer names are lower-cased to match
    ``pynput.keyboard.Key`` members.
    """

    normalized = name.strip()
    upper = normalized.upper()
    for prefix in _LEGACY_PREFIXES:
        if upper.startswith(prefix) and len(normalized) > len(prefix):
            normalized = normalized[len(prefix):]
            break
    if len(normalized) == 1:
        return normalized
    return normalized.lower()


class PynputKeyInjector:
    """Tap keys with ``pynput``.

    Without a usable backend (missing package, no display server) every
    injection reports failure instead of raising.
    """

    def __init__(self, keyboard_module: Any | None = None) -> None:
        self._keyboard = (
            keyboard_module
            if keyboard_module is not None
            else optional_import("pynput.keyboard", logger=logger)
        )
        self._controller: Any | None = None
        if self._keyboard is None:
            logger.warning("pynput is unavailable; keyboard actions are disabled")
            return
        try:
            self._controller = self._keyboard.Controller()
        except Exception as exc:
            logger.warning("Keyboard controller could not be created: %s", exc)

    @property
    def available(self) -> bool:
        return self._controller is not None

    def _resolve(self, key: str) -> Any:
        name = normalize_key_name(key)
        if not name:
            raise ValueError("Key name is empty")
        if len(name) == 1:
            return name
        resolved = getattr(self._keyboard.Key, name, None)
        if resolved is None:
            raise ValueError(f"Unknown key {key!r}")
        return resolved

    def inject(self, key: str) -> bool:
        if self._controller is None:
            get_logging_controller().log(
                "keyboard.unavailable",
                logger,
                logging.WARNING,
                "Dropped key %s: no keyboard backend",
                key,
            )
            return False
        try:
            target = self._resolve(key)
        except ValueError as exc:
            logger.warning("Cannot inject key: %s", exc)
            return False
        try:
            self._controller.tap(target)
        except Exception as exc:
            logger.error("Injecting key %s failed: %s", key, exc)
            return False
        return True


class RecordingKeyInjector:
    """Remember keys instead of sending them."""

    def __init__(self) -> None:
        self.keys: list[str] = []

    def inject(self, key: str) -> bool:
        self.keys.append(key)
        return True
