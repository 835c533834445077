"""Rate-limited logging for loops that run many times per second."""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from functools import cache
from typing import Callable

SAMPLING_RULES_ENV_VAR = "VIGIL_LOG_RULES"
DEFAULT_INTERVAL_ENV_VAR = "VIGIL_LOG_DEFAULT_INTERVAL"
DEFAULT_INTERVAL_SECONDS = 1.0

_RULE_PATTERN = re.compile(
    r"^(?P<key>[^=]+)="
    r"(?P<interval>none|\d+(?:\.\d+)?)"
    r"(?::(?P<level>[A-Za-z]+))?"
    r"(?::(?P<fallback>[A-Za-z]+|none))?$"
)


@dataclass(frozen=True)
class SamplingRule:
    """How often a keyed log site may emit, and at which levels."""

    interval_seconds: float | None
    level: int | None = None
    fallback_level: int | None = logging.DEBUG


class SampledLogging:
    """Throttle log sites by key.

    A key emits at its primary level at most once per ``interval_seconds``;
    suppressed calls are demoted to the fallback level (or dropped when the
    fallback is ``None``). An interval of ``None`` disables sampling.
    """

    def __init__(
        self,
        *,
        default_rule: SamplingRule,
        rules: dict[str, SamplingRule] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_rule = default_rule
        self._rules = dict(rules or {})
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._next_emit: dict[str, float] = {}

    def rule_for(self, key: str) -> SamplingRule:
        return self._rules.get(key, self._default_rule)

    def log(
        self,
        key: str,
        logger: logging.Logger,
        level: int,
        msg: str,
        *args: object,
    ) -> bool:
        """Log ``msg`` under ``key``; return ``True`` when emitted at full level."""

        rule = self.rule_for(key)
        primary = rule.level or level
        if rule.interval_seconds is None:
            logger.log(primary, msg, *args)
            return True

        now = self._monotonic()
        with self._lock:
            due = now >= self._next_emit.get(key, 0.0)
            if due:
                self._next_emit[key] = now + rule.interval_seconds
        if due:
            logger.log(primary, msg, *args)
            return True
        if rule.fallback_level is not None:
            logger.log(rule.fallback_level, msg, *args)
        return False


def _parse_level(name: str | None) -> int | None:
    if not name:
        return None
    resolved = logging.getLevelName(name.upper())
    if isinstance(resolved, int):
        return resolved
    raise ValueError(f"Unknown log level {name!r}")


def parse_sampling_rules(raw: str) -> dict[str, SamplingRule]:
    """Parse ``key=interval[:LEVEL[:FALLBACK]]`` entries separated by commas."""

    rules: dict[str, SamplingRule] = {}
    for chunk in filter(None, (part.strip() for part in raw.split(","))):
        match = _RULE_PATTERN.match(chunk)
        if match is None:
            raise ValueError(
                f"Invalid {SAMPLING_RULES_ENV_VAR} entry {chunk!r}. "
                "Expected 'key=interval[:LEVEL[:FALLBACK]]'."
            )
        interval_raw = match.group("interval")
        fallback_raw = match.group("fallback")
        if fallback_raw is None:
            fallback = logging.DEBUG
        elif fallback_raw.lower() == "none":
            fallback = None
        else:
            fallback = _parse_level(fallback_raw)
        rules[match.group("key").strip()] = SamplingRule(
            interval_seconds=None if interval_raw == "none" else float(interval_raw),
            level=_parse_level(match.group("level")),
            fallback_level=fallback,
        )
    return rules


@cache
def get_logging_controller() -> SampledLogging:
    """Return the process-wide sampling controller built from the environment."""

    interval_raw = os.getenv(DEFAULT_INTERVAL_ENV_VAR)
    if interval_raw is None:
        interval: float | None = DEFAULT_INTERVAL_SECONDS
    elif interval_raw.strip().lower() == "none":
        interval = None
    else:
        interval = float(interval_raw)

    return SampledLogging(
        default_rule=SamplingRule(interval_seconds=interval),
        rules=parse_sampling_rules(os.getenv(SAMPLING_RULES_ENV_VAR, "")),
    )
