"""Load and save rule profiles as JSON."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Iterable

from vigil.rules.errors import RuleError
from vigil.rules.rule import Clock, Rule, create_default_rules
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)


def load_profile(path: Path, *, clock: Clock = time.monotonic) -> list[Rule]:
    """Return the rules stored at ``path``, or the default rules when it is missing."""

    if not path.exists():
        logger.info("No rule profile at %s; using the default rules", path)
        return create_default_rules(clock=clock)

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RuleError(f"Rule profile {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise RuleError(f"Rule profile {path} must contain a list of rules")

    rules = [Rule.from_dict(entry, clock=clock) for entry in payload]
    logger.info("Loaded %d rule(s) from %s", len(rules), path)
    return rules


def save_profile(path: Path, rules: Iterable[Rule]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [rule.to_dict() for rule in rules]
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    logger.debug("Saved %d rule(s) to %s", len(payload), path)
