from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer

from vigil.rules.errors import RuleError
from vigil.rules.rule import Rule
from vigil.rules.profile import load_profile
from vigil.rules.script import bindings_from_snapshot
from vigil.utilities.env import Configuration
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)


def read_bindings(path: Path) -> dict[str, Any]:
    """Read a bindings snapshot; raise ``RuleError`` when it is unusable."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuleError(f"Cannot read bindings snapshot {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuleError(f"Bindings snapshot {path} must be a JSON object")
    return bindings_from_snapshot(payload)


def load_rules_or_exit(path: Path | None) -> list[Rule]:
    path = path or Configuration.rule_profile_path()
    try:
        return load_profile(path)
    except RuleError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1) from exc
