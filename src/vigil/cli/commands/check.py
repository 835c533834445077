from pathlib import Path
from typing import Annotated, Optional

import typer

from vigil.cli.commands.common import load_rules_or_exit, read_bindings
from vigil.peripheral.keyboard import RecordingKeyInjector
from vigil.rules.engine import RuleEngine
from vigil.rules.errors import RuleError
from vigil.rules.rule import ActionType, Rule
from vigil.rules.script import ScriptEvaluator
from vigil.utilities.logging import get_logger

logger = get_logger(__name__)


def _describe_action(rule: Rule) -> str:
    if rule.action_type is ActionType.KEYBOARD:
        return f"key {rule.key or '<none>'}"
    button = rule.controller_button.value if rule.controller_button else "<none>"
    return f"controller button {button}"


def check_command(
    bindings: Annotated[Path, typer.Argument(help="Bindings snapshot (JSON)")],
    profile: Annotated[
        Optional[Path],
        typer.Option("--profile", "-p", help="Rule profile (JSON); defaults to VIGIL_RULE_PROFILE"),
    ] = None,
) -> None:
    """Evaluate every rule once against a snapshot without sending any input."""

    rules = load_rules_or_exit(profile)
    try:
        namespace = read_bindings(bindings)
    except RuleError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1) from exc

    engine = RuleEngine(rules, ScriptEvaluator(), RecordingKeyInjector())
    for rule in rules:
        if not rule.enabled:
            typer.echo(f"{rule.name}: disabled")
            continue
        rule.migrate_legacy_conditions()
        if engine.evaluate(rule, namespace):
            typer.echo(f"{rule.name}: would fire ({_describe_action(rule)})")
        elif rule.name in engine.diagnostics:
            typer.echo(f"{rule.name}: error: {engine.diagnostics[rule.name]}")
        else:
            typer.echo(f"{rule.name}: idle")
