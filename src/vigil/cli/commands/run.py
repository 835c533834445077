import logging
import time
from pathlib import Path
from typing import Annotated, Optional

import typer

from vigil.cli.commands.common import load_rules_or_exit, read_bindings
from vigil.peripheral.keyboard import KeyInjector
from vigil.rules.engine import RuleEngine
from vigil.rules.errors import RuleError
from vigil.rules.script import Evaluator
from vigil.runtime.container import build_runtime_container
from vigil.runtime.core import Core, get_version
from vigil.utilities.env import Configuration
from vigil.utilities.logging import get_logger
from vigil.utilities.logging_control import get_logging_controller

logger = get_logger(__name__)


def run_command(
    bindings: Annotated[Path, typer.Argument(help="Bindings snapshot (JSON), re-read every cycle")],
    profile: Annotated[
        Optional[Path],
        typer.Option("--profile", "-p", help="Rule profile (JSON); defaults to VIGIL_RULE_PROFILE"),
    ] = None,
    cycles: Annotated[
        Optional[int],
        typer.Option("--cycles", min=1, help="Stop after this many rule cycles"),
    ] = None,
) -> None:
    """Run the rule engine, and the controller mirror in controller mode."""

    rules = load_rules_or_exit(profile)
    resolver = build_runtime_container()
    core = resolver.resolve(Core)
    core.initialize()
    engine = RuleEngine(
        rules,
        resolver.resolve(Evaluator),
        resolver.resolve(KeyInjector),
        controller=core.controller,
        bus=core.bus,
    )
    interval = Configuration.rule_tick_interval_ms() / 1000
    logger.info("vigil %s running %d rule(s) every %.3fs", get_version(), len(rules), interval)

    completed = 0
    try:
        while cycles is None or completed < cycles:
            started = time.monotonic()
            try:
                namespace = read_bindings(bindings)
            except RuleError as exc:
                get_logging_controller().log(
                    "cli.bindings", logger, logging.WARNING, "Skipping rule cycle: %s", exc
                )
            else:
                for record in engine.tick(namespace):
                    typer.echo(record.message)
            core.tick(interval)
            completed += 1
            time.sleep(max(0.0, interval - (time.monotonic() - started)))
    except KeyboardInterrupt:
        logger.info("Interrupted after %d cycle(s)", completed)
    finally:
        core.dispose()
