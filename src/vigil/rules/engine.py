"""Per-cycle rule evaluation and action dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from vigil.peripheral.core.event_bus import EventBus
from vigil.peripheral.core.events import RULE_TRIGGERED
from vigil.peripheral.gamepad.virtual import VirtualButton
from vigil.peripheral.keyboard import KeyInjector
from vigil.rules.errors import ConditionError
from vigil.rules.rule import ActionType, Rule
from vigil.rules.script import Evaluator
from vigil.utilities.logging import get_logger
from vigil.utilities.logging_control import get_logging_controller

logger = get_logger(__name__)


class ButtonPresser(Protocol):
    def press_button(self, button: VirtualButton, duration_ms: int | None = None) -> bool: ...


@dataclass(frozen=True, slots=True)
class DispatchRecord:
    rule_name: str
    action_type: ActionType
    target: str
    message: str


class RuleEngine:
    """Evaluate every rule once per :meth:`tick` and fire the satisfied ones.

    A rule is skipped while disabled or cooling down. A satisfied rule
    dispatches exactly one action and restarts its cooldown only when the
    action reports success. A failure in one rule never stops the others.
    """

    def __init__(
        self,
        rules: Iterable[Rule],
        evaluator: Evaluator,
        key_injector: KeyInjector,
        *,
        controller: ButtonPresser | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.rules = list(rules)
        self.evaluator = evaluator
        self.key_injector = key_injector
        self.controller = controller
        self.bus = bus
        self.diagnostics: dict[str, str] = {}

    def tick(self, bindings: Mapping[str, Any]) -> list[DispatchRecord]:
        records: list[DispatchRecord] = []
        for rule in self.rules:
            try:
                record = self._process(rule, bindings)
            except Exception as exc:
                logger.exception("Rule %r failed while dispatching", rule.name)
                self.diagnostics[rule.name] = str(exc)
                continue
            if record is not None:
                records.append(record)
        return records

    def evaluate(self, rule: Rule, bindings: Mapping[str, Any]) -> bool:
        """Evaluate ``rule``'s condition without any gating or side effects on the cooldown."""

        try:
            script = rule.effective_script()
        except ConditionError as exc:
            self._record_failure(rule, str(exc))
            return False
        if not script.strip():
            self.diagnostics.pop(rule.name, None)
            return False
        try:
            result = self.evaluator.evaluate(script, bindings)
        except Exception as exc:
            self._record_failure(rule, str(exc))
            return False
        self.diagnostics.pop(rule.name, None)
        return bool(result)

    def _process(self, rule: Rule, bindings: Mapping[str, Any]) -> DispatchRecord | None:
        if not rule.enabled or rule.is_cooling_down():
            return None
        if rule.migrate_legacy_conditions():
            logger.info("Migrated legacy conditions of rule %r to an advanced script", rule.name)
        if not self.evaluate(rule, bindings):
            return None
        return self._dispatch(rule)

    def _dispatch(self, rule: Rule) -> DispatchRecord | None:
        if rule.action_type is ActionType.KEYBOARD:
            if not rule.key:
                self._record_dispatch_failure(rule, "No key configured")
                return None
            target = rule.key
            message = f"Rule '{rule.name}' triggered KEYBOARD action: {target}."
            succeeded = self.key_injector.inject(target)
        else:
            button = rule.controller_button
            if button is None or self.controller is None:
                return None
            target = button.value
            message = f"Rule '{rule.name}' triggered VIRTUAL button: {target}."
            succeeded = self.controller.press_button(button)

        if not succeeded:
            self._record_dispatch_failure(rule, f"{rule.action_type.value} action failed")
            return None

        rule.reset_cooldown()
        record = DispatchRecord(rule.name, rule.action_type, target, message)
        logger.info(message)
        if self.bus is not None:
            self.bus.emit(RULE_TRIGGERED, record)
        return record

    def _record_dispatch_failure(self, rule: Rule, reason: str) -> None:
        self.diagnostics[rule.name] = reason
        get_logging_controller().log(
            f"rules.{rule.name}.dispatch",
            logger,
            logging.WARNING,
            "Rule %r matched but its %s action did not go through: %s",
            rule.name,
            rule.action_type.value,
            reason,
        )

    def _record_failure(self, rule: Rule, message: str) -> None:
        self.diagnostics[rule.name] = message
        get_logging_controller().log(
            f"rules.{rule.name}",
            logger,
            logging.WARNING,
            "Rule %r evaluated to false: %s",
            rule.name,
            message,
        )
