"""Automation rules: conditions, a cooldown gate and one action."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Mapping

from vigil.peripheral.gamepad.virtual import VirtualButton
from vigil.rules.conditions import (Factor, NumericValue, Operator,
                                    SimpleCondition)
from vigil.rules.errors import RuleError

CONDITION_JOINER = " && "
# Simple mode with no conditions must never fire.
NEVER_TRUE_SCRIPT = "false"

Clock = Callable[[], float]


class ActionType(StrEnum):
    KEYBOARD = "Keyboard"
    CONTROLLER = "Controller"


def _legacy_source(entry: Any) -> str:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping):
        for key in ("Source", "source", "Script"):
            if isinstance(entry.get(key), str):
                return entry[key]
    raise RuleError(f"Unrecognised legacy condition {entry!r}")


@dataclass(eq=False)
class Rule:
    """A named automation unit.

    In simple mode the effective condition is the AND of ``conditions``; in
    advanced mode it is ``advanced_script`` verbatim. ``clock`` returns
    monotonic seconds and drives the cooldown.
    """

    name: str
    enabled: bool = False
    conditions: list[SimpleCondition] = field(default_factory=list)
    advanced_script: str = ""
    use_simple_editor: bool = True
    action_type: ActionType = ActionType.KEYBOARD
    key: str = ""
    controller_button: VirtualButton | None = None
    cooldown_seconds: float = 0.0
    legacy_conditions: list[str] = field(default_factory=list)
    clock: Clock = field(default=time.monotonic, repr=False)
    _last_fired: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.cooldown_seconds < 0:
            raise RuleError(f"Rule {self.name!r} has a negative cooldown")

    # Conditions -----------------------------------------------------------
    def compile_conditions(self) -> str:
        return CONDITION_JOINER.join(condition.compile() for condition in self.conditions)

    def effective_script(self) -> str:
        """The script evaluated for this rule.

        Raises :class:`~vigil.rules.errors.ConditionError` when a simple
        condition cannot be compiled.
        """

        if not self.use_simple_editor:
            return self.advanced_script
        if not self.conditions:
            return NEVER_TRUE_SCRIPT
        return self.compile_conditions()

    def sync_advanced_script(self) -> None:
        self.advanced_script = self.compile_conditions() if self.conditions else ""

    def set_simple_editor(self, enabled: bool) -> None:
        self.use_simple_editor = enabled
        if not enabled:
            self.sync_advanced_script()

    def add_condition(self, condition: SimpleCondition | None = None) -> SimpleCondition:
        condition = condition or SimpleCondition()
        self.conditions.append(condition)
        self.sync_advanced_script()
        return condition

    def replace_condition(self, index: int, condition: SimpleCondition) -> None:
        self.conditions[index] = condition
        self.sync_advanced_script()

    def remove_condition(self, index: int) -> SimpleCondition:
        removed = self.conditions.pop(index)
        self.sync_advanced_script()
        return removed

    def migrate_legacy_conditions(self) -> bool:
        """Fold legacy conditions into ``advanced_script`` once; return whether it ran."""

        if not self.legacy_conditions:
            return False
        self.advanced_script = CONDITION_JOINER.join(self.legacy_conditions)
        self.use_simple_editor = False
        self.legacy_conditions = []
        return True

    # Cooldown -------------------------------------------------------------
    def seconds_since_fired(self) -> float | None:
        if self._last_fired is None:
            return None
        return self.clock() - self._last_fired

    def is_cooling_down(self) -> bool:
        elapsed = self.seconds_since_fired()
        return elapsed is not None and elapsed < self.cooldown_seconds

    def reset_cooldown(self) -> None:
        self._last_fired = self.clock()

    def cooldown_fraction(self) -> float:
        elapsed = self.seconds_since_fired()
        if self.cooldown_seconds <= 0 or elapsed is None:
            return 1.0
        return min(elapsed, self.cooldown_seconds) / self.cooldown_seconds

    def cooldown_label(self) -> str:
        fraction = self.cooldown_fraction()
        if fraction < 1.0:
            return f"Cooling {fraction * 100:.0f}%"
        return "Ready"

    # Copies and persistence -----------------------------------------------
    def copy(self) -> Rule:
        """Duplicate as a disabled rule named ``<name>1`` with a fresh cooldown."""

        return Rule(
            name=f"{self.name}1",
            enabled=False,
            conditions=list(self.conditions),
            advanced_script=self.advanced_script,
            use_simple_editor=self.use_simple_editor,
            action_type=self.action_type,
            key=self.key,
            controller_button=self.controller_button,
            cooldown_seconds=self.cooldown_seconds,
            clock=self.clock,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Enabled": self.enabled,
            "SimpleConditions": [condition.to_dict() for condition in self.conditions],
            "AdvancedConditionScript": self.advanced_script,
            "UseSimpleEditor": self.use_simple_editor,
            "TypeOfAction": self.action_type.value,
            "Key": self.key,
            "ControllerButtonName": (
                self.controller_button.value if self.controller_button else None
            ),
            "delayBetweenRuns": self.cooldown_seconds,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, clock: Clock = time.monotonic) -> Rule:
        if not isinstance(payload, Mapping):
            raise RuleError(f"Rule entry must be an object, got {payload!r}")
        try:
            name = str(payload["Name"])
        except KeyError as exc:
            raise RuleError("Rule entry has no Name") from exc

        button_name = payload.get("ControllerButtonName")
        try:
            action_type = ActionType(payload.get("TypeOfAction", ActionType.KEYBOARD.value))
            button = VirtualButton.from_name(button_name) if button_name else None
            cooldown = float(payload.get("delayBetweenRuns", 0.0))
        except (TypeError, ValueError) as exc:
            raise RuleError(f"Rule {name!r} is malformed: {exc}") from exc

        return cls(
            name=name,
            enabled=bool(payload.get("Enabled", False)),
            conditions=[
                SimpleCondition.from_dict(entry)
                for entry in payload.get("SimpleConditions") or []
            ],
            advanced_script=str(payload.get("AdvancedConditionScript") or ""),
            use_simple_editor=bool(payload.get("UseSimpleEditor", True)),
            action_type=action_type,
            key=str(payload.get("Key") or ""),
            controller_button=button,
            cooldown_seconds=cooldown,
            legacy_conditions=[
                _legacy_source(entry) for entry in payload.get("Conditions") or []
            ],
            clock=clock,
        )


def create_default_rules(*, clock: Clock = time.monotonic) -> list[Rule]:
    life = Rule(
        name="LifeFlask",
        enabled=True,
        key="1",
        conditions=[
            SimpleCondition(
                Factor.PLAYER_HEALTH_PERCENT, Operator.LESS_THAN_OR_EQUAL, NumericValue(80)
            ),
            SimpleCondition(Factor.FLASK1_IS_USABLE, Operator.IS_TRUE),
            SimpleCondition(Factor.FLASK1_EFFECT_ACTIVE, Operator.IS_FALSE),
        ],
        clock=clock,
    )
    mana = Rule(
        name="ManaFlask",
        enabled=True,
        key="2",
        conditions=[
            SimpleCondition(
                Factor.PLAYER_MANA_PERCENT, Operator.LESS_THAN_OR_EQUAL, NumericValue(30)
            ),
            SimpleCondition(Factor.FLASK2_IS_USABLE, Operator.IS_TRUE),
            SimpleCondition(Factor.FLASK2_EFFECT_ACTIVE, Operator.IS_FALSE),
        ],
        clock=clock,
    )
    rules = [life, mana]
    for rule in rules:
        rule.sync_advanced_script()
    return rules
