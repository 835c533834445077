"""Structured rule conditions and their compilation to script fragments."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Mapping, Union

from vigil.rules.errors import ConditionError


class FactorKind(StrEnum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TEXT = "text"


class Factor(StrEnum):
    # Member order is the order offered by the rule editor.
    PLAYER_HEALTH_PERCENT = "PlayerHealthPercent"
    PLAYER_MANA_PERCENT = "PlayerManaPercent"
    FLASK1_IS_USABLE = "Flask1IsUsable"
    FLASK2_IS_USABLE = "Flask2IsUsable"
    FLASK3_IS_USABLE = "Flask3IsUsable"
    FLASK4_IS_USABLE = "Flask4IsUsable"
    FLASK5_IS_USABLE = "Flask5IsUsable"
    HAS_BUFF = "HasBuff"
    NOT_HAS_BUFF = "NotHasBuff"
    FLASK1_EFFECT_ACTIVE = "Flask1EffectActive"
    FLASK2_EFFECT_ACTIVE = "Flask2EffectActive"
    FLASK3_EFFECT_ACTIVE = "Flask3EffectActive"
    FLASK4_EFFECT_ACTIVE = "Flask4EffectActive"
    FLASK5_EFFECT_ACTIVE = "Flask5EffectActive"

    @property
    def kind(self) -> FactorKind:
        return FACTOR_TABLE[self].kind

    @property
    def display(self) -> str:
        return FACTOR_TABLE[self].display


class Operator(StrEnum):
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    IS_EQUAL_TO = "IsEqualTo"
    IS_TRUE = "IsTrue"
    IS_FALSE = "IsFalse"

    @property
    def display(self) -> str:
        return OPERATOR_TABLE[self].display


@dataclass(frozen=True, slots=True)
class FactorInfo:
    display: str
    fragment: str
    kind: FactorKind


@dataclass(frozen=True, slots=True)
class OperatorInfo:
    display: str
    # Comparison symbol for numeric operators; None for the boolean tests.
    symbol: str | None


def _flask_usable(slot: int) -> FactorInfo:
    return FactorInfo(f"Flask {slot} is Usable", f"Flasks.Flask{slot}.IsUsable", FactorKind.BOOLEAN)


def _flask_active(slot: int) -> FactorInfo:
    return FactorInfo(
        f"Flask {slot} Effect is Active", f"Flasks.Flask{slot}.Active", FactorKind.BOOLEAN
    )


FACTOR_TABLE: dict[Factor, FactorInfo] = {
    Factor.PLAYER_HEALTH_PERCENT: FactorInfo(
        "Player Health (%)", "PlayerVitals.HP.Percent", FactorKind.NUMERIC
    ),
    Factor.PLAYER_MANA_PERCENT: FactorInfo(
        "Player Mana (%)", "PlayerVitals.MANA.Percent", FactorKind.NUMERIC
    ),
    Factor.FLASK1_IS_USABLE: _flask_usable(1),
    Factor.FLASK2_IS_USABLE: _flask_usable(2),
    Factor.FLASK3_IS_USABLE: _flask_usable(3),
    Factor.FLASK4_IS_USABLE: _flask_usable(4),
    Factor.FLASK5_IS_USABLE: _flask_usable(5),
    Factor.HAS_BUFF: FactorInfo(
        "Has Effect (Buff/Debuff)", "PlayerBuffs.Has({name})", FactorKind.TEXT
    ),
    Factor.NOT_HAS_BUFF: FactorInfo(
        "Does NOT Have Effect (Buff/Debuff)", "!PlayerBuffs.Has({name})", FactorKind.TEXT
    ),
    Factor.FLASK1_EFFECT_ACTIVE: _flask_active(1),
    Factor.FLASK2_EFFECT_ACTIVE: _flask_active(2),
    Factor.FLASK3_EFFECT_ACTIVE: _flask_active(3),
    Factor.FLASK4_EFFECT_ACTIVE: _flask_active(4),
    Factor.FLASK5_EFFECT_ACTIVE: _flask_active(5),
}

OPERATOR_TABLE: dict[Operator, OperatorInfo] = {
    Operator.LESS_THAN_OR_EQUAL: OperatorInfo("<=", "<="),
    Operator.GREATER_THAN_OR_EQUAL: OperatorInfo(">=", ">="),
    Operator.IS_EQUAL_TO: OperatorInfo("==", "=="),
    Operator.IS_TRUE: OperatorInfo("is True", None),
    Operator.IS_FALSE: OperatorInfo("is False", None),
}

NUMERIC_OPERATORS = frozenset(
    {Operator.LESS_THAN_OR_EQUAL, Operator.GREATER_THAN_OR_EQUAL, Operator.IS_EQUAL_TO}
)
BOOLEAN_OPERATORS = frozenset({Operator.IS_TRUE, Operator.IS_FALSE})


def factor_names() -> list[str]:
    return [FACTOR_TABLE[factor].display for factor in Factor]


def operator_names() -> list[str]:
    return [OPERATOR_TABLE[operator].display for operator in Operator]


@dataclass(frozen=True, slots=True)
class NumericValue:
    number: float

    def render(self) -> str:
        number = self.number
        if isinstance(number, float) and number.is_integer():
            return str(int(number))
        return repr(number)


@dataclass(frozen=True, slots=True)
class TextValue:
    text: str


ConditionValue = Union[NumericValue, TextValue]


def _coerce_value(raw: Any) -> ConditionValue:
    if isinstance(raw, (NumericValue, TextValue)):
        return raw
    if isinstance(raw, bool):
        raise ConditionError(f"Condition value {raw!r} must be a number or text")
    if isinstance(raw, (int, float)):
        return NumericValue(raw)
    if isinstance(raw, str):
        return TextValue(raw)
    raise ConditionError(f"Condition value {raw!r} must be a number or text")


@dataclass(frozen=True, slots=True)
class SimpleCondition:
    """One ``(factor, operator, value)`` row of the simple rule editor."""

    factor: Factor = Factor.PLAYER_HEALTH_PERCENT
    operator: Operator = Operator.LESS_THAN_OR_EQUAL
    value: ConditionValue = NumericValue(50)

    def compile(self) -> str:
        """Return the script fragment for this condition.

        Raises :class:`ConditionError` when the operator or value does not suit
        the factor. Buff factors ignore the operator.
        """

        info = FACTOR_TABLE[self.factor]
        if info.kind is FactorKind.TEXT:
            if not isinstance(self.value, TextValue):
                raise ConditionError(f"{info.display} needs a buff name, got {self.value!r}")
            if not self.value.text:
                raise ConditionError(f"{info.display} needs a non-empty buff name")
            return info.fragment.format(name=json.dumps(self.value.text))

        if info.kind is FactorKind.BOOLEAN:
            if self.operator is Operator.IS_TRUE:
                return info.fragment
            if self.operator is Operator.IS_FALSE:
                return f"!{info.fragment}"
            raise ConditionError(
                f"{info.display} only supports 'is True' or 'is False', "
                f"not {self.operator.display!r}"
            )

        if self.operator not in NUMERIC_OPERATORS:
            raise ConditionError(
                f"{info.display} needs a comparison operator, not {self.operator.display!r}"
            )
        if not isinstance(self.value, NumericValue):
            raise ConditionError(f"{info.display} needs a number, got {self.value!r}")
        if not math.isfinite(self.value.number):
            raise ConditionError(f"{info.display} needs a finite number, got {self.value.number!r}")
        symbol = OPERATOR_TABLE[self.operator].symbol
        return f"{info.fragment} {symbol} {self.value.render()}"

    def to_dict(self) -> dict[str, Any]:
        value = self.value.number if isinstance(self.value, NumericValue) else self.value.text
        return {
            "SelectedFactor": self.factor.value,
            "SelectedOperator": self.operator.value,
            "Value": value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> SimpleCondition:
        if not isinstance(payload, Mapping):
            raise ConditionError(f"Condition entry must be an object, got {payload!r}")
        try:
            factor = Factor(payload.get("SelectedFactor", Factor.PLAYER_HEALTH_PERCENT.value))
            operator = Operator(
                payload.get("SelectedOperator", Operator.LESS_THAN_OR_EQUAL.value)
            )
        except ValueError as exc:
            raise ConditionError(str(exc)) from exc
        return cls(factor, operator, _coerce_value(payload.get("Value", 50)))


_FRAGMENT_TO_FACTOR = {
    info.fragment: factor
    for factor, info in FACTOR_TABLE.items()
    if info.kind is not FactorKind.TEXT
}
_SYMBOL_TO_OPERATOR = {
    info.symbol: operator for operator, info in OPERATOR_TABLE.items() if info.symbol
}
_COMPARISON = re.compile(r"^(?P<fragment>[\w.]+) (?P<symbol><=|>=|==) (?P<number>-?[\d.eE+-]+)$")
_BUFF_CALL = re.compile(r'^(?P<negated>!?)PlayerBuffs\.Has\((?P<name>".*")\)$')


def parse_condition(fragment: str) -> SimpleCondition:
    """Rebuild the condition that compiles to ``fragment``.

    The inverse of :meth:`SimpleCondition.compile` for the fragments it emits;
    anything else raises :class:`ConditionError`.
    """

    text = fragment.strip()

    buff = _BUFF_CALL.match(text)
    if buff is not None:
        try:
            name = json.loads(buff.group("name"))
        except json.JSONDecodeError as exc:
            raise ConditionError(f"Malformed buff name in {fragment!r}") from exc
        factor = Factor.NOT_HAS_BUFF if buff.group("negated") else Factor.HAS_BUFF
        return SimpleCondition(factor, Operator.IS_TRUE, TextValue(name))

    comparison = _COMPARISON.match(text)
    if comparison is not None:
        factor = _FRAGMENT_TO_FACTOR.get(comparison.group("fragment"))
        if factor is None or factor.kind is not FactorKind.NUMERIC:
            raise ConditionError(f"Unknown numeric factor in {fragment!r}")
        raw = comparison.group("number")
        try:
            number: float = int(raw)
        except ValueError:
            try:
                number = float(raw)
            except ValueError as exc:
                raise ConditionError(f"Malformed number in {fragment!r}") from exc
        return SimpleCondition(
            factor, _SYMBOL_TO_OPERATOR[comparison.group("symbol")], NumericValue(number)
        )

    negated = text.startswith("!")
    factor = _FRAGMENT_TO_FACTOR.get(text[1:] if negated else text)
    if factor is None or factor.kind is not FactorKind.BOOLEAN:
        raise ConditionError(f"{fragment!r} is not a simple condition")
    return SimpleCondition(
        factor, Operator.IS_FALSE if negated else Operator.IS_TRUE, NumericValue(0)
    )
