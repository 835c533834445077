"""Evaluation of rule condition scripts.

Scripts use a small C-like boolean language::

    PlayerVitals.HP.Percent <= 80 && Flasks.Flask1.IsUsable && !PlayerBuffs.Has("Onslaught")

The text is rewritten to the equivalent Python expression, parsed with
:mod:`ast`, checked against a whitelist of node types and then interpreted
against a bindings namespace. Nothing in a script is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, Protocol

from vigil.rules.errors import ScriptError

FLASK_SLOTS = (1, 2, 3, 4, 5)

_TOKEN = re.compile(
    r"""("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')"""
    r"|(&&)|(\|\|)|(!=)|(!)|\b(true|false)\b"
)

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Compare,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Call,
    ast.Constant,
)

_COMPARISONS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


class Evaluator(Protocol):
    def evaluate(self, script: str, bindings: Mapping[str, Any]) -> bool: ...


def translate(script: str) -> str:
    """Rewrite C-like operators to Python, leaving string literals alone."""

    def replace(match: re.Match[str]) -> str:
        literal, conjunction, disjunction, not_equal, negation, boolean = match.groups()
        if literal is not None:
            return literal
        if conjunction is not None:
            return " and "
        if disjunction is not None:
            return " or "
        if not_equal is not None:
            return "!="
        if negation is not None:
            return " not "
        return "True" if boolean == "true" else "False"

    return _TOKEN.sub(replace, script).strip()


@lru_cache(maxsize=256)
def compile_script(script: str) -> ast.Expression:
    """Parse and validate ``script``; raise :class:`ScriptError` when rejected."""

    source = translate(script)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise ScriptError(f"Malformed condition script {script!r}: {exc.msg}") from exc

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ScriptError(
                f"Unsupported syntax {type(node).__name__} in condition script {script!r}"
            )
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ScriptError(f"Private attribute {node.attr!r} in condition script")
        if isinstance(node, ast.Call) and node.keywords:
            raise ScriptError("Keyword arguments are not supported in condition scripts")
        if isinstance(node, ast.Constant) and not isinstance(
            node.value, (bool, int, float, str)
        ):
            raise ScriptError(f"Unsupported literal {node.value!r} in condition script")
    return tree


def _lookup(target: Any, name: str) -> Any:
    if isinstance(target, Mapping):
        if name in target:
            return target[name]
        raise ScriptError(f"Unknown binding {name!r}")
    try:
        return getattr(target, name)
    except AttributeError as exc:
        raise ScriptError(f"Unknown binding {name!r}") from exc


class _Interpreter:
    def __init__(self, bindings: Mapping[str, Any]) -> None:
        self._bindings = bindings

    def visit(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return self.visit(node.body)
        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)
        if isinstance(node, ast.UnaryOp):
            operand = self.visit(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, ast.USub):
                return -operand
            return +operand
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.Name):
            return _lookup(self._bindings, node.id)
        if isinstance(node, ast.Attribute):
            return _lookup(self.visit(node.value), node.attr)
        if isinstance(node, ast.Call):
            function = self.visit(node.func)
            if not callable(function):
                raise ScriptError(f"{ast.unparse(node.func)} is not callable")
            return function(*(self.visit(arg) for arg in node.args))
        if isinstance(node, ast.Constant):
            return node.value
        raise ScriptError(f"Unsupported syntax {type(node).__name__}")

    def _bool_op(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value in node.values:
            result = self.visit(value)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not _COMPARISONS[type(op)](left, right):
                return False
            left = right
        return True


class ScriptEvaluator:
    """Evaluate condition scripts against a bindings namespace."""

    def evaluate(self, script: str, bindings: Mapping[str, Any]) -> bool:
        tree = compile_script(script)
        try:
            return bool(_Interpreter(bindings).visit(tree))
        except ScriptError:
            raise
        except Exception as exc:
            raise ScriptError(f"Evaluating {script!r} failed: {exc}") from exc


@dataclass(frozen=True, slots=True)
class FlaskState:
    is_usable: bool = False
    active: bool = False


class BuffSet:
    """Buff names exposed to scripts as ``PlayerBuffs.Has("name")``."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names = frozenset(names)

    def Has(self, name: str) -> bool:
        return name in self._names

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __repr__(self) -> str:
        return f"BuffSet({sorted(self._names)!r})"


def build_bindings(
    *,
    health_percent: float,
    mana_percent: float,
    flasks: Mapping[int, FlaskState] | None = None,
    buffs: Iterable[str] = (),
) -> dict[str, Any]:
    """Build the namespace compiled conditions are evaluated against."""

    flasks = flasks or {}
    return {
        "PlayerVitals": {
            "HP": {"Percent": health_percent},
            "MANA": {"Percent": mana_percent},
        },
        "Flasks": {
            f"Flask{slot}": {
                "IsUsable": flasks.get(slot, FlaskState()).is_usable,
                "Active": flasks.get(slot, FlaskState()).active,
            }
            for slot in FLASK_SLOTS
        },
        "PlayerBuffs": BuffSet(buffs),
    }


def bindings_from_snapshot(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Build bindings from a JSON snapshot.

    Expected shape::

        {"health_percent": 75, "mana_percent": 40,
         "flasks": {"1": {"usable": true, "active": false}},
         "buffs": ["Onslaught"]}
    """

    try:
        flasks = {
            int(slot): FlaskState(
                is_usable=bool(state.get("usable", False)),
                active=bool(state.get("active", False)),
            )
            for slot, state in dict(payload.get("flasks", {})).items()
        }
        return build_bindings(
            health_percent=float(payload.get("health_percent", 100)),
            mana_percent=float(payload.get("mana_percent", 100)),
            flasks=flasks,
            buffs=[str(name) for name in payload.get("buffs", [])],
        )
    except (AttributeError, TypeError, ValueError) as exc:
        raise ScriptError(f"Malformed bindings snapshot: {exc}") from exc
