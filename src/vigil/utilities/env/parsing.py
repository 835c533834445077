import os
from typing import Callable, Sequence, TypeVar

TRUE_FLAG_VALUES = {"true", "1", "yes", "on"}

N = TypeVar("N", int, float)


def _env_value(env_var: str) -> str | None:
    """Return the stripped value of ``env_var``; blank counts as unset."""

    value = os.environ.get(env_var)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse(env_var: str, value: str, convert: Callable[[str], N], kind: str) -> N:
    try:
        return convert(value)
    except ValueError as exc:
        raise ValueError(f"{env_var} must be {kind}, got {value!r}") from exc


def _env_flag(env_var: str, *, default: bool = False) -> bool:
    """Return the boolean value of ``env_var`` respecting common true strings."""

    value = _env_value(env_var)
    if value is None:
        return default
    return value.lower() in TRUE_FLAG_VALUES


def _env_int(env_var: str, *, default: int, minimum: int | None = None) -> int:
    value = _env_value(env_var)
    if value is None:
        return default
    parsed = _parse(env_var, value, int, "an integer")
    if minimum is not None and parsed < minimum:
        raise ValueError(f"{env_var} must be at least {minimum}")
    return parsed


def _env_float(
    env_var: str,
    *,
    default: float,
    minimum: float | None = None,
    exclusive_minimum: bool = False,
) -> float:
    """Return the float value of ``env_var``.

    With ``exclusive_minimum`` the bound itself is rejected, so a backoff of
    ``0`` cannot turn the reacquire loop into a busy wait.
    """

    value = _env_value(env_var)
    if value is None:
        return default
    parsed = _parse(env_var, value, float, "a number")
    if minimum is None:
        return parsed
    if exclusive_minimum and parsed <= minimum:
        raise ValueError(f"{env_var} must be greater than {minimum}")
    if parsed < minimum:
        raise ValueError(f"{env_var} must be at least {minimum}")
    return parsed


def _env_int_list(
    env_var: str, *, default: Sequence[int], length: int
) -> tuple[int, ...]:
    """Return a comma separated list of non-negative integers of fixed ``length``."""

    value = _env_value(env_var)
    if value is None:
        return tuple(default)
    parsed = tuple(
        _parse(env_var, part.strip(), int, "a comma separated list of integers")
        for part in value.split(",")
    )
    if len(parsed) != length or any(item < 0 for item in parsed):
        raise ValueError(f"{env_var} must list exactly {length} non-negative integers")
    return parsed
