class RuleError(Exception):
    """Base class for rule configuration and evaluation failures."""


class ConditionError(RuleError):
    """A simple condition combines a factor, operator and value that do not fit."""


class ScriptError(RuleError):
    """A condition script is malformed, unsafe, or names an unknown binding."""
