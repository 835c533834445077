"""Condition-driven automation rules."""

from .conditions import Factor as Factor
from .conditions import NumericValue as NumericValue
from .conditions import Operator as Operator
from .conditions import SimpleCondition as SimpleCondition
from .conditions import TextValue as TextValue
from .engine import DispatchRecord as DispatchRecord
from .engine import RuleEngine as RuleEngine
from .rule import ActionType as ActionType
from .rule import Rule as Rule
from .rule import create_default_rules as create_default_rules
from .script import ScriptEvaluator as ScriptEvaluator
