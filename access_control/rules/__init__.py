"""
Rules package.

Defines the rule contract, the built-in rule kinds and the registry that
turns stored rule definitions into rule instances.

Modules of interest:
- models: Enums, stored rule records and typed rule settings.
- base: The rule contract and value/column helpers.
- builtin: Attribute, date range, ownership, status and callable rules.
- registry: Kind tag -> factory mapping used by rule providers.
"""

from .base import AccessRule, RuleContract, get_value, resolve_column
from .builtin import AttributeRule, CallableRule, DateRangeRule, OwnershipRule, StatusRule
from .models import (
    AccessRuleRecord, ComparisonOperator, GroupingStrategy, Polarity, PrincipalRef,
    ResolutionStrategy, RuleAssignment
)
from .registry import RuleRegistry, default_registry

__all__ = [
    "AccessRule",
    "AccessRuleRecord",
    "AttributeRule",
    "CallableRule",
    "ComparisonOperator",
    "DateRangeRule",
    "GroupingStrategy",
    "OwnershipRule",
    "Polarity",
    "PrincipalRef",
    "ResolutionStrategy",
    "RuleAssignment",
    "RuleContract",
    "RuleRegistry",
    "StatusRule",
    "default_registry",
    "get_value",
    "resolve_column",
]
