"""
Per-resource access control engine.

Decides whether a principal may perform an action on a resource by
evaluating pluggable, prioritized allow/deny rules, and compiles the same
rules into SQLAlchemy filters for bulk queries.

- rules: Rule contract, built-in rule kinds and the kind registry.
- resolver: ANY / ALL / PRIORITY resolution of a rule set.
- scope: AND / OR compilation of rule filters, with fallback filtering.
- provider: Rule set provider contract and an in-memory repository.
- service: Configuration lookup and orchestration (``can``, ``filter_query``).
- hooks: Tri-state before-authorization hook for host pipelines.

Guidelines:
- Resolution and compilation are pure; rule lookup happens in the provider.
- Rule evaluation errors are never turned into a grant.
"""

from .hooks import BeforeAuthorizationHook, HookResult
from .provider import InMemoryRuleRepository, RuleSetProvider, principal_ref
from .resolver import RuleResolver
from .rules import (
    AccessRule, AccessRuleRecord, AttributeRule, CallableRule, DateRangeRule,
    GroupingStrategy, OwnershipRule, PrincipalRef, ResolutionStrategy, RuleContract,
    RuleRegistry, StatusRule, default_registry
)
from .scope import ScopeCompiler
from .service import AccessControlService, EffectiveConfig, resource_type_of

__all__ = [
    "AccessControlService",
    "AccessRule",
    "AccessRuleRecord",
    "AttributeRule",
    "BeforeAuthorizationHook",
    "CallableRule",
    "DateRangeRule",
    "EffectiveConfig",
    "GroupingStrategy",
    "HookResult",
    "InMemoryRuleRepository",
    "OwnershipRule",
    "PrincipalRef",
    "ResolutionStrategy",
    "RuleContract",
    "RuleRegistry",
    "RuleResolver",
    "RuleSetProvider",
    "ScopeCompiler",
    "StatusRule",
    "default_registry",
    "principal_ref",
    "resource_type_of",
]
