"""
Rule set providers.

A provider answers "which rules apply to this principal, action and resource
type" with ready-to-evaluate rule instances, already deduplicated. The
in-memory repository below keeps rule definitions and their assignments to
principals and roles.
"""

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from shared.config import get_settings
from shared.logging import get_logger

from .rules.base import RuleContract, get_value
from .rules.models import AccessRuleRecord, PrincipalRef, RuleAssignment
from .rules.registry import RuleRegistry, default_registry

RoleResolver = Callable[[Any], Iterable[Any]]


class RuleSetProvider(Protocol):
    """Supplies the rules applicable to a (principal, action, resource type) triple."""

    def applicable_rules(self, principal: Any, action: str, resource_type: str) -> List[RuleContract]: ...


def principal_ref(principal: Any) -> PrincipalRef:
    """Build the assignment reference of a principal or role."""
    if isinstance(principal, PrincipalRef):
        return principal
    if isinstance(principal, str):
        # Bare role names
        return PrincipalRef(type="role", id=principal)

    principal_type = get_value(principal, "principal_type") or type(principal).__name__
    return PrincipalRef(type=principal_type, id=get_value(principal, "id"))


def default_role_resolver(principal: Any) -> Iterable[Any]:
    """Read roles from the principal's ``roles`` attribute or key."""
    return get_value(principal, "roles") or ()


class InMemoryRuleRepository:
    """In-memory rule store implementing :class:`RuleSetProvider`."""

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        role_resolver: Optional[RoleResolver] = None,
        role_inheritance: Optional[bool] = None
    ):
        self.logger = get_logger("access_control.provider")
        self.registry = registry or default_registry()
        self.role_resolver = role_resolver or default_role_resolver
        if role_inheritance is None:
            role_inheritance = get_settings().role_inheritance
        self.role_inheritance = role_inheritance
        self.rules: Dict[str, AccessRuleRecord] = {}
        self.assignments: Set[RuleAssignment] = set()
        self._lock = threading.RLock()

    def add_rule(self, rule: AccessRuleRecord) -> bool:
        """Add a rule definition. Adding an existing id replaces it."""
        with self._lock:
            self.rules[rule.rule_id] = rule
        self.logger.info("Rule added", rule_id=rule.rule_id, name=rule.name, kind=rule.kind)
        return True

    def update_rule(self, rule: AccessRuleRecord) -> bool:
        """Update an existing rule definition."""
        with self._lock:
            if rule.rule_id not in self.rules:
                return False
            self.rules[rule.rule_id] = rule
        self.logger.info("Rule updated", rule_id=rule.rule_id, name=rule.name)
        return True

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule definition and its assignments."""
        with self._lock:
            rule = self.rules.pop(rule_id, None)
            if rule is None:
                return False
            self.assignments = {a for a in self.assignments if a.rule_id != rule_id}
        self.logger.info("Rule removed", rule_id=rule_id, name=rule.name)
        return True

    def get_rule(self, rule_id: str) -> Optional[AccessRuleRecord]:
        """Get a rule definition by id."""
        return self.rules.get(rule_id)

    def assign(self, rule_id: str, assignable: Any) -> bool:
        """Assign a rule to a principal or role."""
        with self._lock:
            if rule_id not in self.rules:
                return False
            self.assignments.add(RuleAssignment(rule_id, principal_ref(assignable)))
        return True

    def unassign(self, rule_id: str, assignable: Any) -> bool:
        """Remove a rule assignment."""
        assignment = RuleAssignment(rule_id, principal_ref(assignable))
        with self._lock:
            if assignment not in self.assignments:
                return False
            self.assignments.discard(assignment)
        return True

    def sync(self, assignable: Any, rule_ids: Iterable[str]) -> None:
        """Make ``rule_ids`` the exact set of rules assigned to ``assignable``."""
        ref = principal_ref(assignable)
        wanted = {rule_id for rule_id in rule_ids if rule_id in self.rules}
        with self._lock:
            self.assignments = {a for a in self.assignments if a.assignable != ref}
            self.assignments.update(RuleAssignment(rule_id, ref) for rule_id in wanted)

    def has_rule(self, assignable: Any, rule_id: str) -> bool:
        """Check whether a rule is directly assigned."""
        return RuleAssignment(rule_id, principal_ref(assignable)) in self.assignments

    def rules_for(self, assignable: Any, action: str, resource_type: str) -> List[AccessRuleRecord]:
        """Active definitions directly assigned to ``assignable`` for an action and resource type."""
        ref = principal_ref(assignable)
        with self._lock:
            assigned = {a.rule_id for a in self.assignments if a.assignable == ref}
            return [
                rule for rule_id, rule in self.rules.items()
                if rule_id in assigned and self._matches(rule, action, resource_type)
            ]

    def applicable_rules(self, principal: Any, action: str, resource_type: str) -> List[RuleContract]:
        """Rules assigned to the principal or its roles, highest priority first.

        Equal priorities are ordered by rule id so repeated calls agree.
        """
        records: Dict[str, AccessRuleRecord] = {}
        assignables = [principal]
        if self.role_inheritance:
            assignables.extend(self.role_resolver(principal))

        for assignable in assignables:
            for record in self.rules_for(assignable, action, resource_type):
                records.setdefault(record.rule_id, record)

        ordered = sorted(records.values(), key=lambda r: (-r.priority, r.rule_id))
        return [self.instantiate(record) for record in ordered]

    def instantiate(self, record: AccessRuleRecord) -> RuleContract:
        """Build the rule instance for a stored definition."""
        return self.registry.create(
            record.kind,
            record.settings,
            priority=record.priority,
            deny=record.is_deny_rule
        )

    @staticmethod
    def _matches(rule: AccessRuleRecord, action: str, resource_type: str) -> bool:
        if not rule.active:
            return False
        if not rule.key.startswith(f"{action}_"):
            return False
        return rule.resource_type is None or rule.resource_type == resource_type

    def clear_all_rules(self):
        """Clear all rules and assignments."""
        with self._lock:
            self.rules.clear()
            self.assignments.clear()
        self.logger.info("All rules cleared")
