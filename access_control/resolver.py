"""
Rule resolution for single-instance access checks.
"""

from typing import Any, Iterable, List, Union

from shared.logging import get_logger

from .rules.base import RuleContract
from .rules.models import ResolutionStrategy


class RuleResolver:
    """Combine a collection of rules into one access decision.

    Stateless; one instance can be shared across threads.
    """

    def __init__(self):
        self.logger = get_logger("access_control.resolver")

    def sort_by_priority(self, rules: Iterable[RuleContract]) -> List[RuleContract]:
        """Sort rules by priority, higher first. Equal priorities keep input order."""
        return sorted(rules, key=lambda r: r.priority, reverse=True)

    def resolve(
        self,
        rules: Iterable[RuleContract],
        principal: Any,
        resource: Any,
        strategy: Union[ResolutionStrategy, str] = ResolutionStrategy.ANY
    ) -> bool:
        """Decide whether access is granted.

        No rules means no access. Exceptions raised by a rule propagate.
        """
        sorted_rules = self.sort_by_priority(rules)
        if not sorted_rules:
            return False

        strategy = ResolutionStrategy.parse(strategy)

        if strategy is ResolutionStrategy.ALL:
            allowed = self._resolve_all(sorted_rules, principal, resource)
        elif strategy is ResolutionStrategy.PRIORITY:
            allowed = self._resolve_priority(sorted_rules, principal, resource)
        else:
            allowed = self._resolve_any(sorted_rules, principal, resource)

        self.logger.debug(
            "Rules resolved",
            strategy=strategy.value,
            rule_count=len(sorted_rules),
            allowed=allowed
        )
        return allowed

    def _denied(self, rules: List[RuleContract], principal: Any, resource: Any) -> bool:
        for rule in rules:
            if rule.is_deny() and rule.passes(principal, resource):
                self.logger.debug("Deny rule matched", rule=repr(rule))
                return True
        return False

    def _resolve_any(self, rules: List[RuleContract], principal: Any, resource: Any) -> bool:
        """Any passing allow rule grants, unless a deny rule passes first."""
        if self._denied(rules, principal, resource):
            return False

        for rule in rules:
            if not rule.is_deny() and rule.passes(principal, resource):
                return True

        return False

    def _resolve_all(self, rules: List[RuleContract], principal: Any, resource: Any) -> bool:
        """Every allow rule must pass, unless a deny rule passes first."""
        if self._denied(rules, principal, resource):
            return False

        allow_rules = [rule for rule in rules if not rule.is_deny()]
        if not allow_rules:
            return False

        for rule in allow_rules:
            if not rule.passes(principal, resource):
                return False

        return True

    def _resolve_priority(self, rules: List[RuleContract], principal: Any, resource: Any) -> bool:
        """The first passing rule wins, whatever its polarity."""
        for rule in rules:
            if rule.passes(principal, resource):
                return not rule.is_deny()

        return False
