"""
Scope compilation: turn a rule set into one SQL filter for bulk queries.

Only allow rules contribute. Deny rules veto single-instance checks but do
not remove rows from a filtered listing.
"""

from typing import Any, Iterable, List, Optional, Union

from sqlalchemy import ColumnElement, Select, and_, false, or_, true
from sqlalchemy.sql.elements import True_

from shared.logging import get_logger

from .rules.base import RuleContract, get_value, resolve_column
from .rules.models import GroupingStrategy


class ScopeCompiler:
    """Compile rule filter contributions into a composite filter."""

    def __init__(self):
        self.logger = get_logger("access_control.scope")

    def compile(
        self,
        rules: Iterable[RuleContract],
        principal: Any,
        grouping: Union[GroupingStrategy, str] = GroupingStrategy.AND,
        entity: Any = None,
        fallback_column: Optional[str] = None,
        principal_key: str = "id"
    ) -> ColumnElement[bool]:
        """Build the composite filter for ``principal``.

        Falls back to :meth:`fallback` when no allow rule applies.
        """
        allow_rules: List[RuleContract] = [
            rule for rule in sorted(rules, key=lambda r: r.priority, reverse=True)
            if not rule.is_deny()
        ]

        if not allow_rules:
            return self.fallback(principal, fallback_column, entity, principal_key)

        grouping = GroupingStrategy.parse(grouping)
        contributions = [rule.filter_contribution(principal, entity) for rule in allow_rules]

        # Each contribution is a complete expression; or_ parenthesizes as needed
        if grouping is GroupingStrategy.OR:
            expression = or_(*contributions)
        else:
            expression = and_(*contributions)

        self.logger.debug(
            "Scope compiled",
            grouping=grouping.value,
            rule_count=len(allow_rules)
        )
        return expression

    def fallback(
        self,
        principal: Any,
        fallback_column: Optional[str] = None,
        entity: Any = None,
        principal_key: str = "id"
    ) -> ColumnElement[bool]:
        """Restrictive default used when no rules apply.

        ``fallback_column = principal id`` when a column is configured,
        ``false()`` for principals without an id, otherwise ``true()``
        (no restriction).
        """
        if not fallback_column:
            self.logger.warning("No fallback column configured, scope is unrestricted")
            return true()

        principal_id = get_value(principal, principal_key)
        if principal_id is None:
            return false()
        return resolve_column(entity, fallback_column) == principal_id

    def apply(self, query: Select, expression: ColumnElement[bool]) -> Select:
        """Restrict a select with a compiled filter."""
        if is_unrestricted(expression):
            return query
        return query.where(expression)


def is_unrestricted(expression: ColumnElement[bool]) -> bool:
    """True when the filter lets every row through."""
    return isinstance(expression, True_)
