"""
Built-in rule kinds.

Each rule is a parametrized predicate adapter. A rule that is not configured
restricts nothing: it passes every resource and contributes ``true()`` to
bulk filters.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from operator import eq, ge, gt, le, lt, ne
from typing import Any, Callable, Optional, Tuple

from sqlalchemy import ColumnElement, false, true

from .base import AccessRule, get_value, resolve_column
from .models import ComparisonOperator

_COMPARATORS = {
    ComparisonOperator.EQUALS: eq,
    ComparisonOperator.NOT_EQUALS: ne,
    ComparisonOperator.GREATER_THAN: gt,
    ComparisonOperator.GREATER_THAN_OR_EQUAL: ge,
    ComparisonOperator.LESS_THAN: lt,
    ComparisonOperator.LESS_THAN_OR_EQUAL: le,
}


_ORDERED = frozenset({
    ComparisonOperator.GREATER_THAN,
    ComparisonOperator.GREATER_THAN_OR_EQUAL,
    ComparisonOperator.LESS_THAN,
    ComparisonOperator.LESS_THAN_OR_EQUAL,
})

_MEMBERSHIP = frozenset({ComparisonOperator.IN, ComparisonOperator.NOT_IN})


def _is_list_like(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _unwrap(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class AttributeRule(AccessRule):
    """Compare a resource attribute with a principal attribute or a static value.

    Example: ``ticket.department_id == user.department_id``.
    """

    model_attribute: Optional[str] = None
    user_attribute: Optional[str] = None
    static_value: Any = None
    operator: ComparisonOperator = ComparisonOperator.EQUALS

    def __post_init__(self):
        object.__setattr__(self, "operator", ComparisonOperator.parse(self.operator))

    def passes(self, principal: Any, resource: Any) -> bool:
        if not self.model_attribute:
            return True

        model_value = get_value(resource, self.model_attribute)

        if self.user_attribute:
            return self._compare(model_value, get_value(principal, self.user_attribute))

        if self.static_value is not None:
            return self._compare(model_value, self.static_value)

        return True

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        if not self.model_attribute:
            return true()

        if self.user_attribute:
            value = get_value(principal, self.user_attribute)
        elif self.static_value is not None:
            value = self.static_value
        else:
            return true()

        target = resolve_column(entity, self.model_attribute)

        if self.operator in _MEMBERSHIP:
            # Membership against a scalar never passes
            if not _is_list_like(value):
                return false()
            if self.operator is ComparisonOperator.IN:
                return target.in_(list(value))
            return target.not_in(list(value))
        return _COMPARATORS[self.operator](target, value)

    def _compare(self, left: Any, right: Any) -> bool:
        # A NULL attribute only matches equality with None, as in SQL
        if left is None and self.operator is not ComparisonOperator.EQUALS:
            return False
        if self.operator is ComparisonOperator.IN:
            return _is_list_like(right) and left in right
        if self.operator is ComparisonOperator.NOT_IN:
            return _is_list_like(right) and left not in right
        if right is None and self.operator in _ORDERED:
            return False
        return bool(_COMPARATORS[self.operator](left, right))


def _as_datetime(value: Any) -> Any:
    if isinstance(value, datetime) or value is None:
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


@dataclass(frozen=True)
class DateRangeRule(AccessRule):
    """Restrict access to resources whose date column falls in ``[start, end]``."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    date_column: str = "created_at"

    @classmethod
    def for_days(
        cls,
        start: Optional[date] = None,
        end: Optional[date] = None,
        date_column: str = "created_at",
        priority: int = 0,
        deny: bool = False,
    ) -> "DateRangeRule":
        """Build a rule spanning whole days, from the start of ``start`` to the end of ``end``."""
        return cls(
            priority=priority,
            deny=deny,
            start=datetime.combine(start, time.min) if start else None,
            end=datetime.combine(end, time.max) if end else None,
            date_column=date_column,
        )

    def passes(self, principal: Any, resource: Any) -> bool:
        if self.start is None and self.end is None:
            return True

        value = _as_datetime(get_value(resource, self.date_column))
        if value is None:
            return False

        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        if self.start is None and self.end is None:
            return true()

        target = resolve_column(entity, self.date_column)

        if self.start is not None and self.end is not None:
            return target.between(self.start, self.end)
        if self.start is not None:
            return target >= self.start
        return target <= self.end


@dataclass(frozen=True)
class OwnershipRule(AccessRule):
    """Restrict access to records owned by the principal."""

    owner_column: str = "user_id"
    user_id_column: str = "id"

    def passes(self, principal: Any, resource: Any) -> bool:
        owner_id = get_value(resource, self.owner_column)
        if owner_id is None:
            return False
        return owner_id == get_value(principal, self.user_id_column)

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        user_id = get_value(principal, self.user_id_column)
        if user_id is None:
            return false()
        return resolve_column(entity, self.owner_column) == user_id


@dataclass(frozen=True)
class StatusRule(AccessRule):
    """Restrict access based on the resource status."""

    statuses: Tuple[Any, ...] = ()
    status_column: str = "status"

    def __post_init__(self):
        object.__setattr__(self, "statuses", tuple(_unwrap(s) for s in (self.statuses or ())))

    def passes(self, principal: Any, resource: Any) -> bool:
        if not self.statuses:
            return True

        status = _unwrap(get_value(resource, self.status_column))
        return status in self.statuses

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        if not self.statuses:
            return true()
        return resolve_column(entity, self.status_column).in_(list(self.statuses))


@dataclass(frozen=True)
class CallableRule(AccessRule):
    """Adapt plain callables to the rule contract.

    ``check(principal, resource)`` decides single instances and
    ``scope(principal, entity)`` builds the bulk filter condition.
    """

    check: Optional[Callable[[Any, Any], bool]] = None
    scope: Optional[Callable[[Any, Any], ColumnElement[bool]]] = None

    def passes(self, principal: Any, resource: Any) -> bool:
        if self.check is None:
            return True
        return bool(self.check(principal, resource))

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        if self.scope is None:
            return true()
        return self.scope(principal, entity)
