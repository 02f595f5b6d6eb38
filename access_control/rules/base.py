"""
Rule contract shared by every rule kind.

A rule answers two questions for a principal: does a given resource pass
(``passes``), and which SQL condition selects the resources that would pass
(``filter_contribution``). Rules are immutable; priority and polarity are
fixed when the rule is built.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy import ColumnElement, column

from .models import Polarity

_MISSING = object()


@runtime_checkable
class RuleContract(Protocol):
    """Structural contract every rule implementation must satisfy."""

    priority: int

    def is_deny(self) -> bool: ...

    def passes(self, principal: Any, resource: Any) -> bool: ...

    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]: ...


@dataclass(frozen=True)
class AccessRule(ABC):
    """Base class for rules. Higher priority is evaluated first."""

    priority: int = 0
    deny: bool = False

    def is_deny(self) -> bool:
        return self.deny

    @property
    def polarity(self) -> Polarity:
        return Polarity.DENY if self.deny else Polarity.ALLOW

    @abstractmethod
    def passes(self, principal: Any, resource: Any) -> bool:
        """Check whether the rule passes for one resource instance."""

    @abstractmethod
    def filter_contribution(self, principal: Any, entity: Any = None) -> ColumnElement[bool]:
        """Build the condition selecting the resources this rule lets through."""


def get_value(target: Any, path: Optional[str], default: Any = None) -> Any:
    """Read a dotted path from mappings and attribute objects alike."""
    if target is None or not path:
        return default

    value = target
    for part in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, _MISSING)
        else:
            value = getattr(value, part, _MISSING)
        if value is _MISSING:
            return default
    return value


def resolve_column(entity: Any, name: str) -> ColumnElement[Any]:
    """Resolve a column name against a table, selectable or mapped class.

    Without an entity the column is left unbound and renders as a bare name.
    """
    if entity is None:
        return column(name)

    columns = getattr(entity, "c", None)
    if columns is not None:
        return columns[name]

    return getattr(entity, name)
