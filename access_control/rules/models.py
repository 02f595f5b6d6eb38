"""
Rule data models for the access control engine.
"""

from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.logging import get_logger

logger = get_logger("access_control.rules.models")


class Polarity(str, Enum):
    """Rule polarity."""
    ALLOW = "allow"
    DENY = "deny"


class ResolutionStrategy(str, Enum):
    """How several rules combine into one decision."""
    ANY = "any"
    ALL = "all"
    PRIORITY = "priority"

    @classmethod
    def parse(cls, value: Union[str, "ResolutionStrategy", None]) -> "ResolutionStrategy":
        """Parse a strategy, falling back to ANY for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown resolution strategy, using default", value=value, default=cls.ANY.value)
            return cls.ANY


class GroupingStrategy(str, Enum):
    """How filter contributions combine into one composite filter."""
    AND = "and"
    OR = "or"

    @classmethod
    def parse(cls, value: Union[str, "GroupingStrategy", None]) -> "GroupingStrategy":
        """Parse a grouping, falling back to AND for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown scope grouping, using default", value=value, default=cls.AND.value)
            return cls.AND


class ComparisonOperator(str, Enum):
    """Attribute comparison operators."""
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    IN = "in"
    NOT_IN = "not_in"

    @classmethod
    def parse(cls, value: Union[str, "ComparisonOperator", None]) -> "ComparisonOperator":
        """Parse an operator; anything unknown compares for equality."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.EQUALS


@dataclass(frozen=True)
class PrincipalRef:
    """Reference to something rules can be assigned to (a user, a role, ...)."""
    type: str
    id: Any

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass
class AccessRuleRecord:
    """Stored rule definition."""
    rule_id: str
    name: str
    key: str
    kind: str
    settings: Dict[str, Any] = field(default_factory=dict)
    resource_type: Optional[str] = None  # None applies to every resource type
    priority: int = 0
    is_deny_rule: bool = False
    active: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def polarity(self) -> Polarity:
        return Polarity.DENY if self.is_deny_rule else Polarity.ALLOW


@dataclass(frozen=True)
class RuleAssignment:
    """Assignment of a rule to a principal or role."""
    rule_id: str
    assignable: PrincipalRef


class AttributeRuleSettings(BaseModel):
    """Parameters of the ``attribute`` rule kind."""
    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    model_attribute: Optional[str] = None
    user_attribute: Optional[str] = None
    static_value: Any = None
    operator: str = "="


class DateRangeRuleSettings(BaseModel):
    """Parameters of the ``date_range`` rule kind."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    start: Optional[date] = Field(default=None, alias="from")
    end: Optional[date] = Field(default=None, alias="to")
    date_column: str = "created_at"

    @field_validator("start", "end", mode="before")
    @classmethod
    def _to_date(cls, value: Any) -> Any:
        # Bounds are whole days; any time component is dropped
        if isinstance(value, str) and value:
            value = datetime.fromisoformat(value)
        if isinstance(value, datetime):
            return value.date()
        return value or None


class OwnershipRuleSettings(BaseModel):
    """Parameters of the ``ownership`` rule kind."""
    model_config = ConfigDict(extra="forbid")

    owner_column: str = "user_id"
    user_id_column: str = "id"


class StatusRuleSettings(BaseModel):
    """Parameters of the ``status`` rule kind."""
    model_config = ConfigDict(extra="forbid")

    statuses: List[Any] = Field(default_factory=list)
    status_column: str = "status"
