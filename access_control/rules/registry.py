"""
Rule registry.

Maps a rule kind tag (``"status"``, ``"ownership"``, ...) to a factory and
an optional pydantic model validating the stored settings. The provider turns
stored rule definitions into rule instances through the registry, so the
resolver and scope compiler never see concrete rule kinds.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from shared.errors import RuleInstantiationError
from shared.logging import get_logger

from .base import RuleContract
from .builtin import AttributeRule, DateRangeRule, OwnershipRule, StatusRule
from .models import (
    AttributeRuleSettings, DateRangeRuleSettings, OwnershipRuleSettings, StatusRuleSettings
)

RuleFactory = Callable[..., Any]


@dataclass(frozen=True)
class RegisteredRule:
    """A registry entry."""
    kind: str
    factory: RuleFactory
    settings_model: Optional[Type[BaseModel]] = None


class RuleRegistry:
    """Registry of rule kinds."""

    def __init__(self):
        self.logger = get_logger("access_control.rules.registry")
        self._kinds: Dict[str, RegisteredRule] = {}
        self._lock = threading.RLock()

    def register(
        self,
        kind: str,
        factory: RuleFactory,
        settings_model: Optional[Type[BaseModel]] = None
    ) -> None:
        """Register a factory for a rule kind.

        The factory is called with keyword arguments: the validated settings
        (or the raw settings when no model is given) plus ``priority`` and
        ``deny``.
        """
        with self._lock:
            if kind in self._kinds:
                self.logger.warning("Overwriting rule kind", kind=kind)
            self._kinds[kind] = RegisteredRule(kind, factory, settings_model)
        self.logger.debug("Rule kind registered", kind=kind)

    def rule(self, kind: str, settings_model: Optional[Type[BaseModel]] = None):
        """Decorator form of :meth:`register`."""

        def decorator(factory: RuleFactory) -> RuleFactory:
            self.register(kind, factory, settings_model)
            return factory

        return decorator

    def unregister(self, kind: str) -> bool:
        """Remove a rule kind."""
        with self._lock:
            return self._kinds.pop(kind, None) is not None

    def kinds(self) -> List[str]:
        """List registered kinds."""
        with self._lock:
            return sorted(self._kinds)

    def __contains__(self, kind: str) -> bool:
        return kind in self._kinds

    def create(
        self,
        kind: str,
        settings: Optional[Mapping[str, Any]] = None,
        priority: int = 0,
        deny: bool = False
    ) -> RuleContract:
        """Instantiate a rule of the given kind.

        Raises:
            RuleInstantiationError: unknown kind, invalid settings, or a
                factory result that does not satisfy the rule contract.
        """
        with self._lock:
            entry = self._kinds.get(kind)

        if entry is None:
            raise RuleInstantiationError(
                f"Unknown rule kind '{kind}'",
                {"kind": kind, "registered": self.kinds()}
            )

        params: Dict[str, Any] = dict(settings or {})
        if entry.settings_model is not None:
            try:
                params = entry.settings_model.model_validate(params).model_dump()
            except ValidationError as e:
                raise RuleInstantiationError(
                    f"Invalid settings for rule kind '{kind}'",
                    {"kind": kind, "errors": e.errors(include_url=False)}
                ) from e

        try:
            rule = entry.factory(priority=priority, deny=deny, **params)
        except TypeError as e:
            raise RuleInstantiationError(
                f"Rule kind '{kind}' rejected its settings: {e}",
                {"kind": kind}
            ) from e

        if not isinstance(rule, RuleContract):
            raise RuleInstantiationError(
                f"Rule kind '{kind}' does not implement the rule contract",
                {"kind": kind, "type": type(rule).__name__}
            )

        return rule


def default_registry() -> RuleRegistry:
    """Create a registry with the built-in rule kinds."""
    registry = RuleRegistry()
    registry.register("attribute", AttributeRule, AttributeRuleSettings)
    registry.register("date_range", DateRangeRule.for_days, DateRangeRuleSettings)
    registry.register("ownership", OwnershipRule, OwnershipRuleSettings)
    registry.register("status", StatusRule, StatusRuleSettings)
    return registry
