"""
Access control service.

Wires a rule set provider to the resolver (single-instance checks) and to
the scope compiler (bulk query filters), picking the strategies configured
for each resource type.
"""

from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError
from sqlalchemy import ColumnElement, Select, Table, select

from shared.config import AccessControlSettings, ResourceTypeConfig, get_settings
from shared.errors import AuthorizationError, ConfigurationError, ResourceTypeError
from shared.logging import get_logger
from shared.metrics import AccessControlMetrics

from .provider import RuleSetProvider, principal_ref
from .resolver import RuleResolver
from .rules.models import GroupingStrategy, ResolutionStrategy
from .scope import ScopeCompiler


@dataclass(frozen=True)
class EffectiveConfig:
    """Configuration in force for one resource type."""
    resolution: ResolutionStrategy
    grouping: GroupingStrategy
    fallback_column: Optional[str]
    integrate_with_policies: bool
    table: Any = None


def resource_type_of(resource: Any) -> str:
    """Derive the resource type name of a resource, table or mapped class."""
    if isinstance(resource, str):
        return resource
    if isinstance(resource, Table):
        return resource.name

    tablename = getattr(resource, "__tablename__", None)
    if tablename:
        return tablename

    if isinstance(resource, Mapping) or resource is None:
        raise ResourceTypeError(
            "Resource type must be given explicitly for this resource",
            {"resource": type(resource).__name__}
        )

    if isinstance(resource, type):
        return resource.__name__
    return type(resource).__name__


class AccessControlService:
    """Answer access checks and build filtered queries."""

    def __init__(
        self,
        provider: RuleSetProvider,
        settings: Optional[AccessControlSettings] = None,
        resource_types: Optional[Dict[Any, Union[ResourceTypeConfig, Dict[str, Any]]]] = None,
        resolver: Optional[RuleResolver] = None,
        compiler: Optional[ScopeCompiler] = None,
        metrics: Optional[AccessControlMetrics] = None
    ):
        self.logger = get_logger("access_control.service")
        self.provider = provider
        self.settings = settings or get_settings()
        self.resolver = resolver or RuleResolver()
        self.compiler = compiler or ScopeCompiler()
        self.metrics = metrics
        self.resource_types: Dict[str, ResourceTypeConfig] = {}
        for key, value in (resource_types or {}).items():
            name = resource_type_of(key)
            try:
                self.resource_types[name] = ResourceTypeConfig.model_validate(value)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid configuration for resource type '{name}'",
                    {"resource_type": name, "errors": e.errors(include_url=False)}
                ) from e

    def manages(self, resource_type: str) -> bool:
        """Whether a resource type has an explicit configuration entry."""
        return resource_type in self.resource_types

    def config_for(
        self,
        resource_type: str,
        overrides: Optional[ResourceTypeConfig] = None
    ) -> EffectiveConfig:
        """Resolve the configuration for a resource type.

        Per-call overrides win over the resource type entry, which wins over
        the global settings.
        """
        config = self.resource_types.get(resource_type, ResourceTypeConfig()).merged_with(overrides)

        integrate = config.integrate_with_policies
        if integrate is None:
            integrate = self.settings.integrate_with_policies

        return EffectiveConfig(
            resolution=ResolutionStrategy.parse(config.resolution_logic or self.settings.default_resolution),
            grouping=GroupingStrategy.parse(config.scope_grouping or self.settings.default_scope_grouping),
            fallback_column=config.fallback_column or self.settings.default_fallback_column,
            integrate_with_policies=integrate,
            table=config.table
        )

    def can(
        self,
        principal: Any,
        action: str,
        resource: Any,
        resource_type: Optional[str] = None,
        overrides: Optional[ResourceTypeConfig] = None
    ) -> bool:
        """Check if ``principal`` may perform ``action`` on ``resource``."""
        resource_type = resource_type or resource_type_of(resource)
        config = self.config_for(resource_type, overrides)

        with self._timed("check"):
            rules = self.provider.applicable_rules(principal, action, resource_type)
            if not rules:
                allowed = False
            else:
                allowed = self.resolver.resolve(rules, principal, resource, config.resolution)

        self._log_decision(principal, action, resource_type, config, len(rules), allowed)
        if self.metrics:
            self.metrics.record_decision(resource_type, action, allowed)
        return allowed

    def authorize(
        self,
        principal: Any,
        action: str,
        resource: Any,
        resource_type: Optional[str] = None,
        overrides: Optional[ResourceTypeConfig] = None
    ) -> None:
        """Like :meth:`can`, but raise when access is denied.

        Raises:
            AuthorizationError: access is denied.
        """
        resource_type = resource_type or resource_type_of(resource)
        if not self.can(principal, action, resource, resource_type, overrides):
            raise AuthorizationError(
                f"Not allowed to {action} {resource_type}",
                {"action": action, "resource_type": resource_type, "principal": str(principal_ref(principal))}
            )

    def scope_for(
        self,
        principal: Any,
        action: str,
        resource_type: str,
        entity: Any = None,
        overrides: Optional[ResourceTypeConfig] = None
    ) -> ColumnElement[bool]:
        """Build the composite filter selecting what ``principal`` may ``action``."""
        config = self.config_for(resource_type, overrides)

        with self._timed("scope"):
            rules = self.provider.applicable_rules(principal, action, resource_type)
            expression = self.compiler.compile(
                rules,
                principal,
                config.grouping,
                entity=entity,
                fallback_column=config.fallback_column
            )

        self.logger.debug(
            "Scope built",
            principal=str(principal_ref(principal)),
            action=action,
            resource_type=resource_type,
            grouping=config.grouping.value,
            rule_count=len(rules)
        )
        return expression

    def filter_query(
        self,
        principal: Any,
        action: str,
        resource_type: Any = None,
        base_query: Optional[Select] = None,
        overrides: Optional[ResourceTypeConfig] = None
    ) -> Select:
        """Restrict a select to the rows ``principal`` may ``action``.

        Without a base query, ``resource_type`` must be a table, a mapped
        class, or a name whose configuration carries a ``table``.

        Raises:
            ResourceTypeError: the resource type cannot be determined.
        """
        resource_type, entity, query = self._query_target(resource_type, base_query, overrides)
        expression = self.scope_for(principal, action, resource_type, entity, overrides)
        return self.compiler.apply(query, expression)

    def _query_target(
        self,
        resource_type: Any,
        base_query: Optional[Select],
        overrides: Optional[ResourceTypeConfig]
    ) -> Tuple[str, Any, Select]:
        if base_query is not None:
            froms = base_query.get_final_froms()
            entity = froms[0] if froms else None
            if resource_type is None:
                name = getattr(entity, "name", None)
                if not name:
                    raise ResourceTypeError("Resource type must be provided or derivable from query")
                return name, entity, base_query
            return resource_type_of(resource_type), entity, base_query

        if resource_type is None:
            raise ResourceTypeError("Resource type must be provided or derivable from query")

        name = resource_type_of(resource_type)
        target = resource_type
        if isinstance(resource_type, str):
            target = self.config_for(name, overrides).table
            if target is None:
                raise ResourceTypeError(
                    f"No table configured for resource type '{name}'",
                    {"resource_type": name}
                )

        return name, getattr(target, "__table__", target), select(target)

    def _timed(self, operation: str):
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_operation(operation)

    def _log_decision(
        self,
        principal: Any,
        action: str,
        resource_type: str,
        config: EffectiveConfig,
        rule_count: int,
        allowed: bool
    ):
        log = self.logger.info if self.settings.log_decisions else self.logger.debug
        log(
            "Access decision",
            principal=str(principal_ref(principal)),
            action=action,
            resource_type=resource_type,
            strategy=config.resolution.value,
            rule_count=rule_count,
            allowed=allowed
        )
