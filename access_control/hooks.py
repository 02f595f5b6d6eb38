"""
Before-authorization hook for host permission pipelines.

A host calls the hook before its own permission checks. ``GRANT`` and
``DENY`` settle the question; ``ABSTAIN`` lets the host's own mechanism
decide.
"""

from enum import Enum
from typing import Any, Optional

from shared.errors import AccessControlException
from shared.logging import get_logger

from .service import AccessControlService, resource_type_of


class HookResult(str, Enum):
    """Outcome of the before-authorization hook."""
    GRANT = "grant"
    DENY = "deny"
    ABSTAIN = "abstain"


_PRIMITIVES = (str, bytes, int, float, bool)


class BeforeAuthorizationHook:
    """Intercept host authorization checks for managed resource types."""

    def __init__(self, service: AccessControlService):
        self.service = service
        self.logger = get_logger("access_control.hooks")

    def __call__(self, principal: Any, ability: str, *arguments: Any) -> HookResult:
        settings = self.service.settings
        if not settings.hooks_enabled:
            return HookResult.ABSTAIN

        resource_type = self._managed_resource_type(arguments)
        if resource_type is None:
            return HookResult.ABSTAIN

        resource = arguments[0]
        if not self.service.config_for(resource_type).integrate_with_policies:
            return HookResult.ABSTAIN

        try:
            allowed = self.service.can(principal, ability, resource, resource_type)
        except Exception as e:
            self.logger.error(
                "Access control error",
                ability=ability,
                resource_type=resource_type,
                error=str(e),
                exc_info=True
            )
            return HookResult.DENY

        if allowed:
            return HookResult.GRANT
        return HookResult.DENY if settings.hook_denies_on_refusal else HookResult.ABSTAIN

    def _managed_resource_type(self, arguments: tuple) -> Optional[str]:
        # Only a resource instance as first argument is handled here
        if not arguments:
            return None

        resource = arguments[0]
        if resource is None or isinstance(resource, _PRIMITIVES) or isinstance(resource, type):
            return None

        try:
            resource_type = resource_type_of(resource)
        except AccessControlException:
            return None

        return resource_type if self.service.manages(resource_type) else None
