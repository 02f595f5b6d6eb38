"""
Shared configuration management for the access control engine.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AccessControlSettings(BaseSettings):
    """Global settings, read from ``ACCESS_CONTROL_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_CONTROL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Resolution defaults: 'any', 'all' or 'priority' / 'and' or 'or'
    default_resolution: str = Field(default="any")
    default_scope_grouping: str = Field(default="and")

    # Column compared with the principal id when no rules apply; None means no restriction
    default_fallback_column: Optional[str] = Field(default=None)

    # Integrations
    hooks_enabled: bool = Field(default=True)
    integrate_with_policies: bool = Field(default=True)
    role_inheritance: bool = Field(default=True)
    hook_denies_on_refusal: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="info")
    log_decisions: bool = Field(default=False)
    json_logs: bool = Field(default=True)


class ResourceTypeConfig(BaseModel):
    """Per-resource-type overrides. Unset fields fall through to the global settings."""

    resolution_logic: Optional[str] = None
    scope_grouping: Optional[str] = None
    fallback_column: Optional[str] = None
    integrate_with_policies: Optional[bool] = None
    # SQLAlchemy Table or mapped class used when no base query is given
    table: Optional[Any] = None

    def merged_with(self, other: Optional["ResourceTypeConfig"]) -> "ResourceTypeConfig":
        """Return a copy where fields set on ``other`` take precedence."""
        if other is None:
            return self
        return self.model_copy(update=other.model_dump(exclude_unset=True, exclude_none=True))


def get_settings(**overrides: Any) -> AccessControlSettings:
    """Load settings from the environment, with explicit overrides applied."""
    return AccessControlSettings(**overrides)
