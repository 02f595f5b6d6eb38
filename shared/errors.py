"""
Shared error handling for the access control engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessControlException(Exception):
    """Base exception for the access control engine."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(AccessControlException):
    """Configuration-related errors."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class RuleInstantiationError(AccessControlException):
    """A configured rule could not be turned into a working rule instance."""

    def __init__(self, message: str = "Rule instantiation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_INSTANTIATION_ERROR", message, details)


class ResourceTypeError(AccessControlException):
    """The resource type could not be determined."""

    def __init__(self, message: str = "Resource type could not be determined", details: Optional[Dict[str, Any]] = None):
        super().__init__("RESOURCE_TYPE_ERROR", message, details)


class AuthorizationError(AccessControlException):
    """Authorization-related errors."""

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)
