"""
Service Exceptions
Error taxonomy for the NPC generation workflow.

Each exception carries the HTTP status the API layer answers with and a
stable public message. The underlying error text stays in ``details`` and the
logs; it is never sent to callers.
"""

from typing import Optional


class NPCForgeError(Exception):
    """Base exception for NPC service errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details or {}


class ValidationError(NPCForgeError):
    """Missing or invalid caller input (user-correctable)."""

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, details)
        # Validation messages are written for the caller
        self.public_message = message


class NotFoundError(NPCForgeError):
    """Record absent, not owned by the caller, or in the wrong state."""

    status_code = 404
    public_message = "NPC not found"


class UserNotFoundError(NotFoundError):
    """User id unknown to the admin routes."""

    public_message = "User not found"


class ExpiredError(NPCForgeError):
    """Restore attempted at or after the permanent-delete deadline."""

    status_code = 410
    public_message = "NPC restore window has expired"


class ConfigurationError(NPCForgeError):
    """Environment misconfiguration, e.g. no provider credential."""

    status_code = 503
    public_message = "NPC generation is not configured"


class ProviderError(NPCForgeError):
    """Generation provider failed or returned unusable content."""

    status_code = 502
    public_message = "Failed to generate NPC"


__all__ = [
    "NPCForgeError",
    "ValidationError",
    "NotFoundError",
    "UserNotFoundError",
    "ExpiredError",
    "ConfigurationError",
    "ProviderError",
]
