"""
Custom exception hierarchy for the dashboard resilience core.

Fault-handling entry points (logging, widget ledger, recovery orchestrator)
never let these escape to their callers. They are raised by the lower-level
primitives so the entry points can tell a logging-system fault from a
component fault and degrade accordingly.
"""

from __future__ import annotations

from typing import Any


class ResilienceError(Exception):
    """Base exception for all resilience core errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LoggingSystemError(ResilienceError):
    """The primary log sink could not accept a write.

    Raised by ``LoggingService.record`` so the orchestrator can switch
    to the fallback logger instead of losing the message.
    """
    pass


class ComponentError(ResilienceError):
    """Component-specific failures.

    Attributes:
        component_id: Identifier of the failing component
        recoverable: Whether a restoration attempt is worthwhile
    """

    def __init__(
        self,
        message: str,
        component_id: str,
        recoverable: bool = True,
        details: dict[str, Any] | None = None,
    ):
        """Initialize the component error.

        Args:
            message: Human-readable error message
            component_id: Identifier of the failing component
            recoverable: Whether a restoration attempt is worthwhile
            details: Optional dictionary of additional error context
        """
        super().__init__(message, details)
        self.component_id = component_id
        self.recoverable = recoverable


class RecoveryError(ResilienceError):
    """A recovery operation itself failed."""
    pass


class NotificationError(ResilienceError):
    """Delivering a developer notification failed.

    Attributes:
        channel: Name of the notification channel that failed
    """

    def __init__(
        self,
        message: str,
        channel: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.channel = channel


class ConfigurationError(ResilienceError):
    """Configuration could not be loaded or failed validation."""
    pass


__all__ = [
    "ResilienceError",
    "LoggingSystemError",
    "ComponentError",
    "RecoveryError",
    "NotificationError",
    "ConfigurationError",
]
