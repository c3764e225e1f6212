"""
Forwarding of logged faults to an external error-monitoring service.

LoggingService hands every entry at or above its monitoring level to an
ErrorMonitor. Exceptions go through ``capture_exception``, plain messages
through ``capture_message``. Sentry is the supported provider; it is
switched on with ``RESILIENCE_MONITORING_ENABLED`` plus a DSN.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

import sentry_sdk

from ..models import LogContext, LogLevel, error_text

logger = logging.getLogger("dashboard-resilience")

# sentry has no "critical"; its highest level is "fatal"
SENTRY_LEVELS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARNING: "warning",
    LogLevel.ERROR: "error",
    LogLevel.CRITICAL: "fatal",
}


def monitoring_scope(context: LogContext, level: LogLevel) -> dict[str, Any]:
    """User, tags and extras describing one logged fault."""
    tags = {"level": level.value}
    if context.component:
        tags["component"] = context.component
    if context.plugin_id:
        tags["plugin_id"] = context.plugin_id
    if context.action:
        tags["action"] = context.action

    scope: dict[str, Any] = {"tags": tags, "extras": dict(context.metadata)}
    if context.user_id:
        scope["user"] = {"id": context.user_id}
    return scope


class ErrorMonitor(ABC):
    """Destination for faults that should leave the process."""

    @abstractmethod
    def capture_exception(self, error: BaseException, context: LogContext, level: LogLevel) -> None:
        pass

    @abstractmethod
    def capture_message(self, message: str, context: LogContext, level: LogLevel) -> None:
        pass


class SentryMonitor(ErrorMonitor):
    """ErrorMonitor backed by sentry_sdk.

    The capture functions default to the sentry_sdk module-level ones and
    can be swapped for another client's.
    """

    def __init__(
        self,
        capture_exception: Callable[..., Any] | None = None,
        capture_message: Callable[..., Any] | None = None,
    ):
        self._capture_exception = capture_exception or sentry_sdk.capture_exception
        self._capture_message = capture_message or sentry_sdk.capture_message

    @classmethod
    def from_config(cls, config: Any) -> "SentryMonitor | None":
        """Initialize sentry from a ``LoggingConfig`` section.

        Returns:
            A monitor, or None when monitoring is off or cannot start
        """
        if not config.monitoring_enabled:
            return None
        if not config.monitoring_dsn:
            logger.warning("Error monitoring enabled but no DSN is set; monitoring disabled")
            return None
        try:
            sentry_sdk.init(
                dsn=config.monitoring_dsn,
                environment=config.monitoring_environment,
                release=config.monitoring_release,
                sample_rate=config.monitoring_sample_rate,
                attach_stacktrace=True,
            )
        except Exception as e:
            logger.warning(f"Failed to initialize error monitoring: {error_text(e)}")
            return None
        logger.info(f"Error monitoring enabled ({config.monitoring_environment})")
        return cls()

    def capture_exception(self, error: BaseException, context: LogContext, level: LogLevel) -> None:
        self._capture_exception(error, level=SENTRY_LEVELS[level], **monitoring_scope(context, level))

    def capture_message(self, message: str, context: LogContext, level: LogLevel) -> None:
        self._capture_message(message, level=SENTRY_LEVELS[level], **monitoring_scope(context, level))


__all__ = [
    "ErrorMonitor",
    "SENTRY_LEVELS",
    "SentryMonitor",
    "monitoring_scope",
]
