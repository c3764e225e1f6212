"""
User-facing error pipeline attached to a LoggingService.

``handle_error`` logs the raw fault, hands a sanitized message to the user
display callback when the fault is user facing, and pages the admin
callback for CRITICAL faults. Callback failures are logged and swallowed:
this pipeline is itself part of the last line of defense.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Mapping

from ..models import (
    AdminNotification,
    ErrorAction,
    ErrorContext,
    ErrorSeverity,
    LogContext,
    UserFriendlyError,
    coerce_context,
    error_text,
    utcnow,
)
from .error_messages import UserErrorTranslator

if TYPE_CHECKING:
    from .service import LoggingService

logger = logging.getLogger("dashboard-resilience")

UserErrorDisplayCallback = Callable[[UserFriendlyError], None]
AdminNotificationCallback = Callable[[AdminNotification], None]


class ErrorHandler:
    """Translates faults for users and escalates critical ones to admins.

    Attributes:
        logging_service: Logger that receives every handled fault
        translator: Maps raw faults to sanitized messages
    """

    def __init__(
        self,
        logging_service: LoggingService,
        translator: UserErrorTranslator | None = None,
    ):
        self.logging_service = logging_service
        self.translator = translator or UserErrorTranslator()
        self._display_callback: UserErrorDisplayCallback | None = None
        self._admin_callback: AdminNotificationCallback | None = None

    def set_user_error_display_callback(self, callback: UserErrorDisplayCallback | None) -> None:
        self._display_callback = callback

    def set_admin_notification_callback(self, callback: AdminNotificationCallback | None) -> None:
        self._admin_callback = callback

    def handle_error(
        self,
        error: BaseException,
        context: ErrorContext | Mapping[str, Any] | None = None,
    ) -> UserFriendlyError | None:
        """Log a fault and notify the registered callbacks.

        Args:
            error: The raw exception
            context: Error context (severity, user_facing, ids, metadata)

        Returns:
            The payload sent to the display callback, if one was sent
        """
        try:
            error_context = coerce_context(context, ErrorContext)
        except Exception as e:
            logger.warning(f"Invalid error context, using defaults: {error_text(e)}")
            error_context = ErrorContext()

        log_context = LogContext.model_validate(
            error_context.model_dump(exclude={"severity", "user_facing"})
        )
        if error_context.severity == ErrorSeverity.CRITICAL:
            self.logging_service.log_critical(error, log_context)
        else:
            self.logging_service.log_error(error, log_context)

        shown = None
        if error_context.user_facing and self._display_callback is not None:
            shown = self.translator.translate(error, error_context)
            self._invoke(self._display_callback, shown, "user display")

        if error_context.severity == ErrorSeverity.CRITICAL and self._admin_callback is not None:
            notification = AdminNotification(
                error=error,
                context=error_context,
                severity=error_context.severity,
                timestamp=utcnow(),
                requires_immediate_attention=True,
            )
            self._invoke(self._admin_callback, notification, "admin notification")

        return shown

    def display_user_error(self, message: str, actions: list[ErrorAction] | None = None) -> None:
        """Show a host-supplied message, sanitizing anything technical."""
        if self._display_callback is None:
            return
        payload = UserFriendlyError(
            message=self.translator.sanitize(message),
            actions=list(actions or []),
            severity=ErrorSeverity.MEDIUM,
        )
        self._invoke(self._display_callback, payload, "user display")

    def report_to_admin(self, error: BaseException, severity: ErrorSeverity) -> None:
        """Send a fault straight to the admin callback without logging it."""
        if self._admin_callback is None:
            return
        notification = AdminNotification(
            error=error,
            context=ErrorContext(severity=severity),
            severity=severity,
            timestamp=utcnow(),
            requires_immediate_attention=severity == ErrorSeverity.CRITICAL,
        )
        self._invoke(self._admin_callback, notification, "admin notification")

    @staticmethod
    def _invoke(callback: Callable[[Any], None], payload: Any, name: str) -> None:
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"{name} callback failed: {error_text(e)}")


__all__ = [
    "ErrorHandler",
    "UserErrorDisplayCallback",
    "AdminNotificationCallback",
]
