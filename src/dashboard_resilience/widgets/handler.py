"""
Per-widget failure ledger with severity escalation and fallback UI.

Each failing widget has one WidgetErrorRecord. Every reported failure
increments ``retry_count`` and re-evaluates severity:

    retry_count 0                        -> LOW
    1 <= retry_count < escalation_threshold -> MEDIUM
    retry_count >= escalation_threshold  -> HIGH

Retry is offered while ``retry_count < max_retries``. The auto-remove
callback fires once, on the failure whose number equals
``auto_remove_after_failures``. Clearing a widget's record starts it over
at LOW.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import TYPE_CHECKING, Any, Callable

from pydantic import ValidationError
from shortuuid import random as shortuuid_random

from ..config import WidgetRecoveryConfig
from ..exceptions import ConfigurationError
from ..models import SEVERITY_ORDER, ErrorSeverity, LogContext, error_text, utcnow
from .models import (
    FallbackAction,
    FallbackCallbacks,
    WidgetErrorRecord,
    WidgetErrorStatistics,
    WidgetFallback,
)
from .render import render_fallback_html, render_minimal_fallback

if TYPE_CHECKING:
    from ..structured_log import LoggingService

logger = logging.getLogger("dashboard-resilience.widgets")

AutoRemoveCallback = Callable[[str, str], None]
FailureListener = Callable[[WidgetErrorRecord], None]

FALLBACK_CONTENT = {
    ErrorSeverity.LOW: (
        "This widget encountered an error while loading. "
        "You can retry or remove it from your dashboard."
    ),
    ErrorSeverity.MEDIUM: (
        "This widget encountered an error after multiple attempts. "
        "You can try again or remove it from your dashboard."
    ),
    ErrorSeverity.HIGH: (
        "This widget has encountered a critical error and cannot be displayed. "
        "Please remove it or contact support."
    ),
}


class WidgetErrorHandler:
    """Tracks widget failures and builds fallbacks for them.

    Thread-safe: all record mutations, including the auto-remove decision,
    happen under one lock, so concurrent failures of the same widget are
    applied one at a time. Host callbacks run outside the lock.

    Attributes:
        logging_service: Optional structured logger that receives each failure
    """

    def __init__(
        self,
        config: WidgetRecoveryConfig | None = None,
        logging_service: LoggingService | None = None,
    ):
        """Initialize the handler.

        Args:
            config: Failure policy (defaults: 3 retries, escalate at 2, remove at 5)
            logging_service: Optional structured logger to report failures into
        """
        self._config = config.model_copy() if config is not None else WidgetRecoveryConfig()
        self.logging_service = logging_service
        self._records: dict[str, WidgetErrorRecord] = {}
        self._fallbacks: dict[str, WidgetFallback] = {}
        self._fallback_callbacks: dict[str, FallbackCallbacks] = {}
        self._fallback_records: dict[str, WidgetErrorRecord] = {}
        self._auto_remove_callback: AutoRemoveCallback | None = None
        self._listeners: list[FailureListener] = []
        self._total_failures = 0
        self._lock = RLock()
        logger.debug("WidgetErrorHandler initialized")

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self) -> WidgetRecoveryConfig:
        with self._lock:
            return self._config.model_copy()

    def update_config(self, **changes: Any) -> WidgetRecoveryConfig:
        """Apply validated changes to the failure policy.

        Raises:
            ConfigurationError: If a changed value fails validation
        """
        with self._lock:
            try:
                self._config = WidgetRecoveryConfig.model_validate(
                    {**self._config.model_dump(), **changes}
                )
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid widget recovery configuration: {e}",
                    details={"changes": changes},
                ) from e
            return self._config.model_copy()

    def set_auto_remove_callback(self, callback: AutoRemoveCallback | None) -> None:
        with self._lock:
            self._auto_remove_callback = callback

    def add_failure_listener(self, listener: FailureListener) -> None:
        """Register a callable notified after every recorded failure."""
        with self._lock:
            self._listeners.append(listener)

    # =========================================================================
    # Failure ledger
    # =========================================================================

    def handle_widget_error(
        self,
        widget_id: str,
        plugin_id: str,
        error: BaseException,
    ) -> WidgetErrorRecord | None:
        """Record a widget failure.

        Args:
            widget_id: The failing widget
            plugin_id: Plugin that owns the widget
            error: The fault raised while rendering or loading

        Returns:
            A copy of the updated record, or None if recording itself failed
        """
        try:
            with self._lock:
                existing = self._records.get(widget_id)
                retry_count = existing.retry_count + 1 if existing else 0
                severity = self._calculate_severity(retry_count)
                if existing and SEVERITY_ORDER.index(existing.severity) > SEVERITY_ORDER.index(severity):
                    severity = existing.severity

                already_removed = existing.auto_removed if existing else False
                fire_auto_remove = (
                    not already_removed
                    and retry_count + 1 >= self._config.auto_remove_after_failures
                )

                record = WidgetErrorRecord(
                    widget_id=widget_id,
                    plugin_id=plugin_id,
                    last_error=error,
                    severity=severity,
                    retry_count=retry_count,
                    timestamp=utcnow(),
                    auto_removed=already_removed or fire_auto_remove,
                )
                self._records[widget_id] = record
                self._total_failures += 1

                snapshot = record.model_copy()
                auto_remove_callback = self._auto_remove_callback if fire_auto_remove else None
                listeners = list(self._listeners)
        except Exception as e:
            logger.error(f"Failed to record error for widget {widget_id}: {e}")
            return None

        logger.error(
            f"Widget {widget_id} from plugin {plugin_id} failed "
            f"(attempt {snapshot.failure_count}, severity {snapshot.severity.value}): "
            f"{error_text(error)}"
        )

        if fire_auto_remove:
            self._handle_auto_remove(widget_id, plugin_id, auto_remove_callback)

        self._report(snapshot)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Widget failure listener raised for {widget_id}: {error_text(e)}")

        return snapshot

    def get_widget_error(self, widget_id: str) -> WidgetErrorRecord | None:
        with self._lock:
            record = self._records.get(widget_id)
            return record.model_copy() if record else None

    def clear_widget_error(self, widget_id: str) -> None:
        """Forget a widget's failures, e.g. after a successful retry."""
        with self._lock:
            self._records.pop(widget_id, None)
            stale = [fid for fid, fb in self._fallbacks.items() if fb.widget_id == widget_id]
            for fallback_id in stale:
                self._drop_fallback(fallback_id)

    def can_retry(self, widget_id: str) -> bool:
        """True while the widget's retry_count is below max_retries."""
        with self._lock:
            record = self._records.get(widget_id)
            if record is None:
                return True
            return record.retry_count < self._config.max_retries

    # =========================================================================
    # Fallbacks
    # =========================================================================

    def create_fallback(
        self,
        record: WidgetErrorRecord,
        on_retry: Callable[[str], None] | None = None,
        on_remove: Callable[[str], None] | None = None,
        on_report: Callable[[WidgetErrorRecord], None] | None = None,
    ) -> WidgetFallback:
        """Build the degraded UI for a failed widget.

        Args:
            record: The widget's failure record
            on_retry: Called with the widget id for the retry action
            on_remove: Called with the widget id for the remove action
            on_report: Called with the record for the report action

        Returns:
            The stored WidgetFallback
        """
        with self._lock:
            retries_left = record.retry_count < self._config.max_retries
        show_retry = retries_left and record.severity not in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL)

        actions = [
            FallbackAction(id="retry", label="Retry", icon="refresh", variant="primary"),
            FallbackAction(id="remove", label="Remove", icon="close", variant="danger"),
        ]
        if on_report is not None:
            actions.append(
                FallbackAction(id="report", label="Report Issue", icon="bug", variant="secondary")
            )

        content_severity = ErrorSeverity.HIGH if record.severity == ErrorSeverity.CRITICAL else record.severity
        fallback = WidgetFallback(
            id=f"fallback-{record.widget_id}-{shortuuid_random(length=8)}",
            widget_id=record.widget_id,
            content=FALLBACK_CONTENT[content_severity],
            error_message=record.error_message,
            show_retry=show_retry,
            show_remove=True,
            actions=actions,
        )

        with self._lock:
            self._fallbacks[fallback.id] = fallback
            self._fallback_callbacks[fallback.id] = FallbackCallbacks(
                on_retry=on_retry, on_remove=on_remove, on_report=on_report
            )
            self._fallback_records[fallback.id] = record.model_copy()
        return fallback.model_copy(deep=True)

    def get_fallback(self, fallback_id: str) -> WidgetFallback | None:
        with self._lock:
            fallback = self._fallbacks.get(fallback_id)
            return fallback.model_copy(deep=True) if fallback else None

    def execute_fallback_action(self, fallback_id: str, action: str) -> bool:
        """Dispatch a fallback action to its host callback.

        Unknown fallbacks, unknown actions and missing callbacks are ignored.

        Returns:
            True if a callback was invoked
        """
        with self._lock:
            fallback = self._fallbacks.get(fallback_id)
            callbacks = self._fallback_callbacks.get(fallback_id)
            record = self._fallback_records.get(fallback_id)

        if fallback is None or callbacks is None:
            logger.warning(f"Fallback {fallback_id} not found")
            return False
        if action not in {a.id for a in fallback.actions}:
            logger.warning(f"Action {action} not found in fallback {fallback_id}")
            return False

        try:
            if action == "retry" and callbacks.on_retry is not None:
                callbacks.on_retry(fallback.widget_id)
            elif action == "remove" and callbacks.on_remove is not None:
                callbacks.on_remove(fallback.widget_id)
            elif action == "report" and callbacks.on_report is not None and record is not None:
                callbacks.on_report(record.model_copy())
            else:
                return False
        except Exception as e:
            logger.error(f"Error executing fallback action {action} on {fallback_id}: {error_text(e)}")
            return False
        return True

    def render_fallback(self, fallback_id: str) -> str:
        """HTML fragment for a fallback; a generic one for unknown ids."""
        with self._lock:
            fallback = self._fallbacks.get(fallback_id)
        if fallback is None:
            return render_minimal_fallback()
        return render_fallback_html(fallback)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_error_statistics(self) -> WidgetErrorStatistics:
        """Totals over the ledger.

        ``total_errors`` counts every failure event since construction or
        the last cleanup(), including widgets cleared since;
        ``widget_count`` counts widgets currently failing.
        """
        with self._lock:
            records = list(self._records.values())
            stats = WidgetErrorStatistics(
                total_errors=self._total_failures,
                widget_count=len(records),
            )
        for record in records:
            stats.plugin_errors[record.plugin_id] = stats.plugin_errors.get(record.plugin_id, 0) + 1
            stats.severity_breakdown[record.severity] += 1
        return stats

    def get_failed_widgets_by_plugin(self, plugin_id: str) -> list[str]:
        with self._lock:
            return [r.widget_id for r in self._records.values() if r.plugin_id == plugin_id]

    def get_all_failed_widgets(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def has_errors(self) -> bool:
        with self._lock:
            return bool(self._records)

    def get_error_count(self) -> int:
        with self._lock:
            return len(self._records)

    def is_widget_failed(self, widget_id: str) -> bool:
        with self._lock:
            return widget_id in self._records

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def cleanup(self) -> None:
        """Drop all records, fallbacks and callbacks."""
        with self._lock:
            self._records.clear()
            self._fallbacks.clear()
            self._fallback_callbacks.clear()
            self._fallback_records.clear()
            self._auto_remove_callback = None
            self._total_failures = 0
        logger.debug("WidgetErrorHandler cleaned up")

    # =========================================================================
    # Internals
    # =========================================================================

    def _calculate_severity(self, retry_count: int) -> ErrorSeverity:
        if retry_count >= self._config.escalation_threshold:
            return ErrorSeverity.HIGH
        if retry_count >= 1:
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.LOW

    def _handle_auto_remove(
        self,
        widget_id: str,
        plugin_id: str,
        callback: AutoRemoveCallback | None,
    ) -> None:
        if callback is None:
            return
        try:
            callback(widget_id, plugin_id)
            logger.warning(
                f"Widget {widget_id} auto-removed after "
                f"{self._config.auto_remove_after_failures} failures"
            )
        except Exception as e:
            logger.error(f"Error during auto-remove of widget {widget_id}: {error_text(e)}")

    def _report(self, record: WidgetErrorRecord) -> None:
        if self.logging_service is None:
            return
        self.logging_service.log_error(
            record.last_error,
            LogContext(
                plugin_id=record.plugin_id,
                component=f"widget:{record.widget_id}",
                action="render",
                metadata={
                    "retry_count": record.retry_count,
                    "severity": record.severity.value,
                },
            ),
        )

    def _drop_fallback(self, fallback_id: str) -> None:
        self._fallbacks.pop(fallback_id, None)
        self._fallback_callbacks.pop(fallback_id, None)
        self._fallback_records.pop(fallback_id, None)


__all__ = [
    "WidgetErrorHandler",
    "AutoRemoveCallback",
    "FailureListener",
    "FALLBACK_CONTENT",
]
