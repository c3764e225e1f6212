"""
System-wide failure coordinator.

The orchestrator receives fault reports from any collaborator, logs them
through ``safe_log`` (primary logger, fallback logger, then stderr),
updates system health, isolates failing components, schedules restoration
retries with exponential backoff and escalates to developers.

None of the fault-handling entry points raise. Developer notifications
triggered by a failure report and restoration retries run as background
asyncio tasks so the reporting call returns without waiting on them.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from threading import RLock
from typing import TYPE_CHECKING, Any, Coroutine, Mapping, Optional, Union

from ..config import RecoveryConfig
from ..exceptions import RecoveryError
from ..models import ErrorSeverity, LogContext, LogLevel, coerce_context, error_text, utcnow
from .component_handler import InMemoryComponentFailureHandler
from .fallback_logger import InMemoryFallbackLogger
from .health import SystemHealthMonitor
from .interfaces import ComponentFailureHandler, DeveloperNotificationService, FallbackLogger
from .models import (
    ComponentFailureContext,
    DeveloperNotification,
    ErrorEscalation,
    EscalationLevel,
    FallbackLogEntry,
    NotificationUrgency,
    RecoveryResult,
    RetryOptions,
    SystemHealthStatus,
    TrackingIssue,
)
from .notifications import LoggingNotificationService

if TYPE_CHECKING:
    from ..structured_log import LoggingService

logger = logging.getLogger("dashboard-resilience.recovery")

ContextLike = Optional[Union[ComponentFailureContext, Mapping[str, Any]]]


def _failure_context(context: ContextLike) -> ComponentFailureContext:
    if context is None:
        return ComponentFailureContext()
    if isinstance(context, ComponentFailureContext):
        return context
    return ComponentFailureContext.model_validate(dict(context))


class RecoveryOrchestrator:
    """Coordinates logging, isolation, retries and escalation for faults.

    Attributes:
        logging_service: Primary structured logger
        component_handler: Owner of component lifecycles
        fallback_logger: Secondary sink used while the primary fails
        notification_service: Developer alerting channel
        config: Default retry schedule and related settings
        health: Owner of the SystemHealthStatus value
    """

    def __init__(
        self,
        logging_service: LoggingService,
        component_handler: ComponentFailureHandler | None = None,
        fallback_logger: FallbackLogger | None = None,
        notification_service: DeveloperNotificationService | None = None,
        config: RecoveryConfig | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            logging_service: Primary structured logger
            component_handler: Lifecycle owner (in-memory default)
            fallback_logger: Secondary log sink (in-memory default)
            notification_service: Alerting channel (logging-only default)
            config: Recovery settings (defaults: 3 retries, 1s, backoff on)
        """
        self.config = config or RecoveryConfig()
        self.logging_service = logging_service
        self.component_handler = component_handler or InMemoryComponentFailureHandler()
        self.fallback_logger = fallback_logger or InMemoryFallbackLogger(
            capacity=self.config.fallback_log_capacity
        )
        self.notification_service = notification_service or LoggingNotificationService()
        self.health = SystemHealthMonitor()
        self._isolated: set[str] = set()
        self._lock = RLock()
        self._background_tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Component and plugin failures
    # =========================================================================

    async def handle_component_failure(
        self,
        component_id: str,
        error: BaseException,
        context: ContextLike = None,
    ) -> None:
        """Log, track and react to a component fault.

        Args:
            component_id: The failing component
            error: The fault
            context: Severity, critical/isolate flags, optional retry schedule
        """
        try:
            ctx = _failure_context(context)
            metadata = {"error": error_text(error), "severity": ctx.severity.value}
            if ctx.model_extra:
                metadata.update(ctx.model_extra)
            self.safe_log(
                LogLevel.ERROR,
                f"Component failure: {component_id}",
                LogContext(component=component_id, plugin_id=ctx.plugin_id, metadata=metadata),
            )

            self.health.record_failure(component_id, critical=ctx.critical)
            if ctx.system_wide:
                self.health.record_system_failure(f"reported by {component_id}")
            try:
                await self.component_handler.handle_component_failure(component_id, error, ctx)
            except Exception as e:
                raise RecoveryError(
                    f"Component handler failed for {component_id}: {error_text(e)}",
                    details={"component_id": component_id},
                ) from e

            if ctx.isolate:
                self._isolate(component_id)

            if ctx.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
                notify_context = ctx.model_copy(update={"component": ctx.component or component_id})
                self._spawn(self.notify_developers_of_error(error, notify_context))

            if ctx.retry is not None:
                self.schedule_component_retry(component_id, error, ctx.retry)
        except Exception as recovery_error:
            self.safe_log(
                LogLevel.CRITICAL,
                "Error recovery failed",
                LogContext(
                    component="RecoveryOrchestrator",
                    metadata={
                        "original_error": error_text(error),
                        "recovery_error": error_text(recovery_error),
                    },
                ),
            )

    async def get_working_component(self, component_id: str) -> Any:
        """The registered fallback for a component, or None."""
        try:
            return await self.component_handler.get_fallback_component(component_id)
        except Exception as e:
            logger.error(f"Fallback lookup for {component_id} failed: {error_text(e)}")
            return None

    async def handle_plugin_failure(
        self,
        plugin_id: str,
        error: BaseException,
        context: ContextLike = None,
    ) -> None:
        """Isolate a failing plugin instead of repairing it in place."""
        try:
            ctx = _failure_context(context)
            self._isolate(plugin_id)
            self.health.record_failure(plugin_id, critical=ctx.critical)
            self.safe_log(
                LogLevel.ERROR,
                f"Plugin failure isolated: {plugin_id}",
                LogContext(
                    plugin_id=plugin_id,
                    component="PluginManager",
                    metadata={"error": error_text(error), "isolated": True},
                ),
            )
        except Exception as recovery_error:
            self.safe_log(
                LogLevel.CRITICAL,
                f"Plugin isolation failed: {plugin_id}",
                LogContext(
                    plugin_id=plugin_id,
                    component="RecoveryOrchestrator",
                    metadata={
                        "original_error": error_text(error),
                        "recovery_error": error_text(recovery_error),
                    },
                ),
            )

    def is_isolated(self, component_id: str) -> bool:
        with self._lock:
            return component_id in self._isolated

    # =========================================================================
    # Retry scheduling
    # =========================================================================

    def schedule_component_retry(
        self,
        component_id: str,
        error: BaseException,
        options: RetryOptions | Mapping[str, Any] | None = None,
    ) -> asyncio.Task | None:
        """Start restoration retries in the background.

        Returns:
            The background task, or None if no event loop is running
        """
        if options is None:
            options = RetryOptions(
                max_retries=self.config.max_retries,
                initial_delay=self.config.initial_delay,
                exponential_backoff=self.config.exponential_backoff,
            )
        elif not isinstance(options, RetryOptions):
            options = RetryOptions.model_validate(dict(options))

        try:
            return self._spawn(self.retry_component(component_id, error, options))
        except RuntimeError:
            logger.warning(f"No running event loop, cannot schedule retry for {component_id}")
            return None

    async def retry_component(
        self,
        component_id: str,
        error: BaseException,
        options: RetryOptions,
    ) -> RecoveryResult:
        """Try to restore a component, backing off between attempts.

        Waits ``initial_delay`` before the first attempt and doubles the
        wait after each failed attempt when ``exponential_backoff`` is set.
        Stops at the first success or after ``max_retries`` attempts.
        """
        attempt = 0
        delay = options.initial_delay

        while attempt < options.max_retries:
            await asyncio.sleep(delay)
            try:
                await self.component_handler.restore_component(component_id)
            except Exception as retry_error:
                attempt += 1
                logger.info(
                    f"Restore attempt {attempt}/{options.max_retries} for {component_id} "
                    f"failed: {error_text(retry_error)}"
                )
                if options.exponential_backoff:
                    delay *= 2
                continue

            attempt += 1
            with self._lock:
                self._isolated.discard(component_id)
            self.health.record_restored(component_id)
            self.safe_log(
                LogLevel.INFO,
                f"Component restored: {component_id}",
                LogContext(component=component_id, metadata={"attempt": attempt}),
            )
            return RecoveryResult(
                success=True,
                strategy_used="retry",
                message=f"Component {component_id} restored after {attempt} attempt(s)",
                attempts=attempt,
            )

        self.safe_log(
            LogLevel.ERROR,
            f"Component restore failed after {options.max_retries} attempts",
            LogContext(component=component_id, metadata={"error": error_text(error)}),
        )
        return RecoveryResult(
            success=False,
            strategy_used="retry",
            message=f"Component {component_id} could not be restored",
            attempts=attempt,
        )

    # =========================================================================
    # Logging path
    # =========================================================================

    def safe_log(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> None:
        """Log through whichever path currently works. Never raises.

        The primary logger is used while it is considered working. A
        primary write failure switches routing to the fallback logger and
        the same message is written there. If both fail, the message goes
        straight to stderr.
        """
        try:
            level = LogLevel(level)
            log_context = coerce_context(context)
            if self.fallback_logger.is_main_logger_working():
                try:
                    self.logging_service.record(level, message, log_context)
                    return
                except Exception as primary_error:
                    self._switch_to_fallback(primary_error)
            self._write_fallback(level, message, log_context)
        except Exception as e:
            try:
                print(
                    f"[RecoveryOrchestrator] Safe logging failed: {error_text(e)}\n"
                    f"[RecoveryOrchestrator] Original message: {message}",
                    file=sys.stderr,
                )
            except OSError:
                pass

    async def handle_logging_system_failure(self, error: BaseException) -> None:
        """Route all logging to the fallback sink."""
        try:
            self._switch_to_fallback(error)
        except Exception as e:
            logger.error(f"Switching to fallback logging failed: {error_text(e)}")

    async def check_and_restore_main_logging(self) -> bool:
        """Switch back to the primary logger once it reports healthy.

        Returns:
            True if the primary logger is in use after the call
        """
        try:
            if self.fallback_logger.is_main_logger_working():
                return True
            if not self.logging_service.is_healthy():
                return False
            self.fallback_logger.switch_to_main()
            self.health.set_fallback_logging(False)
            self.logging_service.log_info(
                "Main logging system restored",
                LogContext(component="RecoveryOrchestrator"),
            )
            return True
        except Exception as e:
            logger.error(f"Restoring main logging failed: {error_text(e)}")
            return False

    # =========================================================================
    # Developer notification and escalation
    # =========================================================================

    async def notify_developers_of_error(self, error: BaseException, context: ContextLike = None) -> bool:
        """Send a developer notification.

        Returns:
            True if the notification service accepted it
        """
        try:
            ctx = _failure_context(context)
            if ctx.immediate:
                urgency = NotificationUrgency.IMMEDIATE
            elif ctx.severity == ErrorSeverity.CRITICAL:
                urgency = NotificationUrgency.HIGH
            else:
                urgency = NotificationUrgency.NORMAL
            notification = DeveloperNotification(
                error=error,
                severity=ctx.severity,
                component=ctx.component,
                plugin_id=ctx.plugin_id,
                timestamp=utcnow(),
                urgency=urgency,
            )
            await self.notification_service.notify_developer(notification)
            return True
        except Exception as e:
            logger.error(f"Developer notification failed: {error_text(e)}")
            return False

    async def handle_recurring_error(self, error: BaseException, context: ContextLike = None) -> bool:
        """Open a tracking issue for a recurring fault when requested.

        Returns:
            True if an issue was created
        """
        try:
            ctx = _failure_context(context)
            if not ctx.create_issue:
                return False
            occurrences = ctx.occurrence_count if ctx.occurrence_count is not None else "multiple"
            issue = TrackingIssue(
                title=f"Recurring Error: {error_text(error)}",
                body=f"Error occurred {occurrences} times in component {ctx.component or 'unknown'}",
                labels=["bug", "recurring", "auto-generated"],
                assignees=[],
            )
            await self.notification_service.create_issue(issue)
            return True
        except Exception as e:
            logger.error(f"Creating tracking issue failed: {error_text(e)}")
            return False

    async def check_error_escalation(
        self,
        error: BaseException,
        context: ContextLike = None,
    ) -> ErrorEscalation | None:
        """Escalate to a manager once a fault outlives its threshold.

        Returns:
            The escalation sent, or None if not (yet) warranted
        """
        try:
            ctx = _failure_context(context)
            if ctx.first_occurrence is None or ctx.escalation_threshold is None:
                return None
            time_unresolved = (utcnow() - ctx.first_occurrence).total_seconds()
            if time_unresolved <= ctx.escalation_threshold:
                return None
            escalation = ErrorEscalation(
                error=error,
                original_context=ctx,
                escalation_level=EscalationLevel.MANAGER,
                time_unresolved=time_unresolved,
            )
            await self.notification_service.escalate_error(escalation)
            return escalation
        except Exception as e:
            logger.error(f"Error escalation failed: {error_text(e)}")
            return None

    async def handle_system_wide_failure(self, error: BaseException, context: ContextLike = None) -> None:
        """Terminal failure path: everything on, escalate to the top."""
        try:
            ctx = _failure_context(context)
        except Exception as e:
            logger.error(f"Invalid system-wide failure context, using defaults: {error_text(e)}")
            ctx = ComponentFailureContext(severity=ErrorSeverity.CRITICAL)

        ctx = ctx.model_copy(update={"system_wide": True})
        self.health.record_system_failure(error_text(error))
        await self.handle_logging_system_failure(error)

        if ctx.component:
            try:
                self.health.record_failure(ctx.component, critical=True)
                await self.component_handler.handle_component_failure(ctx.component, error, ctx)
            except Exception as e:
                logger.error(f"Component handling during system-wide failure failed: {error_text(e)}")

        try:
            await self.notification_service.escalate_error(
                ErrorEscalation(
                    error=error,
                    original_context=ctx,
                    escalation_level=EscalationLevel.DIRECTOR,
                    time_unresolved=0.0,
                )
            )
        except Exception as e:
            logger.error(f"System-wide escalation failed: {error_text(e)}")

    # =========================================================================
    # Health
    # =========================================================================

    def get_system_health(self) -> SystemHealthStatus:
        """Snapshot of system health with ``last_health_check`` refreshed."""
        return self.health.snapshot()

    def resolve_system_wide_failure(self) -> None:
        """Clear an outstanding system-wide failure once operators have fixed it.

        Health returns to healthy only if no component is still failed.
        """
        self.health.resolve_system_failure()
        self.safe_log(
            LogLevel.INFO,
            "System-wide failure resolved",
            LogContext(component="RecoveryOrchestrator"),
        )

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending notifications and retries to finish."""
        while True:
            with self._lock:
                pending = [task for task in self._background_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # =========================================================================
    # Internals
    # =========================================================================

    def _isolate(self, component_id: str) -> None:
        self.component_handler.mark_component_unhealthy(component_id)
        with self._lock:
            self._isolated.add(component_id)

    def _switch_to_fallback(self, error: BaseException) -> None:
        self.fallback_logger.switch_to_fallback()
        self.health.set_fallback_logging(True)
        self.fallback_logger.log_error(
            "Main logging system failed, switched to fallback",
            LogContext(component="LoggingService", metadata={"error": error_text(error)}),
        )

    def _write_fallback(self, level: LogLevel, message: str, context: LogContext) -> None:
        if level == LogLevel.ERROR:
            self.fallback_logger.log_error(message, context)
        elif level == LogLevel.WARNING:
            self.fallback_logger.log_warning(message, context)
        else:
            self.fallback_logger.log(
                FallbackLogEntry(level=level, message=message, context=context, timestamp=utcnow())
            )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        with self._lock:
            self._background_tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        with self._lock:
            self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background recovery task failed: {error_text(exc)}")


__all__ = ["RecoveryOrchestrator"]
