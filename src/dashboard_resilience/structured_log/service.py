"""
Structured logging service with search, statistics and aggregation.

The service writes immutable LogEntry records into a bounded LogStore.
The public ``log_*`` methods never raise: if the store rejects a write the
same information goes to stderr instead. ``record`` is the raising
primitive used by callers that want to react to a logging-system fault
(the recovery orchestrator switches to its fallback logger).
"""

from __future__ import annotations

import itertools
import logging
import re
import sys
import threading
import traceback
from typing import Any, Mapping

from shortuuid import random as shortuuid_random

from ..exceptions import LoggingSystemError
from ..models import (
    AggregatedError,
    ErrorSeverity,
    ErrorStatistics,
    ErrorSuggestion,
    LogContext,
    LogEntry,
    LogLevel,
    LogQuery,
    coerce_context,
    error_text,
    utcnow,
)
from .error_handler import ErrorHandler
from .monitoring import ErrorMonitor, SentryMonitor
from .store import BoundedLogStore, LogStore

logger = logging.getLogger("dashboard-resilience")

_ERROR_TYPE_PATTERN = re.compile(r"^\s*([A-Za-z_]\w*)\s*:")

# (pattern, suggestion, action); checked in order against every error message
SUGGESTION_TABLE: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (
        re.compile(r"network|connection|timed? ?out|ECONNREFUSED|ENOTFOUND", re.IGNORECASE),
        "Check network connectivity and firewall settings",
        "retry_connection",
    ),
    (
        re.compile(r"plugin.*(failed|error)", re.IGNORECASE),
        "Try disabling and re-enabling the affected plugin",
        "restart_plugin",
    ),
    (
        re.compile(r"permission|unauthori[sz]ed|forbidden", re.IGNORECASE),
        "Check user permissions and authentication status",
        "check_permissions",
    ),
    (
        re.compile(r"memory|heap|allocation", re.IGNORECASE),
        "System may be running low on memory",
        "check_memory",
    ),
    (
        re.compile(r"database|storage|disk", re.IGNORECASE),
        "Check database connectivity and storage availability",
        "check_storage",
    ),
)

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


def extract_error_type(message: str) -> str:
    """Leading identifier before the first colon, ``"Error"`` if absent."""
    match = _ERROR_TYPE_PATTERN.match(message)
    return match.group(1) if match else "Error"


def safe_metadata(value: Any, _seen: set[int] | None = None) -> Any:
    """JSON-compatible deep copy; cycles become ``"[Circular]"``."""
    if _seen is None:
        _seen = set()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if id(value) in _seen:
        return "[Circular]"
    if isinstance(value, Mapping):
        _seen.add(id(value))
        result = {str(k): safe_metadata(v, _seen) for k, v in value.items()}
        _seen.discard(id(value))
        return result
    if isinstance(value, (list, tuple, set, frozenset)):
        _seen.add(id(value))
        result_list = [safe_metadata(v, _seen) for v in value]
        _seen.discard(id(value))
        return result_list
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {error_text(value)}"
    try:
        return repr(value)
    except Exception:
        return f"<unrepresentable {type(value).__name__}>"


class LoggingService:
    """Bounded, queryable structured logger.

    Attributes:
        store: Backing LogStore (a BoundedLogStore unless injected)
        console_output: Mirror each entry to the stdlib logger
        write_failures: Number of store writes that failed
        monitor: Optional external error monitor
        monitoring_level: Lowest level forwarded to the monitor
    """

    def __init__(
        self,
        max_entries: int = 1000,
        store: LogStore | None = None,
        console_output: bool = False,
        monitor: ErrorMonitor | None = None,
        monitoring_level: LogLevel = LogLevel.ERROR,
    ):
        """Initialize the logging service.

        Args:
            max_entries: Capacity of the default store
            store: Optional custom store (max_entries is then ignored)
            console_output: Mirror entries to the stdlib logger
            monitor: External monitor fed by the log_* methods
            monitoring_level: Entries below this level are not forwarded
        """
        self.store = store if store is not None else BoundedLogStore(max_entries)
        self.console_output = console_output
        self.write_failures = 0
        self._sequence = itertools.count(1)
        self.monitor = monitor
        self.monitoring_level = LogLevel(monitoring_level)
        # sequence assignment and store append happen under this one lock
        self._write_lock = threading.Lock()
        self._error_handler = ErrorHandler(self)

    @classmethod
    def from_config(cls, config: Any) -> "LoggingService":
        """Build a service from a ``LoggingConfig`` section."""
        return cls(
            max_entries=config.max_entries,
            console_output=config.console_output,
            monitor=SentryMonitor.from_config(config),
            monitoring_level=config.monitoring_level,
        )

    # =========================================================================
    # Writing
    # =========================================================================

    def record(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> LogEntry:
        """Create and store one entry.

        Args:
            level: Entry level
            message: Entry message
            context: Structured context
            error: Exception whose traceback is kept (ERROR/CRITICAL only)

        Returns:
            The stored LogEntry

        Raises:
            LoggingSystemError: If the store rejected the write
        """
        with self._write_lock:
            entry = self._create_entry(LogLevel(level), message, context, error)
            try:
                self.store.append(entry)
            except Exception as e:
                self.write_failures += 1
                raise LoggingSystemError(
                    f"Log store rejected entry {entry.id}: {error_text(e)}",
                    details={"entry_id": entry.id, "level": entry.level.value},
                ) from e

        if self.console_output:
            logger.log(
                _STDLIB_LEVELS[entry.level],
                f"[{entry.context.source or 'app'}] {entry.message}",
            )
        return entry

    def log_error(
        self,
        error: BaseException,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        """Log an exception at ERROR level with its stack trace."""
        message = error_text(error) or type(error).__name__
        return self._safe_record(LogLevel.ERROR, message, context, error)

    def log_critical(
        self,
        error: BaseException,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        """Log an exception at CRITICAL level with its stack trace."""
        message = error_text(error) or type(error).__name__
        return self._safe_record(LogLevel.CRITICAL, message, context, error)

    def log_warning(
        self,
        message: str,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self._safe_record(LogLevel.WARNING, message, context)

    def log_info(
        self,
        message: str,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self._safe_record(LogLevel.INFO, message, context)

    def log_debug(
        self,
        message: str,
        context: LogContext | Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        return self._safe_record(LogLevel.DEBUG, message, context)

    def is_healthy(self) -> bool:
        """Ask the backing store whether it accepts writes."""
        try:
            return bool(self.store.health_check())
        except Exception as e:
            logger.warning(f"Log store health check failed: {error_text(e)}")
            return False

    def get_error_handler(self) -> ErrorHandler:
        """The user-facing error pipeline attached to this logger."""
        return self._error_handler

    # =========================================================================
    # Querying
    # =========================================================================

    def search_logs(self, query: LogQuery | Mapping[str, Any] | None = None) -> list[LogEntry]:
        """Return entries matching every supplied filter, in insertion order.

        Args:
            query: LogQuery or mapping of its fields; None matches everything

        Returns:
            Matching entries after offset/limit pagination
        """
        if query is None:
            query = LogQuery()
        elif not isinstance(query, LogQuery):
            query = LogQuery.model_validate(dict(query))

        matches = [entry for entry in self.store.snapshot() if self._matches(entry, query)]
        matches = matches[query.offset:]
        if query.limit is not None:
            matches = matches[:query.limit]
        return matches

    def get_error_statistics(self) -> ErrorStatistics:
        """Counts of ERROR/CRITICAL entries by type, component and severity."""
        stats = ErrorStatistics()
        for entry in self._error_entries():
            error_type = extract_error_type(entry.message)
            stats.by_type[error_type] = stats.by_type.get(error_type, 0) + 1

            component = entry.context.source or "unknown"
            stats.by_component[component] = stats.by_component.get(component, 0) + 1

            stats.by_severity[self._entry_severity(entry)] += 1
            stats.total_errors += 1

            if stats.time_range.start is None or entry.timestamp < stats.time_range.start:
                stats.time_range.start = entry.timestamp
            if stats.time_range.end is None or entry.timestamp > stats.time_range.end:
                stats.time_range.end = entry.timestamp
        return stats

    def get_aggregated_errors(self) -> list[AggregatedError]:
        """Group ERROR/CRITICAL entries by exact message, most frequent first."""
        groups: dict[str, dict[str, Any]] = {}
        for entry in self._error_entries():
            group = groups.get(entry.message)
            if group is None:
                group = {
                    "count": 0,
                    "components": set(),
                    "first": entry.timestamp,
                    "last": entry.timestamp,
                    "critical": False,
                }
                groups[entry.message] = group
            group["count"] += 1
            source = entry.context.source
            if source:
                group["components"].add(source)
            group["first"] = min(group["first"], entry.timestamp)
            group["last"] = max(group["last"], entry.timestamp)
            group["critical"] = group["critical"] or entry.level == LogLevel.CRITICAL

        aggregated = [
            AggregatedError(
                message=message,
                count=group["count"],
                affected_components=sorted(group["components"]),
                first_occurrence=group["first"],
                last_occurrence=group["last"],
                severity=ErrorSeverity.CRITICAL if group["critical"] else ErrorSeverity.HIGH,
            )
            for message, group in groups.items()
        ]
        # sort is stable: equal counts keep first-seen order
        aggregated.sort(key=lambda a: a.count, reverse=True)
        return aggregated

    def get_error_suggestions(self) -> list[ErrorSuggestion]:
        """Suggestions for known error patterns present in the store."""
        messages = [entry.message for entry in self._error_entries()]
        suggestions = []
        for pattern, suggestion, action in SUGGESTION_TABLE:
            occurrences = sum(1 for message in messages if pattern.search(message))
            if occurrences:
                suggestions.append(
                    ErrorSuggestion(suggestion=suggestion, action=action, occurrences=occurrences)
                )
        return suggestions

    # =========================================================================
    # Internals
    # =========================================================================

    def _safe_record(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None,
        error: BaseException | None = None,
    ) -> LogEntry | None:
        try:
            entry = self.record(level, message, context, error)
        except Exception as e:
            self._fallback_to_console(level, message, context, e)
            entry = None
        self._forward(level, message, context, error)
        return entry

    def _forward(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None,
        error: BaseException | None,
    ) -> None:
        if self.monitor is None or _STDLIB_LEVELS[level] < _STDLIB_LEVELS[self.monitoring_level]:
            return
        try:
            log_context = coerce_context(context)
            if error is not None:
                self.monitor.capture_exception(error, log_context, level)
            else:
                self.monitor.capture_message(message, log_context, level)
        except Exception as e:
            logger.warning(f"Forwarding to error monitoring failed: {error_text(e)}")

    def _create_entry(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None,
        error: BaseException | None,
    ) -> LogEntry:
        log_context = coerce_context(context)
        sequence = next(self._sequence)

        stack_trace = None
        if error is not None and level in (LogLevel.ERROR, LogLevel.CRITICAL):
            stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        metadata = safe_metadata(log_context.metadata)
        if log_context.model_extra:
            metadata = {**metadata, **safe_metadata(log_context.model_extra)}

        return LogEntry(
            id=f"log-{sequence:010d}-{shortuuid_random(length=6)}",
            sequence=sequence,
            timestamp=utcnow(),
            level=level,
            message=message,
            context=log_context,
            stack_trace=stack_trace,
            metadata=metadata,
        )

    def _error_entries(self) -> list[LogEntry]:
        return [entry for entry in self.store.snapshot() if entry.is_error]

    @staticmethod
    def _entry_severity(entry: LogEntry) -> ErrorSeverity:
        return ErrorSeverity.CRITICAL if entry.level == LogLevel.CRITICAL else ErrorSeverity.HIGH

    @staticmethod
    def _matches(entry: LogEntry, query: LogQuery) -> bool:
        context = entry.context
        if query.level is not None and entry.level != query.level:
            return False
        if query.user_id is not None and context.user_id != query.user_id:
            return False
        if query.plugin_id is not None and context.plugin_id != query.plugin_id:
            return False
        if query.component is not None and not (context.component or "").startswith(query.component):
            return False
        if query.start_date is not None and entry.timestamp < query.start_date:
            return False
        if query.end_date is not None and entry.timestamp > query.end_date:
            return False
        if query.message_contains is not None and query.message_contains not in entry.message:
            return False
        return True

    @staticmethod
    def _fallback_to_console(
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | None,
        storage_error: BaseException,
    ) -> None:
        # Last resort: the store is unusable, so bypass every logging layer
        try:
            print(
                f"[LoggingService] Logging system failure: {error_text(storage_error)}\n"
                f"[LoggingService] Original {LogLevel(level).value}: {message} context={context!r}",
                file=sys.stderr,
            )
        except OSError:
            pass


__all__ = [
    "LoggingService",
    "SUGGESTION_TABLE",
    "extract_error_type",
    "safe_metadata",
]
