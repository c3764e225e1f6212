"""
Shared data models for the dashboard resilience core.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp in the core."""
    return datetime.now(timezone.utc)


def error_text(error: BaseException) -> str:
    """``str(error)``, or a placeholder naming the type if ``__str__`` raises."""
    try:
        return str(error)
    except Exception:
        return f"<unprintable {type(error).__name__}>"


class LogLevel(str, Enum):
    """Severity levels of structured log entries."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorSeverity(str, Enum):
    """Urgency ranking of a fault, driving UI and notification behavior."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER: list[ErrorSeverity] = [
    ErrorSeverity.LOW,
    ErrorSeverity.MEDIUM,
    ErrorSeverity.HIGH,
    ErrorSeverity.CRITICAL,
]


class LogContext(BaseModel):
    """Structured context attached to a log call.

    Unknown fields supplied by callers are kept (``extra="allow"``) and
    surface through ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    user_id: str | None = None
    plugin_id: str | None = None
    component: str | None = None
    action: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def source(self) -> str | None:
        """Plugin id when present, otherwise the component name."""
        return self.plugin_id or self.component


class ErrorContext(LogContext):
    """Context for the user-facing error pipeline."""

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    user_facing: bool = False


class LogEntry(BaseModel):
    """Immutable record held by the log store."""

    model_config = ConfigDict(frozen=True)

    id: str
    sequence: int
    timestamp: datetime
    level: LogLevel
    message: str
    context: LogContext = Field(default_factory=LogContext)
    stack_trace: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.level in (LogLevel.ERROR, LogLevel.CRITICAL)


class LogQuery(BaseModel):
    """Search filters; every supplied field must match (logical AND)."""

    level: LogLevel | None = None
    user_id: str | None = None
    plugin_id: str | None = None
    component: str | None = Field(
        default=None,
        description="Prefix matched against context.component",
    )
    start_date: datetime | None = None
    end_date: datetime | None = None
    message_contains: str | None = None
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Entries carry aware UTC timestamps; naive bounds are read as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TimeRange(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class ErrorStatistics(BaseModel):
    """Counts over ERROR and CRITICAL entries."""

    by_type: dict[str, int] = Field(default_factory=dict)
    by_component: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[ErrorSeverity, int] = Field(
        default_factory=lambda: {severity: 0 for severity in SEVERITY_ORDER}
    )
    total_errors: int = 0
    time_range: TimeRange = Field(default_factory=TimeRange)


class AggregatedError(BaseModel):
    """Error entries grouped by identical message text."""

    message: str
    count: int
    affected_components: list[str] = Field(default_factory=list)
    first_occurrence: datetime
    last_occurrence: datetime
    severity: ErrorSeverity = ErrorSeverity.HIGH


class ErrorSuggestion(BaseModel):
    suggestion: str
    action: str
    occurrences: int = 0


class ErrorAction(BaseModel):
    """A recovery action offered to the user."""

    label: str
    action: str
    data: dict[str, Any] | None = None


class UserFriendlyError(BaseModel):
    """Sanitized payload handed to the user display callback."""

    message: str
    actions: list[ErrorAction] = Field(default_factory=list)
    severity: ErrorSeverity = ErrorSeverity.MEDIUM


class AdminNotification(BaseModel):
    """Payload handed to the admin notification callback."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    error: BaseException
    context: ErrorContext
    severity: ErrorSeverity
    timestamp: datetime = Field(default_factory=utcnow)
    requires_immediate_attention: bool = False


def coerce_context(
    context: LogContext | Mapping[str, Any] | None,
    model: type[LogContext] = LogContext,
) -> LogContext:
    """Accept a context model, a plain mapping, or None.

    A context of a different model class is re-validated so callers can
    pass a LogContext where an ErrorContext is expected and vice versa.
    """
    if context is None:
        return model()
    if isinstance(context, model):
        return context
    if isinstance(context, LogContext):
        data = context.model_dump()
        return model.model_validate(data)
    return model.model_validate(dict(context))


__all__ = [
    "utcnow",
    "error_text",
    "LogLevel",
    "ErrorSeverity",
    "SEVERITY_ORDER",
    "LogContext",
    "ErrorContext",
    "LogEntry",
    "LogQuery",
    "TimeRange",
    "ErrorStatistics",
    "AggregatedError",
    "ErrorSuggestion",
    "ErrorAction",
    "UserFriendlyError",
    "AdminNotification",
    "coerce_context",
]
