"""
Data models shared by the recovery orchestrator and its collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import ErrorSeverity, LogContext, LogLevel, error_text, utcnow


def describe_error(error: BaseException | None) -> dict[str, str] | None:
    """JSON-safe summary of an exception for outbound payloads."""
    if error is None:
        return None
    return {"type": type(error).__name__, "message": error_text(error)}


class RetryOptions(BaseModel):
    """Restoration retry schedule."""

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0.0, description="Seconds before the first attempt")
    exponential_backoff: bool = True


class ComponentFailureContext(BaseModel):
    """Context reported alongside a component fault.

    Unknown fields are tolerated and preserved in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    component: str | None = None
    plugin_id: str | None = None
    critical: bool = False
    isolate: bool = False
    immediate: bool = False
    system_wide: bool = False
    occurrence_count: int | None = None
    create_issue: bool = False
    first_occurrence: datetime | None = None
    escalation_threshold: float | None = Field(
        default=None,
        ge=0.0,
        description="Seconds a fault may stay unresolved before escalation",
    )
    retry: RetryOptions | None = None

    @field_validator("first_occurrence")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class HealthState(str, Enum):
    """Overall system state, ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


HEALTH_ORDER: list[HealthState] = [HealthState.HEALTHY, HealthState.DEGRADED, HealthState.CRITICAL]


class SystemHealthStatus(BaseModel):
    """Process-wide health value owned by the orchestrator."""

    status: HealthState = HealthState.HEALTHY
    critical_systems_operational: bool = True
    failed_components: set[str] = Field(default_factory=set)
    recovery_mechanisms_active: bool = False
    fallback_logging_active: bool = False
    system_wide_failure: bool = False
    last_health_check: datetime = Field(default_factory=utcnow)


class FallbackLogEntry(BaseModel):
    """Entry written to the secondary log sink."""

    level: LogLevel
    message: str
    context: LogContext = Field(default_factory=LogContext)
    timestamp: datetime = Field(default_factory=utcnow)


class NotificationUrgency(str, Enum):
    IMMEDIATE = "immediate"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class DeveloperNotification(BaseModel):
    """A fault report for the development team."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    error: BaseException | None = None
    severity: ErrorSeverity
    component: str | None = None
    plugin_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    urgency: NotificationUrgency = NotificationUrgency.NORMAL

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": describe_error(self.error),
            "severity": self.severity.value,
            "component": self.component,
            "plugin_id": self.plugin_id,
            "timestamp": self.timestamp.isoformat(),
            "urgency": self.urgency.value,
        }


class TrackingIssue(BaseModel):
    """An issue opened in the team's tracker for a recurring fault."""

    title: str
    body: str
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class EscalationLevel(str, Enum):
    TEAM = "team"
    MANAGER = "manager"
    DIRECTOR = "director"


class ErrorEscalation(BaseModel):
    """An unresolved fault raised above the owning team."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    error: BaseException
    original_context: ComponentFailureContext
    escalation_level: EscalationLevel
    time_unresolved: float = Field(description="Seconds the fault has been unresolved")

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": describe_error(self.error),
            "original_context": self.original_context.to_payload(),
            "escalation_level": self.escalation_level.value,
            "time_unresolved": self.time_unresolved,
        }


@dataclass
class RecoveryResult:
    """Result of a recovery operation.

    Attributes:
        success: Whether the recovery was successful
        strategy_used: The recovery strategy that was applied ("retry", "isolation")
        message: Human-readable description of the recovery outcome
        attempts: Number of restoration attempts made
    """

    success: bool
    strategy_used: str
    message: str
    attempts: int = 0


__all__ = [
    "describe_error",
    "RetryOptions",
    "ComponentFailureContext",
    "HealthState",
    "HEALTH_ORDER",
    "SystemHealthStatus",
    "FallbackLogEntry",
    "NotificationUrgency",
    "DeveloperNotification",
    "TrackingIssue",
    "EscalationLevel",
    "ErrorEscalation",
    "RecoveryResult",
]
