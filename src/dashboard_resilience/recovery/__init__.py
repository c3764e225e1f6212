"""
Recovery orchestration: component isolation, restoration retries,
fallback logging, health tracking and developer escalation.
"""

from __future__ import annotations

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
    HealthState,
    NotificationUrgency,
    RecoveryResult,
    RetryOptions,
    SystemHealthStatus,
    TrackingIssue,
)
from .notifications import LoggingNotificationService, WebhookNotificationService
from .orchestrator import RecoveryOrchestrator

__all__ = [
    "ComponentFailureContext",
    "ComponentFailureHandler",
    "DeveloperNotification",
    "DeveloperNotificationService",
    "ErrorEscalation",
    "EscalationLevel",
    "FallbackLogEntry",
    "FallbackLogger",
    "HealthState",
    "InMemoryComponentFailureHandler",
    "InMemoryFallbackLogger",
    "LoggingNotificationService",
    "NotificationUrgency",
    "RecoveryOrchestrator",
    "RecoveryResult",
    "RetryOptions",
    "SystemHealthMonitor",
    "SystemHealthStatus",
    "TrackingIssue",
    "WebhookNotificationService",
]
