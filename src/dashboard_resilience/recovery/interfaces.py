"""
Collaborator interfaces the recovery orchestrator depends on.

Concrete implementations live outside the core (a plugin manager, an
alerting integration); in-memory defaults are provided in this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import LogContext
from .models import (
    ComponentFailureContext,
    DeveloperNotification,
    ErrorEscalation,
    FallbackLogEntry,
    TrackingIssue,
)


class ComponentFailureHandler(ABC):
    """Owner of component lifecycles (widgets, plugins, services)."""

    @abstractmethod
    async def handle_component_failure(
        self,
        component_id: str,
        error: BaseException,
        context: ComponentFailureContext,
    ) -> None:
        """React to a component fault (typically mark it unhealthy)."""

    @abstractmethod
    def register_fallback_component(self, component_id: str, fallback_component: Any) -> None:
        """Register what to serve while ``component_id`` is failing."""

    @abstractmethod
    async def get_fallback_component(self, component_id: str) -> Any:
        """Return the registered fallback, or None."""

    @abstractmethod
    async def is_component_healthy(self, component_id: str) -> bool:
        ...

    @abstractmethod
    def mark_component_unhealthy(self, component_id: str) -> None:
        """Exclude a component from further dispatch."""

    @abstractmethod
    async def restore_component(self, component_id: str) -> None:
        """Attempt to bring a component back; raise if it cannot be restored."""


class FallbackLogger(ABC):
    """Secondary log sink used only while the primary logger is failing."""

    @abstractmethod
    def log(self, entry: FallbackLogEntry) -> None:
        ...

    @abstractmethod
    def log_error(self, message: str, context: LogContext) -> None:
        ...

    @abstractmethod
    def log_warning(self, message: str, context: LogContext) -> None:
        ...

    @abstractmethod
    def is_main_logger_working(self) -> bool:
        """False while logging is routed to this sink."""

    @abstractmethod
    def switch_to_fallback(self) -> None:
        ...

    @abstractmethod
    def switch_to_main(self) -> None:
        ...


class DeveloperNotificationService(ABC):
    """Outbound alerting channel for the development team."""

    @abstractmethod
    async def notify_developer(self, notification: DeveloperNotification) -> None:
        ...

    @abstractmethod
    async def send_message(self, message: str, channel: str | None = None) -> None:
        """Post a free-form message to a chat channel."""

    @abstractmethod
    async def create_issue(self, issue: TrackingIssue) -> None:
        ...

    @abstractmethod
    async def escalate_error(self, escalation: ErrorEscalation) -> None:
        ...


__all__ = [
    "ComponentFailureHandler",
    "FallbackLogger",
    "DeveloperNotificationService",
]
