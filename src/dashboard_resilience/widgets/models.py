"""
Data models for the widget failure ledger.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from ..models import SEVERITY_ORDER, ErrorSeverity, error_text, utcnow


class WidgetErrorRecord(BaseModel):
    """Failure state of one currently-failing widget."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    widget_id: str
    plugin_id: str
    last_error: BaseException
    severity: ErrorSeverity = ErrorSeverity.LOW
    retry_count: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    auto_removed: bool = False

    @property
    def failure_count(self) -> int:
        """1-based number of failures recorded since creation."""
        return self.retry_count + 1

    @property
    def error_message(self) -> str:
        return error_text(self.last_error)


class FallbackAction(BaseModel):
    """A button offered on a fallback."""

    id: str
    label: str
    icon: str | None = None
    variant: str = "secondary"


class WidgetFallback(BaseModel):
    """Degraded UI shown in place of a failed widget."""

    id: str
    widget_id: str
    content: str
    error_message: str = ""
    show_retry: bool = True
    show_remove: bool = True
    actions: list[FallbackAction] = Field(default_factory=list)

    def visible_actions(self) -> list[FallbackAction]:
        """Actions that should be rendered given the visibility flags."""
        visible = []
        for action in self.actions:
            if action.id == "retry" and not self.show_retry:
                continue
            if action.id == "remove" and not self.show_remove:
                continue
            visible.append(action)
        return visible


class FallbackCallbacks(BaseModel):
    """Host callbacks bound to one fallback."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    on_retry: Callable[[str], None] | None = None
    on_remove: Callable[[str], None] | None = None
    on_report: Callable[[WidgetErrorRecord], None] | None = None


class WidgetErrorStatistics(BaseModel):
    """Read-only aggregate view over the ledger."""

    total_errors: int = 0
    widget_count: int = 0
    plugin_errors: dict[str, int] = Field(default_factory=dict)
    severity_breakdown: dict[ErrorSeverity, int] = Field(
        default_factory=lambda: {severity: 0 for severity in SEVERITY_ORDER}
    )


__all__ = [
    "WidgetErrorRecord",
    "FallbackAction",
    "WidgetFallback",
    "FallbackCallbacks",
    "WidgetErrorStatistics",
]
