"""
Widget failure handling: per-widget ledger, severity escalation and
fallback UI generation.
"""

from __future__ import annotations

from .handler import WidgetErrorHandler
from .models import (
    FallbackAction,
    WidgetErrorRecord,
    WidgetErrorStatistics,
    WidgetFallback,
)
from .render import CONTAINER_MARKER

__all__ = [
    "CONTAINER_MARKER",
    "FallbackAction",
    "WidgetErrorHandler",
    "WidgetErrorRecord",
    "WidgetErrorStatistics",
    "WidgetFallback",
]
