"""
Dashboard resilience core - structured logging, widget failure handling
and system-wide error recovery for a plugin-based dashboard.
"""

from .config import ResilienceConfig, load_config
from .exceptions import *
from .models import *
from .recovery import RecoveryOrchestrator
from .structured_log import ErrorHandler, LoggingService, UserErrorTranslator
from .widgets import WidgetErrorHandler

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("dashboard-resilience")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "ErrorHandler",
    "LoggingService",
    "RecoveryOrchestrator",
    "ResilienceConfig",
    "UserErrorTranslator",
    "WidgetErrorHandler",
    "load_config",
]
