"""
Structured logger: bounded log store, search and aggregation, and the
user-facing error translation pipeline with optional forwarding to an
external error monitor.
"""

from __future__ import annotations

from .error_handler import ErrorHandler
from .error_messages import ErrorCategory, UserErrorTranslator
from .monitoring import ErrorMonitor, SentryMonitor
from .service import LoggingService, extract_error_type
from .store import BoundedLogStore, LogStore

__all__ = [
    "BoundedLogStore",
    "ErrorCategory",
    "ErrorHandler",
    "ErrorMonitor",
    "LogStore",
    "LoggingService",
    "SentryMonitor",
    "UserErrorTranslator",
    "extract_error_type",
]
