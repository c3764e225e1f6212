"""
In-memory fallback log sink.

Holds the entries written while the primary structured logger is down and
mirrors them to the stdlib logger so they still reach the console.
"""

from __future__ import annotations

import logging
from collections import deque
from threading import RLock

from ..models import LogContext, LogLevel, utcnow
from .interfaces import FallbackLogger
from .models import FallbackLogEntry

logger = logging.getLogger("dashboard-resilience.fallback")

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


class InMemoryFallbackLogger(FallbackLogger):
    """Bounded secondary sink with the main/fallback routing switch.

    Attributes:
        capacity: Maximum number of entries kept (oldest dropped first)
    """

    def __init__(self, capacity: int = 5000):
        self.capacity = capacity
        self._entries: deque[FallbackLogEntry] = deque(maxlen=capacity)
        self._using_fallback = False
        self._lock = RLock()

    def log(self, entry: FallbackLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        logger.log(
            _STDLIB_LEVELS[entry.level],
            f"[FALLBACK {entry.level.value.upper()}] {entry.message}",
        )

    def log_error(self, message: str, context: LogContext) -> None:
        self.log(FallbackLogEntry(level=LogLevel.ERROR, message=message, context=context, timestamp=utcnow()))

    def log_warning(self, message: str, context: LogContext) -> None:
        self.log(FallbackLogEntry(level=LogLevel.WARNING, message=message, context=context, timestamp=utcnow()))

    def is_main_logger_working(self) -> bool:
        with self._lock:
            return not self._using_fallback

    def switch_to_fallback(self) -> None:
        with self._lock:
            self._using_fallback = True
        logger.warning("Switched to fallback logger")

    def switch_to_main(self) -> None:
        with self._lock:
            self._using_fallback = False
        logger.info("Switched back to main logger")

    @property
    def is_using_fallback(self) -> bool:
        with self._lock:
            return self._using_fallback

    def get_fallback_logs(self) -> list[FallbackLogEntry]:
        with self._lock:
            return list(self._entries)

    def clear_fallback_logs(self) -> None:
        with self._lock:
            self._entries.clear()


__all__ = ["InMemoryFallbackLogger"]
