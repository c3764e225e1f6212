"""
Bounded storage for structured log entries.

The store is the only owner of LogEntry objects. It keeps insertion order
and evicts strictly oldest-first, so the most recent ``max_entries``
entries are always retrievable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from threading import RLock

from ..models import LogEntry


class LogStore(ABC):
    """Interface for log entry storage backends."""

    @abstractmethod
    def append(self, entry: LogEntry) -> list[LogEntry]:
        """Store an entry.

        Returns:
            Entries evicted to make room (oldest first)
        """

    @abstractmethod
    def snapshot(self) -> list[LogEntry]:
        """Return a consistent copy of all entries in insertion order."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    def health_check(self) -> bool:
        """Report whether the store currently accepts writes."""
        return True


class BoundedLogStore(LogStore):
    """In-memory FIFO store capped at ``max_entries``.

    Thread-safe: append, evict and snapshot run under one lock, so
    concurrent writers never lose an eviction and readers never observe a
    half-applied append.
    """

    def __init__(self, max_entries: int = 1000):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: deque[LogEntry] = deque()
        self._lock = RLock()
        self._evicted_count = 0

    def append(self, entry: LogEntry) -> list[LogEntry]:
        evicted: list[LogEntry] = []
        with self._lock:
            while len(self._entries) >= self.max_entries:
                evicted.append(self._entries.popleft())
            self._entries.append(entry)
            self._evicted_count += len(evicted)
        return evicted

    def snapshot(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def evicted_count(self) -> int:
        """Total entries evicted since creation."""
        with self._lock:
            return self._evicted_count


__all__ = ["LogStore", "BoundedLogStore"]
