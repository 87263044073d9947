# src/auditcore/audit/buffer.py
"""
In-memory buffer of pending audit entries.

The buffer is an ordered list guarded by an ``asyncio.Lock``. Producers
append; the flush scheduler swaps the whole list out in one locked step and,
if the write fails, puts the swapped entries back in front of anything
appended meanwhile. Nobody ever does a read-then-clear outside the lock, so
an entry logged during a flush cannot fall between the read and the clear.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..models import LogEntry, Severity

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100


class EventBuffer:
    """
    Ordered queue of audit entries waiting to be flushed.

    ``append`` reports whether the caller should request an immediate flush:
    either the queue reached ``max_size`` or the entry is critical.
    """

    def __init__(self, max_size: int = DEFAULT_BUFFER_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._pending: list[LogEntry] = []
        self._max_size = max_size
        self._lock = asyncio.Lock()
        self._total_events = 0
        self._requeued_events = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    async def append(self, entry: LogEntry) -> bool:
        """
        Enqueue an entry.

        Returns:
            True if the buffer is at or over its threshold, or the entry is
            critical.
        """
        async with self._lock:
            self._pending.append(entry)
            self._total_events += 1
            return len(self._pending) >= self._max_size or entry.severity == Severity.CRITICAL

    async def swap(self) -> list[LogEntry]:
        """Take every pending entry, leaving the buffer empty."""
        async with self._lock:
            entries, self._pending = self._pending, []
            return entries

    async def requeue(self, entries: list[LogEntry]) -> None:
        """Put entries from a failed flush back in front, preserving their order."""
        if not entries:
            return
        async with self._lock:
            self._pending = list(entries) + self._pending
            self._requeued_events += len(entries)

    def snapshot(self) -> list[LogEntry]:
        """Copy of the pending entries, oldest first."""
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "buffer_size": len(self._pending),
            "max_size": self._max_size,
            "total_events": self._total_events,
            "requeued_events": self._requeued_events,
        }
