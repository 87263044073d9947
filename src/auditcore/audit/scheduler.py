# src/auditcore/audit/scheduler.py
"""
Flush scheduling for the audit buffer.

The scheduler owns the two ways entries leave the buffer:

- a periodic ``asyncio`` task that flushes every ``flush_interval_seconds``
- on-demand flush requests raised by the logger (threshold or critical entry)

Every flush swaps the buffer out under the buffer lock, writes the entries in
one batched store write *outside* that lock, and on failure re-queues them at
the front of the buffer. Flushes are serialized among themselves with a
second lock. Delivery is at-least-once while the process lives; entries still
buffered when the process dies are lost.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from ..exceptions import TransientStoreError
from ..models import LogEntry
from ..storage.abstraction import execute_with_retry
from ..storage.base import BaseDocumentStore
from .buffer import EventBuffer

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL = 30.0


class FlushScheduler:
    """
    Drains an :class:`EventBuffer` into a document store collection.

    Usage:
        scheduler = FlushScheduler(buffer, store, "audit-logs")
        scheduler.start()
        ...
        scheduler.request_flush()
        ...
        await scheduler.shutdown()
    """

    def __init__(
        self,
        buffer: EventBuffer,
        store: BaseDocumentStore,
        collection: str,
        flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL,
        write_retries: int = 0,
        retry_base_delay: float = 0.1,
    ):
        self._buffer = buffer
        self._store = store
        self._collection = collection
        self._interval = flush_interval_seconds
        self._write_retries = write_retries
        self._retry_base_delay = retry_base_delay

        self._flush_lock = asyncio.Lock()
        self._periodic_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._shutdown = False

        # Statistics
        self._entries_flushed = 0
        self._flush_count = 0
        self._flush_failures = 0
        self._entries_dropped = 0
        self._flush_requests = 0
        self._last_flush_time: float | None = None

    @property
    def running(self) -> bool:
        return self._periodic_task is not None and not self._periodic_task.done()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "entries_flushed": self._entries_flushed,
            "flush_count": self._flush_count,
            "flush_failures": self._flush_failures,
            "entries_dropped": self._entries_dropped,
            "flush_requests": self._flush_requests,
            "last_flush_time": self._last_flush_time,
            "pending": len(self._buffer),
        }

    def start(self) -> None:
        """Start the periodic flush task on the running event loop."""
        if self.running:
            return
        self._shutdown = False
        self._periodic_task = asyncio.get_running_loop().create_task(self._flush_loop())
        logger.debug(f"Flush scheduler started (interval: {self._interval}s)")

    async def _flush_loop(self) -> None:
        """Background task to flush entries periodically."""
        while not self._shutdown:
            await asyncio.sleep(self._interval)
            try:
                await self.flush()
            except Exception as e:
                logger.error(f"Error in audit flush loop: {e}")

    def request_flush(self) -> asyncio.Task | None:
        """
        Schedule a flush without waiting for it.

        Returns:
            The scheduled task, or None when no event loop is running.
        """
        self._flush_requests += 1
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Flush requested outside an event loop; deferring to next flush")
            return None
        task = loop.create_task(self.flush())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every requested flush has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def flush(self) -> int:
        """
        Write all buffered entries in one batch.

        Never raises for store failures: failed entries go back to the front
        of the buffer and will be retried by the next flush. An entry that
        cannot be serialized is logged and dropped; the rest of the batch is
        still written.

        Returns:
            Number of entries written (0 for an empty buffer or a failed write).
        """
        async with self._flush_lock:
            entries = await self._buffer.swap()
            if not entries:
                return 0

            records, entries = self._serialize(entries)
            if not records:
                return 0

            try:
                await execute_with_retry(
                    lambda: self._store.batch_write(self._collection, records),
                    max_retries=self._write_retries,
                    base_delay=self._retry_base_delay,
                    retryable_exceptions=(TransientStoreError,),
                )
            except asyncio.CancelledError:
                await self._buffer.requeue(entries)
                raise
            except Exception as e:
                await self._buffer.requeue(entries)
                self._flush_failures += 1
                logger.error(
                    f"Failed to flush {len(entries)} audit entries; re-queued for retry: {e}"
                )
                return 0

            self._entries_flushed += len(entries)
            self._flush_count += 1
            self._last_flush_time = time.time()
            logger.debug(f"Flushed {len(entries)} audit entries to '{self._collection}'")
            return len(entries)

    def _serialize(self, entries: list[LogEntry]) -> tuple[list[dict], list[LogEntry]]:
        """Serialize entries for the store, dropping any that cannot be encoded."""
        records, kept = [], []
        for entry in entries:
            try:
                records.append(entry.to_record())
            except Exception as e:
                self._entries_dropped += 1
                logger.error(f"Dropping unserializable audit entry {entry.id} ({entry.action}): {e}")
                continue
            kept.append(entry)
        return records, kept

    async def shutdown(self) -> int:
        """
        Stop the periodic task, wait for requested flushes, then flush once more.

        Returns:
            Number of entries written by the final flush.
        """
        self._shutdown = True

        if self._periodic_task:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None

        await self.wait_idle()
        written = await self.flush()

        if len(self._buffer):
            logger.error(
                f"Audit scheduler shut down with {len(self._buffer)} entries unflushed"
            )
        logger.info(
            f"Audit flush scheduler shutdown complete ({self._entries_flushed} entries flushed)"
        )
        return written
