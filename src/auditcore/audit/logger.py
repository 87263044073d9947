# src/auditcore/audit/logger.py
"""
Producer-facing audit logger.

``AuditLogger`` ties the pieces of the write path together: it stamps and
classifies entries, appends them to the :class:`EventBuffer`, asks the
:class:`FlushScheduler` for an immediate flush when the buffer fills up or a
critical entry arrives, and alerts the notifier for serious security events.

Logging must never break the caller's own operation, so every ``log*``
method contains its failures and reports them on the module logger.

Usage:
    audit = AuditLogger(store, AuditLogConfig(buffer_size=50))
    async with audit:
        await audit.log_auth("LOGIN_FAILED", "user_42", "learner", {"ip": "10.0.0.8"})
        await audit.log_data("DATA_EXPORT", "admin_1", "admin", "report_9", "report")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import AuditLogConfig
from ..models import SYSTEM_ACTOR, Category, LogEntry
from ..storage.base import BaseDocumentStore
from .buffer import EventBuffer
from .notifier import BaseNotifier
from .scheduler import FlushScheduler
from .severity import classify

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Buffered, asynchronously flushed audit log.

    One instance is built by the process's composition root and shared by
    every producer; tests build a fresh one per case.
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        config: AuditLogConfig | None = None,
        notifier: BaseNotifier | None = None,
    ):
        self.config = config or AuditLogConfig()
        self._store = store
        self._notifier = notifier
        self.buffer = EventBuffer(self.config.buffer_size)
        self.scheduler = FlushScheduler(
            self.buffer,
            store,
            self.config.collection,
            flush_interval_seconds=self.config.flush_interval_seconds,
            write_retries=self.config.write_retries,
        )
        self._notify_failures = 0
        self._notify_tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> AuditLogger:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def start(self) -> None:
        """Start the periodic flush. Requires a running event loop."""
        self.scheduler.start()

    async def shutdown(self) -> int:
        """Deliver pending alerts, stop the periodic flush and write everything still buffered."""
        await self.wait_notifications()
        return await self.scheduler.shutdown()

    async def flush(self) -> int:
        """Flush the buffer now."""
        return await self.scheduler.flush()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            **self.buffer.stats,
            **self.scheduler.stats,
            "notify_failures": self._notify_failures,
            "pending_notifications": len(self._notify_tasks),
        }

    # =========================================================================
    # PUBLIC LOGGING INTERFACE
    # =========================================================================

    async def log(
        self,
        action: str,
        actor_id: str,
        actor_role: str,
        category: Category | str,
        target_id: str | None = None,
        target_type: str | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LogEntry | None:
        """
        Record an audit event.

        Returns:
            The buffered entry, or None if the entry could not be built or
            serialized. Alerts for serious security entries are delivered in
            the background; see :meth:`wait_notifications`.
        """
        try:
            category = Category(category)
            entry = LogEntry(
                action=action,
                actor_id=actor_id,
                actor_role=actor_role,
                target_id=target_id,
                target_type=target_type,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent,
                severity=classify(category, action),
                category=category,
            )
            # rejects details the store could not encode
            entry.to_record()
            if await self.buffer.append(entry):
                self.scheduler.request_flush()
        except Exception as e:
            logger.error(f"Audit logging failed for action '{action}': {e}", exc_info=True)
            return None

        if entry.category == Category.SECURITY and entry.severity in self.config.notify_severities:
            self._schedule_notify(entry)
        return entry

    def _schedule_notify(self, entry: LogEntry) -> None:
        if self._notifier is None:
            return
        task = asyncio.get_running_loop().create_task(self._notify(entry))
        self._notify_tasks.add(task)
        task.add_done_callback(self._notify_tasks.discard)

    async def _notify(self, entry: LogEntry) -> None:
        try:
            await self._notifier.notify(entry)
        except Exception as e:
            self._notify_failures += 1
            logger.error(f"Failed to send alert for audit entry {entry.id}: {e}")

    async def wait_notifications(self) -> None:
        """Wait until every pending alert has been delivered or has failed."""
        while self._notify_tasks:
            await asyncio.gather(*list(self._notify_tasks), return_exceptions=True)

    async def log_auth(
        self, action: str, actor_id: str, actor_role: str, details: dict[str, Any] | None = None
    ) -> LogEntry | None:
        return await self.log(action, actor_id, actor_role, Category.AUTH, details=details)

    async def log_security(
        self, action: str, actor_id: str, actor_role: str, details: dict[str, Any] | None = None
    ) -> LogEntry | None:
        return await self.log(action, actor_id, actor_role, Category.SECURITY, details=details)

    async def log_data(
        self,
        action: str,
        actor_id: str,
        actor_role: str,
        target_id: str | None = None,
        target_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> LogEntry | None:
        return await self.log(
            action,
            actor_id,
            actor_role,
            Category.DATA,
            target_id=target_id,
            target_type=target_type,
            details=details,
        )

    async def log_user_action(
        self, action: str, actor_id: str, actor_role: str, details: dict[str, Any] | None = None
    ) -> LogEntry | None:
        return await self.log(action, actor_id, actor_role, Category.USER_ACTION, details=details)

    async def log_system(self, action: str, details: dict[str, Any] | None = None) -> LogEntry | None:
        """System events are attributed to the ``system`` actor and role."""
        return await self.log(action, SYSTEM_ACTOR, SYSTEM_ACTOR, Category.SYSTEM, details=details)


__all__ = ["AuditLogger"]
