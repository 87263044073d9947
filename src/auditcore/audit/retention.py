# src/auditcore/audit/retention.py
"""
Retention cleanup for stored audit entries.

Entries strictly older than the horizon are deleted in batches no larger
than ``delete_batch_size`` so a single delete never exceeds what the store
accepts in one call.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from ..config import AuditLogConfig
from ..exceptions import TransientStoreError
from ..storage.abstraction import QueryCondition, QueryOperator, chunk_list, execute_with_retry
from ..storage.base import BaseDocumentStore

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Deletes audit entries older than a retention horizon."""

    def __init__(
        self,
        store: BaseDocumentStore,
        config: AuditLogConfig | None = None,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
    ):
        self.config = config or AuditLogConfig()
        self._store = store
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay

    async def cleanup(self, retention_days: int | None = None, now: datetime | None = None) -> int:
        """
        Delete events older than the retention period.

        Args:
            retention_days: Override configured retention (0 = no cleanup).
            now: Reference time; defaults to the current UTC time.

        Returns:
            Number of entries deleted. Store failures stop the sweep and are
            logged; the count deleted so far is still returned.
        """
        days = retention_days if retention_days is not None else self.config.retention_days
        if days <= 0:
            logger.debug("Audit retention disabled; skipping cleanup")
            return 0

        cutoff = (now or datetime.now(UTC)) - timedelta(days=days)
        collection = self.config.collection

        try:
            old_records = await self._store.query(
                collection, [QueryCondition("timestamp", QueryOperator.LT, cutoff)]
            )
        except Exception as e:
            logger.error(f"Failed to find audit entries older than {cutoff.isoformat()}: {e}")
            return 0

        if not old_records:
            return 0

        ids = [record["id"] for record in old_records if "id" in record]
        deleted = 0
        for batch in chunk_list(ids, self.config.delete_batch_size):
            try:
                deleted += await execute_with_retry(
                    lambda batch=batch: self._store.batch_delete(collection, batch),
                    max_retries=self._max_retries,
                    base_delay=self._retry_base_delay,
                    retryable_exceptions=(TransientStoreError,),
                )
            except Exception as e:
                logger.error(f"Failed to cleanup old audit logs after {deleted} deletions: {e}")
                break

        if deleted > 0:
            logger.info(f"Cleaned up {deleted} audit entries older than {days} days")
        return deleted
