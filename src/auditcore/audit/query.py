# src/auditcore/audit/query.py
"""
Read side of the audit log: filtered queries and aggregate statistics.

Reads go straight to the document store and never look at the in-memory
buffer, so entries appear here only once they have been flushed. Store
failures are logged and turned into empty results; an audit dashboard that
cannot load must not take the calling page down with it.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime, timedelta

from ..config import AuditLogConfig
from ..models import SYSTEM_ACTOR, ActorCount, AuditStats, Category, LogEntry, LogQuery
from ..storage.abstraction import QueryCondition, QueryOperator
from ..storage.base import BaseDocumentStore

logger = logging.getLogger(__name__)

TOP_ACTORS = 10


def build_conditions(filters: LogQuery) -> list[QueryCondition]:
    """Translate a :class:`LogQuery` into store conditions (all must hold)."""
    conditions: list[QueryCondition] = []
    if filters.actor_id:
        conditions.append(QueryCondition("actor_id", QueryOperator.EQ, filters.actor_id))
    if filters.action:
        conditions.append(QueryCondition("action", QueryOperator.EQ, filters.action))
    if filters.category:
        conditions.append(QueryCondition("category", QueryOperator.EQ, filters.category.value))
    if filters.severity:
        conditions.append(QueryCondition("severity", QueryOperator.EQ, filters.severity.value))
    if filters.start:
        conditions.append(QueryCondition("timestamp", QueryOperator.GE, filters.start))
    if filters.end:
        conditions.append(QueryCondition("timestamp", QueryOperator.LE, filters.end))
    return conditions


class AuditQueryService:
    """Historical queries and statistics over stored audit entries."""

    def __init__(self, store: BaseDocumentStore, config: AuditLogConfig | None = None):
        self.config = config or AuditLogConfig()
        self._store = store

    async def query(self, filters: LogQuery | None = None) -> list[LogEntry]:
        """
        Return entries matching every set filter, newest first.

        Returns an empty list when nothing matches or the store is unreachable.
        """
        filters = filters or LogQuery()
        try:
            records = await self._store.query(
                self.config.collection,
                build_conditions(filters),
                order_by="timestamp",
                descending=True,
                limit=filters.limit,
            )
        except Exception as e:
            logger.error(f"Failed to query audit logs: {e}")
            return []

        entries = []
        for record in records:
            try:
                entries.append(LogEntry.from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping malformed audit record {record.get('id')}: {e}")
        return entries

    async def security_events(self, limit: int = 50) -> list[LogEntry]:
        return await self.query(LogQuery(category=Category.SECURITY, limit=limit))

    async def user_activity(self, actor_id: str, limit: int = 100) -> list[LogEntry]:
        return await self.query(LogQuery(actor_id=actor_id, limit=limit))

    async def stats(self, window_days: int = 30) -> AuditStats:
        """
        Aggregate entries from the last ``window_days`` days.

        Counts are grouped by category, severity and action. ``top_actors``
        lists up to ten non-system actors by event count, descending, with
        ties broken by actor id ascending. At most ``stats_query_limit``
        entries (the newest) are scanned.
        """
        start = datetime.now(UTC) - timedelta(days=window_days)
        try:
            records = await self._store.query(
                self.config.collection,
                [QueryCondition("timestamp", QueryOperator.GE, start)],
                order_by="timestamp",
                descending=True,
                limit=self.config.stats_query_limit,
            )
        except Exception as e:
            logger.error(f"Failed to get audit stats: {e}")
            return AuditStats()

        by_category: Counter[str] = Counter()
        by_severity: Counter[str] = Counter()
        by_action: Counter[str] = Counter()
        actor_counts: Counter[str] = Counter()

        for record in records:
            by_category[record.get("category", "unknown")] += 1
            by_severity[record.get("severity", "unknown")] += 1
            by_action[record.get("action", "unknown")] += 1
            actor_id = record.get("actor_id")
            if actor_id and actor_id != SYSTEM_ACTOR:
                actor_counts[actor_id] += 1

        ranked = sorted(actor_counts.items(), key=lambda item: (-item[1], item[0]))
        return AuditStats(
            total_logs=len(records),
            by_category=dict(by_category),
            by_severity=dict(by_severity),
            by_action=dict(by_action),
            top_actors=[ActorCount(actor_id=a, count=c) for a, c in ranked[:TOP_ACTORS]],
        )
