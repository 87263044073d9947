# tests/audit/test_query_and_retention.py
"""
Tests for AuditQueryService and RetentionSweeper.
"""

from datetime import UTC, datetime, timedelta

import pytest

from auditcore.audit import AuditQueryService, RetentionSweeper
from auditcore.config import AuditLogConfig
from auditcore.models import Category, LogEntry, LogQuery, Severity

NOW = datetime.now(UTC)


def entry(action, actor="u1", category=Category.USER_ACTION, severity=Severity.LOW, age=timedelta()):
    return LogEntry(
        action=action,
        actor_id=actor,
        actor_role="learner",
        category=category,
        severity=severity,
        timestamp=NOW - age,
    )


async def seed(store, entries, collection="audit-logs"):
    await store.batch_write(collection, [e.to_record() for e in entries])


# =============================================================================
# QUERY TESTS
# =============================================================================


@pytest.mark.asyncio
class TestAuditQueryService:
    """Tests for filtered queries."""

    async def test_newest_first(self, memory_store):
        await seed(
            memory_store,
            [
                entry("OLD", age=timedelta(hours=2)),
                entry("NEW", age=timedelta(minutes=1)),
                entry("MID", age=timedelta(hours=1)),
            ],
        )
        results = await AuditQueryService(memory_store).query()
        assert [e.action for e in results] == ["NEW", "MID", "OLD"]

    async def test_naive_window_is_read_as_utc(self, memory_store):
        await seed(memory_store, [entry("RECENT"), entry("STALE", age=timedelta(days=3))])
        naive_start = (NOW - timedelta(days=1)).replace(tzinfo=None)
        results = await AuditQueryService(memory_store).query(LogQuery(start=naive_start))
        assert [e.action for e in results] == ["RECENT"]

    async def test_filters_are_conjunctive(self, memory_store):
        await seed(
            memory_store,
            [
                entry("LOGIN_FAILED", "u1", Category.AUTH, Severity.HIGH),
                entry("LOGIN_FAILED", "u2", Category.AUTH, Severity.HIGH),
                entry("LOGOUT", "u1", Category.AUTH, Severity.MEDIUM),
            ],
        )
        service = AuditQueryService(memory_store)
        results = await service.query(LogQuery(actor_id="u1", severity=Severity.HIGH))
        assert len(results) == 1
        assert results[0].action == "LOGIN_FAILED"
        assert results[0].actor_id == "u1"

    async def test_time_range(self, memory_store):
        await seed(
            memory_store,
            [entry("A", age=timedelta(days=3)), entry("B", age=timedelta(days=1)), entry("C")],
        )
        results = await AuditQueryService(memory_store).query(
            LogQuery(start=NOW - timedelta(days=2), end=NOW - timedelta(hours=1))
        )
        assert [e.action for e in results] == ["B"]

    async def test_limit(self, memory_store):
        await seed(memory_store, [entry(str(i), age=timedelta(minutes=i)) for i in range(5)])
        results = await AuditQueryService(memory_store).query(LogQuery(limit=2))
        assert [e.action for e in results] == ["0", "1"]

    async def test_security_events_and_user_activity(self, memory_store):
        await seed(
            memory_store,
            [
                entry("XSS_ATTACK", "u1", Category.SECURITY, Severity.CRITICAL),
                entry("PROFILE_VIEWED", "u2"),
            ],
        )
        service = AuditQueryService(memory_store)
        assert [e.action for e in await service.security_events()] == ["XSS_ATTACK"]
        assert [e.action for e in await service.user_activity("u2")] == ["PROFILE_VIEWED"]

    async def test_store_failure_returns_empty(self, flaky_store):
        await seed(flaky_store, [entry("A")])
        flaky_store.fail_queries = True
        assert await AuditQueryService(flaky_store).query() == []

    async def test_malformed_records_skipped(self, memory_store):
        await seed(memory_store, [entry("GOOD")])
        await memory_store.batch_write("audit-logs", [{"id": "bad", "timestamp": NOW.isoformat()}])
        results = await AuditQueryService(memory_store).query()
        assert [e.action for e in results] == ["GOOD"]


@pytest.mark.asyncio
class TestAuditStats:
    """Tests for aggregate statistics."""

    async def test_counts_and_top_actors(self, memory_store):
        await seed(
            memory_store,
            [
                entry("LOGIN_FAILED", "bob", Category.AUTH, Severity.HIGH),
                entry("LOGIN_FAILED", "bob", Category.AUTH, Severity.HIGH),
                entry("LOGIN_FAILED", "alice", Category.AUTH, Severity.HIGH),
                entry("LOGOUT", "carol", Category.AUTH, Severity.MEDIUM),
                entry("SERVICE_RESTART", "system", Category.SYSTEM, Severity.MEDIUM),
                entry("ANCIENT", "bob", age=timedelta(days=60)),
            ],
        )
        stats = await AuditQueryService(memory_store).stats(window_days=30)
        assert stats.total_logs == 5
        assert stats.by_category == {"auth": 4, "system": 1}
        assert stats.by_severity == {"high": 3, "medium": 2}
        assert stats.by_action["LOGIN_FAILED"] == 3
        # system is excluded; ties break on actor id
        assert [(a.actor_id, a.count) for a in stats.top_actors] == [
            ("bob", 2),
            ("alice", 1),
            ("carol", 1),
        ]

    async def test_top_actors_capped_at_ten(self, memory_store):
        await seed(memory_store, [entry("A", f"user_{i:02d}") for i in range(15)])
        stats = await AuditQueryService(memory_store).stats()
        assert len(stats.top_actors) == 10
        assert stats.top_actors[0].actor_id == "user_00"

    async def test_scan_is_capped(self, memory_store):
        await seed(memory_store, [entry(str(i), age=timedelta(minutes=i)) for i in range(5)])
        service = AuditQueryService(memory_store, AuditLogConfig(stats_query_limit=3))
        assert (await service.stats()).total_logs == 3

    async def test_store_failure_returns_empty_stats(self, flaky_store):
        flaky_store.fail_queries = True
        stats = await AuditQueryService(flaky_store).stats()
        assert stats.total_logs == 0
        assert stats.top_actors == []


# =============================================================================
# RETENTION TESTS
# =============================================================================


@pytest.mark.asyncio
class TestRetentionSweeper:
    """Tests for retention cleanup."""

    async def test_deletes_only_strictly_older(self, memory_store):
        now = datetime(2026, 6, 1, tzinfo=UTC)
        boundary = now - timedelta(days=90)
        old = LogEntry(action="OLD", actor_id="u", actor_role="r", category=Category.DATA,
                       timestamp=boundary - timedelta(seconds=1))
        exact = LogEntry(action="EXACT", actor_id="u", actor_role="r", category=Category.DATA,
                         timestamp=boundary)
        fresh = LogEntry(action="FRESH", actor_id="u", actor_role="r", category=Category.DATA,
                         timestamp=now)
        await seed(memory_store, [old, exact, fresh])

        deleted = await RetentionSweeper(memory_store).cleanup(now=now)
        assert deleted == 1
        remaining = {d["action"] for d in await memory_store.query("audit-logs")}
        assert remaining == {"EXACT", "FRESH"}

    async def test_deletes_in_batches(self, flaky_store):
        await seed(flaky_store, [entry(str(i), age=timedelta(days=10)) for i in range(7)])
        sweeper = RetentionSweeper(flaky_store, AuditLogConfig(delete_batch_size=3))
        assert await sweeper.cleanup(retention_days=5) == 7
        assert [len(ids) for ids in flaky_store.delete_calls] == [3, 3, 1]

    async def test_zero_days_is_noop(self, flaky_store):
        await seed(flaky_store, [entry("A", age=timedelta(days=400))])
        assert await RetentionSweeper(flaky_store).cleanup(retention_days=0) == 0
        assert flaky_store.delete_calls == []

    async def test_transient_delete_failure_retried(self, flaky_store):
        await seed(flaky_store, [entry("A", age=timedelta(days=100))])
        flaky_store.fail_next_deletes = 1
        sweeper = RetentionSweeper(flaky_store, max_retries=2, retry_base_delay=0)
        assert await sweeper.cleanup() == 1

    async def test_persistent_failure_returns_partial_count(self, flaky_store):
        await seed(flaky_store, [entry(str(i), age=timedelta(days=100)) for i in range(4)])
        sweeper = RetentionSweeper(
            flaky_store, AuditLogConfig(delete_batch_size=2), max_retries=0, retry_base_delay=0
        )
        original = flaky_store.batch_delete

        async def fail_second(collection, ids):
            if len(flaky_store.delete_calls) >= 1:
                flaky_store.fail_next_deletes = 1
            return await original(collection, ids)

        flaky_store.batch_delete = fail_second
        assert await sweeper.cleanup() == 2
        assert await flaky_store.count("audit-logs") == 2

    async def test_query_failure_returns_zero(self, flaky_store):
        flaky_store.fail_queries = True
        assert await RetentionSweeper(flaky_store).cleanup() == 0
