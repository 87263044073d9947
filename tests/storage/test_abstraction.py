# tests/storage/test_abstraction.py
"""
Tests for the storage abstraction layer.

Tests cover:
- QueryCondition: operator evaluation and timestamp normalization
- sort_key: ordering with missing fields
- chunk_list / execute_with_retry: batching and backoff utilities
"""

from datetime import UTC, datetime, timedelta

import pytest

from auditcore.exceptions import StorageError, TransientStoreError
from auditcore.models import Category
from auditcore.storage.abstraction import (
    QueryCondition,
    QueryOperator,
    chunk_list,
    execute_with_retry,
    sort_key,
)

# =============================================================================
# QUERY CONDITION TESTS
# =============================================================================


class TestQueryCondition:
    """Tests for QueryCondition.matches."""

    def test_eq_and_ne(self):
        record = {"actor_id": "u1"}
        assert QueryCondition("actor_id", QueryOperator.EQ, "u1").matches(record)
        assert not QueryCondition("actor_id", QueryOperator.NE, "u1").matches(record)

    def test_missing_field_never_matches(self):
        assert not QueryCondition("actor_id", QueryOperator.NE, "u1").matches({})

    def test_enum_values_unwrapped(self):
        record = {"category": "security"}
        assert QueryCondition("category", QueryOperator.EQ, Category.SECURITY).matches(record)

    def test_in_operator(self):
        cond = QueryCondition("severity", QueryOperator.IN, ["high", "critical"])
        assert cond.matches({"severity": "high"})
        assert not cond.matches({"severity": "low"})

    def test_iso_string_compared_with_datetime(self):
        cutoff = datetime(2026, 1, 1, tzinfo=UTC)
        older = {"timestamp": (cutoff - timedelta(seconds=1)).isoformat()}
        exact = {"timestamp": cutoff.isoformat().replace("+00:00", "Z")}
        assert QueryCondition("timestamp", QueryOperator.LT, cutoff).matches(older)
        assert not QueryCondition("timestamp", QueryOperator.LT, cutoff).matches(exact)
        assert QueryCondition("timestamp", QueryOperator.LE, cutoff).matches(exact)

    def test_naive_datetime_filter_treated_as_utc(self):
        stored = {"timestamp": datetime(2026, 1, 1, 12, tzinfo=UTC).isoformat()}
        start = datetime(2026, 1, 1, 11)
        assert QueryCondition("timestamp", QueryOperator.GE, start).matches(stored)
        assert not QueryCondition("timestamp", QueryOperator.LT, start).matches(stored)

    def test_naive_stored_timestamp_treated_as_utc(self):
        stored = {"timestamp": "2026-01-01T12:00:00"}
        cutoff = datetime(2026, 1, 1, 13, tzinfo=UTC)
        assert QueryCondition("timestamp", QueryOperator.LT, cutoff).matches(stored)
        assert not QueryCondition("timestamp", QueryOperator.GT, cutoff).matches(stored)

    def test_numeric_comparisons(self):
        record = {"n": 5}
        assert QueryCondition("n", QueryOperator.GT, 4).matches(record)
        assert QueryCondition("n", QueryOperator.GE, 5).matches(record)
        assert not QueryCondition("n", QueryOperator.LT, 5).matches(record)

    def test_incomparable_types_do_not_match(self):
        assert not QueryCondition("n", QueryOperator.LT, 5).matches({"n": "abc"})


class TestSortKey:
    def test_missing_fields_sort_first(self):
        records = [{"t": "2026-01-02T00:00:00Z"}, {}, {"t": "2026-01-01T00:00:00Z"}]
        ordered = sorted(records, key=sort_key("t"))
        assert ordered[0] == {}
        assert ordered[1]["t"].startswith("2026-01-01")

    def test_mixed_naive_and_aware_timestamps(self):
        records = [
            {"t": "2026-01-01T12:00:00+00:00"},
            {"t": "2026-01-01T11:00:00"},
            {"t": "2026-01-01T13:00:00Z"},
        ]
        ordered = sorted(records, key=sort_key("t"))
        assert [r["t"][11:13] for r in ordered] == ["11", "12", "13"]


# =============================================================================
# UTILITY FUNCTION TESTS
# =============================================================================


class TestChunkList:
    """Tests for chunk_list."""

    def test_even_split(self):
        assert chunk_list([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_remainder(self):
        chunks = chunk_list(list(range(250)), 100)
        assert [len(c) for c in chunks] == [100, 100, 50]

    def test_empty(self):
        assert chunk_list([], 10) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunk_list([1], 0)


@pytest.mark.asyncio
class TestExecuteWithRetry:
    """Tests for execute_with_retry."""

    async def test_success_first_try(self):
        async def op():
            return "ok"

        assert await execute_with_retry(op, max_retries=2, base_delay=0) == "ok"

    async def test_retries_transient_failures(self):
        calls = []

        async def op():
            calls.append(1)
            if len(calls) < 3:
                raise TransientStoreError("write", "flaky")
            return len(calls)

        assert await execute_with_retry(op, max_retries=3, base_delay=0) == 3

    async def test_raises_after_exhausting_retries(self):
        calls = []

        async def op():
            calls.append(1)
            raise TransientStoreError("write", "down")

        with pytest.raises(TransientStoreError):
            await execute_with_retry(op, max_retries=2, base_delay=0)
        assert len(calls) == 3

    async def test_non_retryable_propagates_immediately(self):
        calls = []

        async def op():
            calls.append(1)
            raise StorageError("corrupted")

        with pytest.raises(StorageError):
            await execute_with_retry(op, max_retries=5, base_delay=0)
        assert len(calls) == 1
