# tests/conftest.py
"""
Shared fixtures for auditcore tests.

Provides an in-memory document store and ``FlakyStore``, a wrapper whose
writes, deletes and queries can be made to fail on demand so retry,
requeue and rollback paths can be exercised deterministically.
"""

from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from auditcore.config import AuditLogConfig, MigrationConfig
from auditcore.exceptions import TransientStoreError
from auditcore.storage import InMemoryDocumentStore, QueryCondition


class FlakyStore(InMemoryDocumentStore):
    """
    In-memory store with scripted failures.

    Attributes:
        fail_next_writes: Number of upcoming ``batch_write`` calls that raise.
        failing_write_calls: 1-based ``batch_write`` call numbers that raise.
        fail_next_deletes: Number of upcoming ``batch_delete`` calls that raise.
        fail_queries: When True every ``query`` raises.
    """

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(initial)
        self.fail_next_writes = 0
        self.failing_write_calls: Set[int] = set()
        self.fail_next_deletes = 0
        self.fail_queries = False
        self.write_calls: List[List[Dict[str, Any]]] = []
        self.delete_calls: List[List[str]] = []

    async def query(self, collection: str, conditions: Sequence[QueryCondition] = (), **kwargs):
        if self.fail_queries:
            raise TransientStoreError("query", "store unavailable")
        return await super().query(collection, conditions, **kwargs)

    async def batch_write(self, collection: str, records: Sequence[Dict[str, Any]]) -> None:
        self.write_calls.append(list(records))
        if len(self.write_calls) in self.failing_write_calls:
            raise TransientStoreError("batch_write", f"scripted failure on call {len(self.write_calls)}")
        if self.fail_next_writes > 0:
            self.fail_next_writes -= 1
            raise TransientStoreError("batch_write", "scripted failure")
        await super().batch_write(collection, records)

    async def batch_delete(self, collection: str, ids: Sequence[str]) -> int:
        self.delete_calls.append(list(ids))
        if self.fail_next_deletes > 0:
            self.fail_next_deletes -= 1
            raise TransientStoreError("batch_delete", "scripted failure")
        return await super().batch_delete(collection, ids)


@pytest.fixture
def memory_store():
    """Create an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def make_flaky_store():
    """Factory for FlakyStore instances seeded without counting as writes."""
    return FlakyStore


@pytest.fixture
def flaky_store():
    """Create an in-memory store with scripted failures."""
    return FlakyStore()


@pytest.fixture
def audit_config():
    """Audit configuration with a long interval so only explicit flushes run."""
    return AuditLogConfig(buffer_size=100, flush_interval_seconds=3600)


@pytest.fixture
def migration_config():
    """Migration configuration without retries or backoff delays."""
    return MigrationConfig(batch_size=100, retry_attempts=0, timeout_seconds=30)
