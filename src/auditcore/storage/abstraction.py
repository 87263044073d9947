# src/auditcore/storage/abstraction.py
"""
Storage Abstraction Layer for auditcore.

Backend-agnostic building blocks shared by every document store and by the
components that write to them:

- QueryOperator / QueryCondition: declarative filters evaluated by backends
- chunk_list: fixed-size partitioning for batched writes and deletes
- execute_with_retry: exponential backoff for transient store failures

Usage:
    conditions = [
        QueryCondition("category", QueryOperator.EQ, "security"),
        QueryCondition("timestamp", QueryOperator.LT, cutoff),
    ]
    records = await store.query("audit-logs", conditions, order_by="timestamp")

    for ids in chunk_list(record_ids, 500):
        await execute_with_retry(lambda: store.batch_delete("audit-logs", ids))
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Coroutine, List, Optional, Tuple, TypeVar

from ..exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# QUERY CONDITIONS
# =============================================================================

class QueryOperator(str, Enum):
    """Comparison operators supported by every backend."""
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    IN = "in"


def _comparable(value: Any) -> Any:
    """
    Normalize values so ISO timestamps and datetimes compare correctly.

    Naive datetimes, parsed or passed in, are taken to be UTC.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class QueryCondition:
    """A single ``field <op> value`` filter."""
    field: str
    operator: QueryOperator
    value: Any

    def matches(self, record: dict) -> bool:
        """Evaluate the condition against a stored record. Missing fields never match."""
        if self.field not in record:
            return False
        actual = record[self.field]

        if self.operator == QueryOperator.IN:
            expected = [v.value if isinstance(v, Enum) else v for v in self.value]
            return actual in expected

        expected = self.value.value if isinstance(self.value, Enum) else self.value
        if self.operator == QueryOperator.EQ:
            return actual == expected
        if self.operator == QueryOperator.NE:
            return actual != expected

        left, right = _comparable(actual), _comparable(expected)
        try:
            if self.operator == QueryOperator.LT:
                return left < right
            if self.operator == QueryOperator.LE:
                return left <= right
            if self.operator == QueryOperator.GT:
                return left > right
            if self.operator == QueryOperator.GE:
                return left >= right
        except TypeError:
            return False
        raise ValueError(f"Unsupported operator: {self.operator}")


def sort_key(field: str) -> Callable[[dict], Any]:
    """Sort key for ``order_by``; records missing the field sort first."""
    def _key(record: dict) -> Tuple[int, Any]:
        if field not in record or record[field] is None:
            return (0, "")
        return (1, _comparable(record[field]))
    return _key


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def chunk_list(items: List[T], chunk_size: int) -> List[List[T]]:
    """
    Split a list into chunks of specified size.

    Args:
        items: List to split
        chunk_size: Maximum size of each chunk

    Returns:
        List of chunks
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


async def execute_with_retry(
    operation: Callable[[], Coroutine[Any, Any, T]],
    max_retries: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    retryable_exceptions: Tuple[type, ...] = (TransientStoreError,)
) -> T:
    """
    Execute an async operation with exponential backoff retry.

    Args:
        operation: Async callable to execute
        max_retries: Maximum number of retries
        base_delay: Initial delay between retries
        max_delay: Maximum delay between retries
        retryable_exceptions: Exceptions that trigger retry

    Returns:
        Result of the operation

    Raises:
        Last exception if all retries fail
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except retryable_exceptions as e:
            last_exception = e
            if attempt < max_retries:
                # Exponential backoff with jitter
                delay = min(base_delay * (2 ** attempt), max_delay)
                delay *= (0.5 + random.random())
                logger.warning(
                    f"Store operation failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)

    raise last_exception  # type: ignore


__all__ = [
    "QueryCondition",
    "QueryOperator",
    "chunk_list",
    "execute_with_retry",
    "sort_key",
]
