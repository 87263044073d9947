# src/auditcore/storage/__init__.py
"""
Document store backends for auditcore.

This package holds the store interface consumed by the audit pipeline and
the migration engine, plus the bundled in-memory and JSON-file backends.
"""

from ..config import StoreConfig
from ..exceptions import ConfigError
from .abstraction import QueryCondition, QueryOperator, chunk_list, execute_with_retry
from .base import BaseDocumentStore
from .json_store import JsonDocumentStore
from .memory import InMemoryDocumentStore


def create_store(config: StoreConfig) -> BaseDocumentStore:
    """
    Build the document store described by ``config``.

    Raises:
        ConfigError: For an unknown store type.
    """
    if config.type == "memory":
        return InMemoryDocumentStore()
    if config.type == "json":
        return JsonDocumentStore(config.path or "")
    raise ConfigError(f"Unsupported store type: {config.type}")


__all__ = [
    "BaseDocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "QueryCondition",
    "QueryOperator",
    "chunk_list",
    "create_store",
    "execute_with_retry",
]
