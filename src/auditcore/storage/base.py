# src/auditcore/storage/base.py
"""
Abstract Base Class for document store backends.

This module defines the interface that the audit pipeline and the migration
engine use to reach persistent storage. Backends store schemaless JSON
documents grouped into named collections; every document carries a string
``id`` field.
"""

import abc
from typing import Any, Dict, List, Optional, Sequence

from .abstraction import QueryCondition


class BaseDocumentStore(abc.ABC):
    """
    Abstract Base Class for collection-oriented document stores.

    Implementations may add latency and may fail transiently; they signal
    retryable failures with ``TransientStoreError`` and everything else with
    ``StorageError``.
    """

    async def initialize(self) -> None:
        """Prepare backend resources (directories, connections). Default: nothing."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing."""

    @abc.abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a single document by id.

        Returns:
            A copy of the document, or None if it does not exist.
        """
        pass

    @abc.abstractmethod
    async def query(
        self,
        collection: str,
        conditions: Sequence[QueryCondition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return documents matching every condition.

        Args:
            collection: Collection to read.
            conditions: Conjunctive filters.
            order_by: Field to sort by; insertion order when omitted.
            descending: Sort direction for ``order_by``.
            limit: Maximum documents to return, applied after sorting.
        """
        pass

    @abc.abstractmethod
    async def batch_write(self, collection: str, records: Sequence[Dict[str, Any]]) -> None:
        """
        Upsert documents by their ``id`` field as one all-or-nothing batch.

        Documents without an id are assigned one by the backend.
        """
        pass

    @abc.abstractmethod
    async def batch_delete(self, collection: str, ids: Sequence[str]) -> int:
        """
        Delete documents by id as one batch.

        Returns:
            Number of documents actually removed; unknown ids are ignored.
        """
        pass

    async def count(self, collection: str, conditions: Sequence[QueryCondition] = ()) -> int:
        """Count documents matching the conditions."""
        return len(await self.query(collection, conditions))
