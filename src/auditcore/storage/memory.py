# src/auditcore/storage/memory.py
"""
In-memory document store.

Collections live in process memory and are lost on exit. Used for tests,
dry runs and as the default backend of a freshly built ``AuditCore``.
"""

import asyncio
import copy
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from .abstraction import QueryCondition, sort_key
from .base import BaseDocumentStore

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(BaseDocumentStore):
    """
    Dict-backed document store.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state by accident. An ``asyncio.Lock`` keeps batch writes
    and deletes atomic with respect to each other.
    """

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        for collection, records in (initial or {}).items():
            docs = self._collections.setdefault(collection, {})
            for record in records:
                doc = copy.deepcopy(record)
                doc.setdefault("id", uuid.uuid4().hex)
                docs[str(doc["id"])] = doc

    def collection_names(self) -> List[str]:
        return sorted(self._collections)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(
        self,
        collection: str,
        conditions: Sequence[QueryCondition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        docs = [
            doc for doc in self._collections.get(collection, {}).values()
            if all(cond.matches(doc) for cond in conditions)
        ]
        if order_by:
            docs.sort(key=sort_key(order_by), reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def batch_write(self, collection: str, records: Sequence[Dict[str, Any]]) -> None:
        async with self._lock:
            docs = self._collections.setdefault(collection, {})
            for record in records:
                doc = copy.deepcopy(dict(record))
                doc.setdefault("id", uuid.uuid4().hex)
                docs[str(doc["id"])] = doc
        logger.debug(f"Wrote {len(records)} documents to '{collection}'")

    async def batch_delete(self, collection: str, ids: Sequence[str]) -> int:
        async with self._lock:
            docs = self._collections.get(collection, {})
            removed = 0
            for doc_id in ids:
                if docs.pop(doc_id, None) is not None:
                    removed += 1
        logger.debug(f"Deleted {removed} documents from '{collection}'")
        return removed
