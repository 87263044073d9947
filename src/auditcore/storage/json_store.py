# src/auditcore/storage/json_store.py
"""
JSON file-based document store.

Each collection is stored as one JSON file (an object mapping document id to
document) inside the configured directory. Writes go to a temporary file
that is then renamed over the original, so a crash mid-write never leaves a
half-written collection behind. It uses aiofiles for asynchronous file
operations.
"""

import asyncio
import json
import logging
import os
import pathlib
import re
import uuid
from typing import Any, Dict, List, Optional, Sequence

import aiofiles
import aiofiles.os as aios

from ..exceptions import ConfigError, StorageError, TransientStoreError
from .abstraction import QueryCondition, sort_key
from .base import BaseDocumentStore

logger = logging.getLogger(__name__)


class JsonDocumentStore(BaseDocumentStore):
    """
    Manages persistence of document collections in JSON files.

    File operations are performed asynchronously and serialized per store
    instance with an ``asyncio.Lock``.
    """

    _file_extension: str = ".json"

    def __init__(self, path: str):
        if not path:
            raise ConfigError("JSON document store 'path' not specified in configuration.")
        self._storage_dir = pathlib.Path(os.path.expanduser(path))
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """
        Create the storage directory if it doesn't exist.

        Raises:
            StorageError: If the directory cannot be created.
        """
        try:
            await aios.makedirs(self._storage_dir, exist_ok=True)
            logger.info(f"JSON document store initialized at: {self._storage_dir.resolve()}")
        except OSError as e:
            logger.error(f"Failed to create JSON store directory {self._storage_dir}: {e}")
            raise StorageError(f"Could not create storage directory: {e}")

    def _get_collection_path(self, collection: str) -> pathlib.Path:
        """Constructs the file path for a collection, sanitizing the name."""
        sane_filename = re.sub(r'[^\w\-.]', '_', collection)
        return self._storage_dir / f"{sane_filename}{self._file_extension}"

    async def _load(self, collection: str) -> Dict[str, Dict[str, Any]]:
        path = self._get_collection_path(collection)
        if not await aios.path.exists(path):
            return {}
        try:
            async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
                content = await f.read()
            return json.loads(content) if content.strip() else {}
        except json.JSONDecodeError as e:
            logger.error(f"Collection file {path} is corrupted: {e}")
            raise StorageError(f"Corrupted collection file for '{collection}': {e}")
        except OSError as e:
            raise TransientStoreError("read", f"{path}: {e}")

    async def _save(self, collection: str, docs: Dict[str, Dict[str, Any]]) -> None:
        path = self._get_collection_path(collection)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            payload = json.dumps(docs, indent=2, default=str)
        except TypeError as e:
            raise StorageError(f"Failed to serialize collection '{collection}': {e}")
        try:
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(payload)
            await aios.replace(tmp_path, path)
        except OSError as e:
            raise TransientStoreError("write", f"{path}: {e}")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            docs = await self._load(collection)
        return docs.get(doc_id)

    async def query(
        self,
        collection: str,
        conditions: Sequence[QueryCondition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        async with self._lock:
            docs = await self._load(collection)
        results = [doc for doc in docs.values() if all(c.matches(doc) for c in conditions)]
        if order_by:
            results.sort(key=sort_key(order_by), reverse=descending)
        if limit is not None:
            results = results[:limit]
        return results

    async def batch_write(self, collection: str, records: Sequence[Dict[str, Any]]) -> None:
        async with self._lock:
            docs = await self._load(collection)
            for record in records:
                doc = dict(record)
                doc.setdefault("id", uuid.uuid4().hex)
                docs[str(doc["id"])] = doc
            await self._save(collection, docs)
        logger.debug(f"Wrote {len(records)} documents to {self._get_collection_path(collection)}")

    async def batch_delete(self, collection: str, ids: Sequence[str]) -> int:
        async with self._lock:
            docs = await self._load(collection)
            removed = 0
            for doc_id in ids:
                if docs.pop(doc_id, None) is not None:
                    removed += 1
            if removed:
                await self._save(collection, docs)
        return removed
