# src/auditcore/migration/engine.py
"""
Batch Transform Engine for data-shape migrations.

Moves records from a source collection to a target collection while
reshaping them with declarative :class:`DataTransformation` tables:

    fetch source (optionally filtered)
      -> partition into batches of ``batch_size``
      -> per record: read field, transform, validate (in declaration order)
      -> target-schema validator (pluggable)
      -> batched write of accepted records, with retry
      -> one MigrationResult for the whole run

Outcome accounting:
    processed  record written to the target
    skipped    record excluded by a field validation or the schema validator
    failed     a transform raised, or the batch write kept failing

Rollback:
    With ``rollback_on_error`` the engine stops at the first batch that
    produced a failure, invokes the rollback hook once and reports the run
    as unsuccessful. The default hook restores every target document the run
    touched to the state it had before the run (documents that did not exist
    are deleted), so same-collection migrations roll back safely.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config import MigrationConfig
from ..exceptions import (
    AuditCoreError,
    ErrorKind,
    TransformationError,
    TransientStoreError,
    ValidationRejected,
)
from ..models import DataTransformation, MigrationResult, MigrationStats
from ..storage.abstraction import QueryCondition, QueryOperator, chunk_list, execute_with_retry
from ..storage.base import BaseDocumentStore

logger = logging.getLogger(__name__)

SchemaValidator = Callable[[dict[str, Any], str], bool | Awaitable[bool]]
RollbackHook = Callable[[str], Awaitable[None] | None]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def accept_all(record: dict[str, Any], collection: str) -> bool:
    """Default target-schema validator."""
    return True


# =============================================================================
# ACCOUNTING
# =============================================================================


@dataclass
class BatchOutcome:
    """Counts produced by a single batch."""

    index: int
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    error_kinds: set[ErrorKind] = field(default_factory=set)


class _Tally:
    """Lock-protected accumulator so parallel batches can report safely."""

    def __init__(self, max_errors: int):
        self._lock = asyncio.Lock()
        self._max_errors = max_errors
        self.processed = 0
        self.skipped = 0
        self.failed = 0
        self.batches = 0
        self.errors: list[str] = []
        self.error_kinds: set[ErrorKind] = set()

    async def add(self, outcome: BatchOutcome) -> None:
        async with self._lock:
            self.batches += 1
            self.processed += outcome.processed
            self.skipped += outcome.skipped
            self.failed += outcome.failed
            self.error_kinds |= outcome.error_kinds
            self._extend_errors(outcome.errors)

    def fatal(self, message: str, kind: ErrorKind) -> None:
        self.error_kinds.add(kind)
        self._extend_errors([message])

    def _extend_errors(self, errors: list[str]) -> None:
        room = self._max_errors - len(self.errors)
        if room > 0:
            self.errors.extend(errors[:room])


class _TargetJournal:
    """Prior state of every target document a run overwrites."""

    def __init__(self):
        self._before: dict[str, dict[str, Any] | None] = {}

    async def capture(self, store: BaseDocumentStore, collection: str, ids: Sequence[str]) -> None:
        for doc_id in ids:
            if doc_id not in self._before:
                self._before[doc_id] = await store.get(collection, doc_id)

    async def restore(self, store: BaseDocumentStore, collection: str, batch_size: int) -> None:
        previous = [doc for doc in self._before.values() if doc is not None]
        created = [doc_id for doc_id, doc in self._before.items() if doc is None]
        for chunk in chunk_list(previous, batch_size):
            await store.batch_write(collection, chunk)
        for chunk in chunk_list(created, batch_size):
            await store.batch_delete(collection, chunk)
        logger.info(
            f"Rolled back '{collection}': restored {len(previous)} documents, "
            f"removed {len(created)}"
        )


# =============================================================================
# ENGINE
# =============================================================================


class BatchTransformEngine:
    """
    Executes data migrations against a document store and keeps their history.

    Usage:
        engine = BatchTransformEngine(store, MigrationConfig(batch_size=500))
        result = await engine.run_data_migration(
            "users_old",
            "users",
            [DataTransformation("role", "role", lambda v: ROLE_MAP.get(v, v))],
        )
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        config: MigrationConfig | None = None,
        schema_validator: SchemaValidator | None = None,
        rollback_hook: RollbackHook | None = None,
        retry_base_delay: float = 0.1,
    ):
        self.config = config or MigrationConfig()
        self._store = store
        self._schema_validator = schema_validator or accept_all
        self._rollback_hook = rollback_hook
        self._retry_base_delay = retry_base_delay
        self._history: dict[str, MigrationResult] = {}

    @property
    def store(self) -> BaseDocumentStore:
        return self._store

    def set_schema_validator(self, validator: SchemaValidator) -> None:
        self._schema_validator = validator

    def set_rollback_hook(self, hook: RollbackHook | None) -> None:
        self._rollback_hook = hook

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run_data_migration(
        self,
        source: str,
        target: str,
        transformations: Sequence[DataTransformation],
        filters: dict[str, Any] | None = None,
    ) -> MigrationResult:
        """
        Migrate ``source`` into ``target`` applying ``transformations``.

        Args:
            source: Source collection.
            target: Target collection (may equal ``source``).
            transformations: Applied to every record, in order.
            filters: Optional field equality filters on the source.

        Returns:
            Exactly one MigrationResult, also stored in history under
            ``"<source>_to_<target>"``. Failures are reported in the result,
            never raised.
        """
        start = time.perf_counter()
        tally = _Tally(self.config.max_errors)
        journal = (
            _TargetJournal()
            if self.config.rollback_on_error and self._rollback_hook is None
            else None
        )
        fatal = False

        logger.info(f"Starting data migration {source} -> {target}")
        try:
            async with asyncio.timeout(self.config.timeout_seconds):
                records = await self._fetch_source(source, filters)
                batches = chunk_list(records, self.config.batch_size)
                logger.debug(f"Fetched {len(records)} records from '{source}' in {len(batches)} batches")
                await self._run_batches(batches, target, transformations, tally, journal)
        except TimeoutError:
            fatal = True
            tally.fatal(
                f"Migration timed out after {self.config.timeout_seconds}s",
                ErrorKind.TRANSIENT_STORE,
            )
        except AuditCoreError as e:
            fatal = True
            tally.fatal(str(e), e.kind or ErrorKind.TRANSIENT_STORE)
        except Exception as e:
            fatal = True
            tally.fatal(f"Unexpected migration error: {e}", ErrorKind.TRANSIENT_STORE)
            logger.error(f"Data migration {source} -> {target} aborted: {e}", exc_info=True)

        failed_any = fatal or tally.failed > 0
        if failed_any and self.config.rollback_on_error:
            await self._rollback(target, journal, tally)

        result = MigrationResult(
            success=not failed_any,
            records_processed=tally.processed,
            records_skipped=tally.skipped,
            records_failed=tally.failed,
            errors=list(tally.errors),
            duration_ms=(time.perf_counter() - start) * 1000,
            batches=tally.batches,
            error_kinds=sorted(tally.error_kinds, key=lambda k: k.value),
        )
        self._history[f"{source}_to_{target}"] = result

        log = logger.info if result.success else logger.error
        log(
            f"Data migration {source} -> {target} {'completed' if result.success else 'failed'}: "
            f"{result.records_processed} processed, {result.records_skipped} skipped, "
            f"{result.records_failed} failed in {result.duration_ms:.0f}ms"
        )
        return result

    def history(self) -> dict[str, MigrationResult]:
        """Copy of the in-memory result history, keyed ``<source>_to_<target>``."""
        return dict(self._history)

    def stats(self) -> MigrationStats:
        results = list(self._history.values())
        if not results:
            return MigrationStats()
        return MigrationStats(
            total_migrations=len(results),
            successful_migrations=sum(1 for r in results if r.success),
            failed_migrations=sum(1 for r in results if not r.success),
            total_records_processed=sum(r.records_processed for r in results),
            average_duration_ms=sum(r.duration_ms for r in results) / len(results),
        )

    # -------------------------------------------------------------------------
    # Collection helpers used by migration ``down`` procedures
    # -------------------------------------------------------------------------

    async def purge_migrated(
        self, source: str, target: str, filters: dict[str, Any] | None = None
    ) -> int:
        """Delete from ``target`` every document whose id appears in ``source``."""
        records = await self._fetch_source(source, filters)
        ids = [str(r["id"]) for r in records if "id" in r]
        deleted = 0
        for chunk in chunk_list(ids, self.config.batch_size):
            deleted += await self._with_retry(lambda chunk=chunk: self._store.batch_delete(target, chunk))
        return deleted

    async def remove_field(self, collection: str, field_name: str) -> int:
        """Strip ``field_name`` from every document in ``collection`` that has it."""
        records = await self._with_retry(lambda: self._store.query(collection))
        updated = [
            {k: v for k, v in r.items() if k != field_name} for r in records if field_name in r
        ]
        # batch_write upserts whole documents, so the field is gone after the write
        for chunk in chunk_list(updated, self.config.batch_size):
            await self._with_retry(lambda chunk=chunk: self._store.batch_write(collection, chunk))
        return len(updated)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _with_retry(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        return await execute_with_retry(
            operation,
            max_retries=self.config.retry_attempts,
            base_delay=self._retry_base_delay,
            retryable_exceptions=(TransientStoreError,),
        )

    async def _fetch_source(self, source: str, filters: dict[str, Any] | None) -> list[dict[str, Any]]:
        conditions = [
            QueryCondition(name, QueryOperator.EQ, value) for name, value in (filters or {}).items()
        ]
        return await self._with_retry(lambda: self._store.query(source, conditions))

    async def _run_batches(
        self,
        batches: list[list[dict[str, Any]]],
        target: str,
        transformations: Sequence[DataTransformation],
        tally: _Tally,
        journal: _TargetJournal | None,
    ) -> None:
        stop_on_failure = self.config.rollback_on_error

        if self.config.max_concurrent_batches <= 1:
            for index, batch in enumerate(batches, start=1):
                outcome = await self._process_batch(index, batch, target, transformations, journal)
                await tally.add(outcome)
                if outcome.failed and stop_on_failure:
                    logger.warning(f"Batch {index}/{len(batches)} failed; stopping before remaining batches")
                    return
            return

        semaphore = asyncio.Semaphore(self.config.max_concurrent_batches)
        abort = asyncio.Event()

        async def run_one(index: int, batch: list[dict[str, Any]]) -> None:
            async with semaphore:
                if abort.is_set():
                    return
                outcome = await self._process_batch(index, batch, target, transformations, journal)
                await tally.add(outcome)
                if outcome.failed and stop_on_failure:
                    abort.set()

        await asyncio.gather(*(run_one(i, b) for i, b in enumerate(batches, start=1)))

    def _transform_record(
        self, record: dict[str, Any], transformations: Sequence[DataTransformation]
    ) -> dict[str, Any]:
        """
        Apply every transformation to a copy of ``record``.

        Source values are always read from the original record.

        Raises:
            TransformationError: A transform or validator raised.
            ValidationRejected: A validator returned False.
        """
        transformed = dict(record)
        for t in transformations:
            try:
                value = t.transform(record.get(t.source_field))
            except Exception as e:
                raise TransformationError(t.source_field, str(e)) from e

            if t.validation is not None:
                try:
                    valid = t.validation(value)
                except Exception as e:
                    raise TransformationError(t.target_field, f"validator raised: {e}") from e
                if not valid:
                    raise ValidationRejected(t.target_field, f"value {value!r} rejected")

            transformed[t.target_field] = value
        return transformed

    async def _process_batch(
        self,
        index: int,
        batch: list[dict[str, Any]],
        target: str,
        transformations: Sequence[DataTransformation],
        journal: _TargetJournal | None,
    ) -> BatchOutcome:
        outcome = BatchOutcome(index=index)
        accepted: list[dict[str, Any]] = []

        for record in batch:
            record_id = record.get("id", "<no id>")
            try:
                transformed = self._transform_record(record, transformations)
            except ValidationRejected as e:
                outcome.skipped += 1
                logger.debug(f"Skipping record {record_id}: {e}")
                continue
            except TransformationError as e:
                outcome.failed += 1
                outcome.error_kinds.add(ErrorKind.TRANSFORMATION)
                outcome.errors.append(f"Record {record_id}: {e}")
                continue

            if self.config.validate_data:
                try:
                    valid = await _maybe_await(self._schema_validator(transformed, target))
                except Exception as e:
                    outcome.failed += 1
                    outcome.error_kinds.add(ErrorKind.VALIDATION)
                    outcome.errors.append(f"Record {record_id}: schema validator raised: {e}")
                    continue
                if not valid:
                    outcome.skipped += 1
                    continue

            transformed.setdefault("id", uuid.uuid4().hex)
            accepted.append(transformed)

        if accepted:
            try:
                if journal is not None:
                    ids = [str(doc["id"]) for doc in accepted]
                    await self._with_retry(lambda: journal.capture(self._store, target, ids))
                await self._with_retry(lambda: self._store.batch_write(target, accepted))
                outcome.processed += len(accepted)
            except Exception as e:
                outcome.failed += len(accepted)
                outcome.error_kinds.add(ErrorKind.TRANSIENT_STORE)
                outcome.errors.append(f"Batch {index}: write to '{target}' failed: {e}")
                logger.error(f"Batch {index}: failed to write {len(accepted)} records to '{target}': {e}")

        return outcome

    async def _rollback(self, target: str, journal: _TargetJournal | None, tally: _Tally) -> None:
        logger.warning(f"Rolling back migration for {target}")
        try:
            if self._rollback_hook is not None:
                await _maybe_await(self._rollback_hook(target))
            elif journal is not None:
                await journal.restore(self._store, target, self.config.batch_size)
        except Exception as e:
            tally.fatal(f"Rollback of '{target}' failed: {e}", ErrorKind.TRANSIENT_STORE)
            logger.error(f"Rollback of '{target}' failed: {e}", exc_info=True)
