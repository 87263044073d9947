# src/auditcore/migration/runner.py
"""
Sequential migration runner.

Applies every registered migration in registration order, stopping at the
first failure, and rolls them back in reverse. Only one run or rollback is
in progress at a time per runner.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..exceptions import MigrationError
from ..logging_config import log_display
from ..models import Migration
from .catalog import MigrationCatalog
from .engine import BatchTransformEngine

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    Drives a :class:`MigrationCatalog` against a :class:`BatchTransformEngine`.

    Usage:
        runner = MigrationRunner(engine)
        register_builtin_migrations(runner)
        await runner.run_all()
    """

    def __init__(self, engine: BatchTransformEngine, catalog: MigrationCatalog | None = None):
        self.engine = engine
        self.catalog = catalog or MigrationCatalog()
        self._lock = asyncio.Lock()
        self._applied: list[str] = []

    def register(self, migration: Migration) -> None:
        self.catalog.register(migration)

    def create_migration(
        self,
        name: str,
        version: str,
        up: Callable[[], Awaitable[None]],
        down: Callable[[], Awaitable[None]],
    ) -> Migration:
        """Build a migration and register it in one step."""
        migration = Migration(name=name, version=version, up=up, down=down)
        self.register(migration)
        return migration

    @property
    def applied(self) -> list[str]:
        return list(self._applied)

    async def run_all(self) -> list[str]:
        """
        Run every migration's ``up`` in registration order.

        Returns:
            Names of the migrations applied by this call.

        Raises:
            MigrationError: The first failing migration stops the run.
        """
        async with self._lock:
            ran: list[str] = []
            log_display(logger, logging.INFO, f"Running {len(self.catalog)} migrations...")
            for migration in self.catalog:
                start = time.perf_counter()
                log_display(logger, logging.INFO, f"Running migration: {migration.name} v{migration.version}")
                try:
                    await migration.up()
                except MigrationError:
                    logger.error(f"Migration {migration.name} failed; stopping")
                    raise
                except Exception as e:
                    logger.error(f"Migration {migration.name} failed; stopping: {e}")
                    raise MigrationError(migration.name, str(e)) from e
                elapsed_ms = (time.perf_counter() - start) * 1000
                log_display(logger, logging.INFO, f"Migration {migration.name} completed in {elapsed_ms:.0f}ms")
                ran.append(migration.name)
                if migration.name not in self._applied:
                    self._applied.append(migration.name)
            log_display(logger, logging.INFO, "All migrations completed successfully")
            return ran

    async def rollback_all(self) -> list[str]:
        """
        Run every migration's ``down`` in reverse registration order.

        Raises:
            MigrationError: The first failing rollback stops the walk.
        """
        async with self._lock:
            rolled_back: list[str] = []
            log_display(logger, logging.INFO, "Rolling back all migrations...")
            for migration in self.catalog.reversed():
                log_display(logger, logging.INFO, f"Rolling back migration: {migration.name}")
                try:
                    await migration.down()
                except MigrationError:
                    logger.error(f"Rollback of {migration.name} failed; stopping")
                    raise
                except Exception as e:
                    logger.error(f"Rollback of {migration.name} failed; stopping: {e}")
                    raise MigrationError(migration.name, f"rollback failed: {e}") from e
                rolled_back.append(migration.name)
                if migration.name in self._applied:
                    self._applied.remove(migration.name)
            log_display(logger, logging.INFO, "All migrations rolled back successfully")
            return rolled_back

    def status(self) -> dict[str, Any]:
        """Registered and applied migrations plus engine history and statistics."""
        return {
            "registered": [
                {"name": m.name, "version": m.version, "applied": m.name in self._applied}
                for m in self.catalog
            ],
            "history": {
                key: result.model_dump(mode="json")
                for key, result in self.engine.history().items()
            },
            "stats": self.engine.stats().model_dump(mode="json"),
        }
