# src/auditcore/api.py
"""
Main API facade for the auditcore library.

``AuditCore`` is the composition root: it loads configuration, builds the
document store and wires the audit pipeline and the migration framework on
top of it. Producers receive the ``audit`` logger from here instead of
reaching for a process-wide singleton.
"""

from __future__ import annotations

import logging
from typing import Any

from .audit import AuditLogger, AuditQueryService, BaseNotifier, LoggingNotifier, RetentionSweeper
from .config import AuditCoreConfig
from .migration import BatchTransformEngine, MigrationRunner, register_builtin_migrations
from .storage import BaseDocumentStore, create_store

logger = logging.getLogger(__name__)


class AuditCore:
    """
    Wires every auditcore component around one document store.

    Usage:
        async with await AuditCore.create(config_file_path="auditcore.toml") as core:
            await core.audit.log_auth("LOGIN", "user_1", "learner")
            events = await core.queries.security_events()
    """

    def __init__(
        self,
        config: AuditCoreConfig | None = None,
        store: BaseDocumentStore | None = None,
        notifier: BaseNotifier | None = None,
        register_builtins: bool = True,
    ):
        self.config = config or AuditCoreConfig()
        self.store = store or create_store(self.config.store)
        self.audit = AuditLogger(self.store, self.config.audit, notifier or LoggingNotifier())
        self.queries = AuditQueryService(self.store, self.config.audit)
        self.retention = RetentionSweeper(self.store, self.config.audit)
        self.engine = BatchTransformEngine(self.store, self.config.migration)
        self.migrations = MigrationRunner(self.engine)
        if register_builtins:
            register_builtin_migrations(self.migrations)
        self._started = False

    @classmethod
    async def create(
        cls,
        config_overrides: dict[str, Any] | None = None,
        config_file_path: str | None = None,
        env_prefix: str | None = "AUDITCORE_",
        store: BaseDocumentStore | None = None,
        notifier: BaseNotifier | None = None,
    ) -> AuditCore:
        """
        Load configuration, build the components and start the flush scheduler.

        Sources are layered: defaults, then the TOML file, then
        ``config_overrides``, then environment variables.

        Raises:
            ConfigError: If any configuration source is invalid.
        """
        config = (
            AuditCoreConfig.from_toml(config_file_path) if config_file_path else AuditCoreConfig()
        )
        if config_overrides:
            merged = config.model_dump()
            for section, values in config_overrides.items():
                if isinstance(values, dict) and isinstance(merged.get(section), dict):
                    merged[section].update(values)
                else:
                    merged[section] = values
            config = AuditCoreConfig.from_dict(merged)
        if env_prefix:
            config = AuditCoreConfig.from_environment(env_prefix, base=config)

        instance = cls(config, store=store, notifier=notifier)
        await instance.start()
        return instance

    async def start(self) -> None:
        if self._started:
            return
        await self.store.initialize()
        self.audit.start()
        self._started = True
        logger.info("AuditCore components initialization complete.")

    async def shutdown(self) -> None:
        """Flush pending audit entries and release the store."""
        logger.info("Closing AuditCore resources...")
        try:
            await self.audit.shutdown()
        finally:
            await self.store.close()
            self._started = False
        logger.info("AuditCore resources cleanup complete.")

    async def __aenter__(self) -> AuditCore:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()
