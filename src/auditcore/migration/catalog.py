# src/auditcore/migration/catalog.py
"""
Ordered registry of named migrations.

Registration order is execution order; rollback walks it backwards.
Names are unique and duplicates are rejected when they are registered,
not when the catalog runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ..exceptions import DuplicateMigrationError
from ..models import Migration

logger = logging.getLogger(__name__)


class MigrationCatalog:
    """Insertion-ordered, name-unique collection of :class:`Migration`."""

    def __init__(self):
        self._migrations: dict[str, Migration] = {}

    def register(self, migration: Migration) -> None:
        """
        Append a migration.

        Raises:
            DuplicateMigrationError: If the name is already registered.
        """
        if migration.name in self._migrations:
            raise DuplicateMigrationError(migration.name)
        self._migrations[migration.name] = migration
        logger.debug(f"Registered migration {migration.name} v{migration.version}")

    def get(self, name: str) -> Migration | None:
        return self._migrations.get(name)

    def names(self) -> list[str]:
        return list(self._migrations)

    def reversed(self) -> list[Migration]:
        return list(reversed(self._migrations.values()))

    def __iter__(self) -> Iterator[Migration]:
        return iter(list(self._migrations.values()))

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, name: object) -> bool:
        return name in self._migrations
