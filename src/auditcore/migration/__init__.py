# src/auditcore/migration/__init__.py
"""
Data migration framework.

BatchTransformEngine moves and reshapes records between collections;
MigrationCatalog and MigrationRunner order named migrations and apply or
roll them back.
"""

from .builtin import register_builtin_migrations
from .catalog import MigrationCatalog
from .engine import BatchTransformEngine
from .runner import MigrationRunner

__all__ = [
    "BatchTransformEngine",
    "MigrationCatalog",
    "MigrationRunner",
    "register_builtin_migrations",
]
