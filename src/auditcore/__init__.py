# src/auditcore/__init__.py
"""
auditcore - buffered audit logging and batch data migrations over a document store.

The audit pipeline classifies and buffers events, flushes them to the store
in batches and answers historical queries. The migration framework reshapes
stored collections with declarative field transformations and runs named,
versioned migrations in order.
"""

from importlib.metadata import PackageNotFoundError, version

from .api import AuditCore
from .audit import (
    AuditLogger,
    AuditQueryService,
    BaseNotifier,
    CallbackNotifier,
    EventBuffer,
    FlushScheduler,
    LoggingNotifier,
    RetentionSweeper,
    classify,
)
from .config import AuditCoreConfig, AuditLogConfig, MigrationConfig, StoreConfig
from .exceptions import (
    AuditCoreError,
    ConfigError,
    DuplicateMigrationError,
    ErrorKind,
    MigrationError,
    StorageError,
    TransformationError,
    TransientStoreError,
    ValidationRejected,
)
from .migration import (
    BatchTransformEngine,
    MigrationCatalog,
    MigrationRunner,
    register_builtin_migrations,
)
from .models import (
    AuditStats,
    Category,
    DataTransformation,
    LogEntry,
    LogQuery,
    Migration,
    MigrationResult,
    MigrationStats,
    Severity,
)
from .storage import (
    BaseDocumentStore,
    InMemoryDocumentStore,
    JsonDocumentStore,
    QueryCondition,
    QueryOperator,
    create_store,
)

try:
    __version__ = version("auditcore")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"


__all__ = [
    # Composition root
    "AuditCore",
    # Audit pipeline
    "AuditLogger",
    "AuditQueryService",
    "BaseNotifier",
    "CallbackNotifier",
    "EventBuffer",
    "FlushScheduler",
    "LoggingNotifier",
    "RetentionSweeper",
    "classify",
    # Migrations
    "BatchTransformEngine",
    "MigrationCatalog",
    "MigrationRunner",
    "register_builtin_migrations",
    # Models
    "AuditStats",
    "Category",
    "DataTransformation",
    "LogEntry",
    "LogQuery",
    "Migration",
    "MigrationResult",
    "MigrationStats",
    "Severity",
    # Configuration
    "AuditCoreConfig",
    "AuditLogConfig",
    "MigrationConfig",
    "StoreConfig",
    # Storage
    "BaseDocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "QueryCondition",
    "QueryOperator",
    "create_store",
    # Exceptions
    "AuditCoreError",
    "ConfigError",
    "DuplicateMigrationError",
    "ErrorKind",
    "MigrationError",
    "StorageError",
    "TransformationError",
    "TransientStoreError",
    "ValidationRejected",
    # Version
    "__version__",
]
