# src/auditcore/exceptions.py
"""
Custom exceptions for the auditcore library.

This module defines a hierarchy of custom exception classes, plus the closed
set of error kinds that travel on migration results, so callers can tell a
flaky store apart from a broken transformation or a bad configuration.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed taxonomy of failures surfaced by the logging and migration paths."""

    TRANSIENT_STORE = "transient_store"
    TRANSFORMATION = "transformation"
    VALIDATION = "validation"
    CONFIG = "config"


class AuditCoreError(Exception):
    """Base class for all auditcore specific errors."""

    kind: ErrorKind | None = None

    def __init__(self, message: str = "An unspecified error occurred in auditcore."):
        super().__init__(message)


class ConfigError(AuditCoreError):
    """Raised for errors related to configuration loading or validation."""

    kind = ErrorKind.CONFIG

    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)


class StorageError(AuditCoreError):
    """Base class for errors related to document store operations."""

    def __init__(self, message: str = "Storage error."):
        super().__init__(message)


class TransientStoreError(StorageError):
    """Raised when the store fails in a way that is worth retrying (timeouts, rate limits)."""

    kind = ErrorKind.TRANSIENT_STORE

    def __init__(self, operation: str = "unknown", message: str = "Transient store failure."):
        self.operation = operation
        super().__init__(f"Store operation '{operation}' failed: {message}")


class TransformationError(AuditCoreError):
    """Raised when a field transformation throws while migrating a record."""

    kind = ErrorKind.TRANSFORMATION

    def __init__(self, field: str = "unknown", message: str = "Transformation failed."):
        self.field = field
        super().__init__(f"Transformation failed for field {field}: {message}")


class ValidationRejected(AuditCoreError):
    """
    Signals that a record was excluded by a validator.

    Not a failure: the engine counts these records as skipped.
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str = "unknown", message: str = "Validation failed."):
        self.field = field
        super().__init__(f"Validation failed for field {field}: {message}")


class MigrationError(AuditCoreError):
    """Raised when a migration fails and the failure must reach the operator."""

    def __init__(self, migration_name: str = "unknown", message: str = "Migration failed."):
        self.migration_name = migration_name
        super().__init__(f"Migration '{migration_name}': {message}")


class DuplicateMigrationError(MigrationError, ConfigError):
    """Raised at registration time when a migration name is already in the catalog."""

    kind = ErrorKind.CONFIG

    def __init__(self, migration_name: str = "unknown"):
        MigrationError.__init__(self, migration_name, "a migration with this name is already registered.")
