# tests/test_exceptions.py
"""
Tests for the auditcore.exceptions module.

Covers inheritance, error kinds and message formatting.
"""

import pytest

from auditcore.exceptions import (
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


class TestAuditCoreError:
    """Tests for the base AuditCoreError exception."""

    def test_default_message(self):
        """Test default error message."""
        error = AuditCoreError()
        assert "unspecified error" in str(error).lower()

    def test_custom_message(self):
        """Test custom error message."""
        assert str(AuditCoreError("boom")) == "boom"

    def test_base_has_no_kind(self):
        assert AuditCoreError.kind is None

    def test_can_be_raised(self):
        """Test that it can be raised and caught."""
        with pytest.raises(AuditCoreError):
            raise AuditCoreError("Test error")


class TestErrorKinds:
    """Each concrete error carries the kind it reports on results."""

    @pytest.mark.parametrize(
        "error,kind",
        [
            (ConfigError(), ErrorKind.CONFIG),
            (TransientStoreError("write", "timeout"), ErrorKind.TRANSIENT_STORE),
            (TransformationError("role", "bad value"), ErrorKind.TRANSFORMATION),
            (ValidationRejected("role", "not allowed"), ErrorKind.VALIDATION),
            (DuplicateMigrationError("m1"), ErrorKind.CONFIG),
        ],
    )
    def test_kind(self, error, kind):
        assert error.kind == kind

    def test_kind_values_are_closed(self):
        assert {k.value for k in ErrorKind} == {
            "transient_store",
            "transformation",
            "validation",
            "config",
        }


class TestStorageErrors:
    """Tests for store related exceptions."""

    def test_transient_is_storage_error(self):
        error = TransientStoreError("batch_write", "rate limited")
        assert isinstance(error, StorageError)
        assert isinstance(error, AuditCoreError)

    def test_transient_message_names_operation(self):
        error = TransientStoreError("batch_write", "rate limited")
        assert error.operation == "batch_write"
        assert str(error) == "Store operation 'batch_write' failed: rate limited"


class TestMigrationErrors:
    """Tests for migration related exceptions."""

    def test_transformation_message(self):
        error = TransformationError("status", "KeyError")
        assert error.field == "status"
        assert str(error) == "Transformation failed for field status: KeyError"

    def test_migration_error_message(self):
        error = MigrationError("migrate_user_roles", "3 records failed")
        assert error.migration_name == "migrate_user_roles"
        assert str(error) == "Migration 'migrate_user_roles': 3 records failed"

    def test_duplicate_is_both_migration_and_config_error(self):
        error = DuplicateMigrationError("migrate_user_roles")
        assert isinstance(error, MigrationError)
        assert isinstance(error, ConfigError)
        assert "already registered" in str(error)
