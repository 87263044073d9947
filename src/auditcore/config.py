# src/auditcore/config.py
"""
Configuration models for auditcore.

Provides Pydantic models for every tunable of the audit pipeline, the
migration engine and the document store, with three loading paths:

- ``AuditCoreConfig.from_dict``: flat or nested dictionaries
- ``AuditCoreConfig.from_environment``: ``AUDITCORE_*`` variables
- ``AuditCoreConfig.from_toml``: a TOML file (``[audit]``, ``[migration]``,
  ``[store]`` tables, optionally nested under ``[auditcore]``)

Usage:
    from auditcore.config import AuditCoreConfig

    config = AuditCoreConfig.from_toml("~/.config/auditcore.toml")
    config.audit.buffer_size  # 100

    # Or from TOML config
    [audit]
    buffer_size = 100
    flush_interval_seconds = 30.0
    retention_days = 90

    [migration]
    batch_size = 1000
    rollback_on_error = true
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigError
from .models import Severity

# =============================================================================
# AUDIT LOG CONFIGURATION
# =============================================================================


class AuditLogConfig(BaseModel):
    """
    Settings for the buffered audit log.

    Attributes:
        collection: Store collection receiving audit entries.
        buffer_size: Pending entries that trigger an immediate flush.
        flush_interval_seconds: Period of the background flush.
        retention_days: Default horizon for retention cleanup.
        delete_batch_size: Maximum ids per batched delete.
        stats_query_limit: Cap on entries scanned when computing stats.
        notify_severities: Security severities that trigger a notification.
        write_retries: Extra in-place attempts for a flush write before re-queuing.
    """

    collection: str = Field(default="audit-logs", description="Collection for audit entries")
    buffer_size: int = Field(default=100, ge=1, le=100000)
    flush_interval_seconds: float = Field(default=30.0, gt=0)
    retention_days: int = Field(default=90, ge=0, description="0 disables cleanup")
    delete_batch_size: int = Field(default=500, ge=1, le=10000)
    stats_query_limit: int = Field(default=10000, ge=1)
    notify_severities: list[Severity] = Field(
        default_factory=lambda: [Severity.HIGH, Severity.CRITICAL]
    )
    write_retries: int = Field(default=0, ge=0, le=10)

    @field_validator("collection")
    @classmethod
    def validate_collection(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("collection cannot be empty")
        return v


# =============================================================================
# MIGRATION CONFIGURATION
# =============================================================================


class MigrationConfig(BaseModel):
    """
    Settings for the batch transform engine.

    Attributes:
        batch_size: Records per batch.
        timeout_seconds: Wall-clock budget for a whole data migration.
        retry_attempts: Retries for a failed batch write.
        rollback_on_error: Roll back the target when any batch fails.
        validate_data: Run the target-schema validator on transformed records.
        max_errors: Cap on error strings kept in a result.
        max_concurrent_batches: Batches processed in parallel (1 = sequential).
    """

    batch_size: int = Field(default=1000, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0)
    retry_attempts: int = Field(default=3, ge=0, le=20)
    rollback_on_error: bool = True
    validate_data: bool = True
    max_errors: int = Field(default=100, ge=1)
    max_concurrent_batches: int = Field(default=1, ge=1, le=64)


# =============================================================================
# STORE CONFIGURATION
# =============================================================================


class StoreConfig(BaseModel):
    """Which document store backend to build and where it keeps its data."""

    type: Literal["memory", "json"] = "memory"
    path: str | None = None

    @model_validator(mode="after")
    def validate_path(self) -> StoreConfig:
        if self.type == "json" and not self.path:
            raise ValueError("store.path is required for the json store")
        return self


# =============================================================================
# TOP-LEVEL CONFIGURATION
# =============================================================================


class AuditCoreConfig(BaseModel):
    """Aggregate configuration for an auditcore process."""

    audit: AuditLogConfig = Field(default_factory=AuditLogConfig)
    migration: MigrationConfig = Field(default_factory=MigrationConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> AuditCoreConfig:
        """
        Create configuration from a dictionary.

        Accepts either the sections at the top level or nested under an
        ``auditcore`` key.

        Raises:
            ConfigError: If the dictionary fails validation.
        """
        if "auditcore" in config:
            config = config["auditcore"]
        try:
            return cls(**config)
        except ValidationError as e:
            raise ConfigError(f"Invalid auditcore configuration: {e}") from e

    @classmethod
    def from_toml(cls, path: str | Path) -> AuditCoreConfig:
        """Load configuration from a TOML file."""
        config_path = Path(os.path.expanduser(str(path)))
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with open(config_path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e
        return cls.from_dict(raw)

    @classmethod
    def from_environment(
        cls, prefix: str = "AUDITCORE_", base: AuditCoreConfig | None = None
    ) -> AuditCoreConfig:
        """
        Apply environment variable overrides.

        Variables are expected in the format ``<PREFIX><SECTION>_<FIELD>``:
        AUDITCORE_AUDIT_BUFFER_SIZE=50
        AUDITCORE_MIGRATION_ROLLBACK_ON_ERROR=false
        AUDITCORE_STORE_TYPE=json

        Args:
            prefix: Environment variable prefix.
            base: Configuration to override; defaults are used when omitted.
        """
        data = (base or cls()).model_dump()

        for section, model in (
            ("audit", AuditLogConfig),
            ("migration", MigrationConfig),
            ("store", StoreConfig),
        ):
            for field_name in model.model_fields:
                value = os.environ.get(f"{prefix}{section.upper()}_{field_name.upper()}")
                if value is None:
                    continue
                if value.lower() in ("true", "1", "yes") and field_name not in _NUMERIC_FIELDS:
                    data[section][field_name] = True
                elif value.lower() in ("false", "0", "no") and field_name not in _NUMERIC_FIELDS:
                    data[section][field_name] = False
                elif field_name == "notify_severities":
                    data[section][field_name] = [s.strip() for s in value.split(",") if s.strip()]
                else:
                    data[section][field_name] = value

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")


_NUMERIC_FIELDS = {
    name
    for model in (AuditLogConfig, MigrationConfig)
    for name, info in model.model_fields.items()
    if info.annotation in (int, float)
}


DEFAULT_CONFIG = AuditCoreConfig()


__all__ = [
    "DEFAULT_CONFIG",
    "AuditCoreConfig",
    "AuditLogConfig",
    "MigrationConfig",
    "StoreConfig",
]
