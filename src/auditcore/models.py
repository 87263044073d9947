# src/auditcore/models.py
"""
Core data models for the auditcore library.

This module defines the records that flow through the audit pipeline and the
migration engine, using Pydantic for validation and JSON serialization:

- Severity / Category: closed vocabularies for audit entries
- LogEntry: an immutable audit record as stored in the document store
- LogQuery: conjunctive filters for historical queries
- AuditStats / ActorCount: aggregate statistics over a trailing window
- MigrationResult: outcome of one data migration run
- DataTransformation / Migration: declarative migration building blocks
"""

from __future__ import annotations

import random
import re
import string
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigError, ErrorKind

_ID_ALPHABET = string.digits + string.ascii_lowercase
_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")

SYSTEM_ACTOR = "system"


# =============================================================================
# ENUMS
# =============================================================================


class Severity(str, Enum):
    """Audit severity levels, ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)

    def __ge__(self, other: Severity) -> bool:
        return self.rank >= other.rank

    def __gt__(self, other: Severity) -> bool:
        return self.rank > other.rank

    def __le__(self, other: Severity) -> bool:
        return self.rank <= other.rank

    def __lt__(self, other: Severity) -> bool:
        return self.rank < other.rank


class Category(str, Enum):
    """Functional domain of an audit event."""

    AUTH = "auth"
    DATA = "data"
    SECURITY = "security"
    SYSTEM = "system"
    USER_ACTION = "user_action"


# =============================================================================
# AUDIT RECORDS
# =============================================================================


def generate_entry_id() -> str:
    """Build an id of the form ``audit_<epoch-ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"audit_{int(time.time() * 1000)}_{suffix}"


class LogEntry(BaseModel):
    """
    A single audit record.

    Entries are frozen once created. The buffer owns them until a flush
    succeeds; after that the document store owns them.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(default_factory=generate_entry_id)
    action: str
    actor_id: str
    actor_role: str
    target_id: str | None = None
    target_type: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    severity: Severity = Severity.LOW
    category: Category

    def to_record(self) -> dict[str, Any]:
        """Serialize for the store, dropping unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> LogEntry:
        """Rebuild an entry from a stored document."""
        return cls.model_validate(record)


class LogQuery(BaseModel):
    """Filters for historical audit queries. All set fields must match."""

    actor_id: str | None = None
    action: str | None = None
    category: Category | None = None
    severity: Severity | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = Field(default=None, ge=1)


class ActorCount(BaseModel):
    actor_id: str
    count: int


class AuditStats(BaseModel):
    """Aggregate counts over a trailing window of audit entries."""

    total_logs: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)
    top_actors: list[ActorCount] = Field(default_factory=list)


# =============================================================================
# MIGRATION RECORDS
# =============================================================================


class MigrationResult(BaseModel):
    """Outcome of one data migration run. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    success: bool
    records_processed: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    batches: int = 0
    error_kinds: list[ErrorKind] = Field(default_factory=list)

    @property
    def total_records(self) -> int:
        return self.records_processed + self.records_skipped + self.records_failed


class MigrationStats(BaseModel):
    """Roll-up of every data migration run recorded in history."""

    total_migrations: int = 0
    successful_migrations: int = 0
    failed_migrations: int = 0
    total_records_processed: int = 0
    average_duration_ms: float = 0.0


@dataclass(frozen=True)
class DataTransformation:
    """
    Declarative per-field mapping applied during a data migration.

    Attributes:
        source_field: Field read from the source record.
        target_field: Field written on the transformed record.
        transform: Pure function mapping the source value to the target value.
        validation: Optional predicate on the transformed value; a False
            result excludes the record from the target.
    """

    source_field: str
    target_field: str
    transform: Callable[[Any], Any]
    validation: Callable[[Any], bool] | None = None


@dataclass(frozen=True)
class Migration:
    """A named, versioned pair of async up/down procedures."""

    name: str
    version: str
    up: Callable[[], Awaitable[None]]
    down: Callable[[], Awaitable[None]]

    def __post_init__(self):
        if not self.name:
            raise ConfigError("Migration name cannot be empty.")
        if not _SEMVER_RE.match(self.version):
            raise ConfigError(
                f"Migration '{self.name}' has invalid version '{self.version}' "
                "(expected MAJOR.MINOR.PATCH)."
            )


__all__ = [
    "SYSTEM_ACTOR",
    "ActorCount",
    "AuditStats",
    "Category",
    "DataTransformation",
    "LogEntry",
    "LogQuery",
    "Migration",
    "MigrationResult",
    "MigrationStats",
    "Severity",
    "generate_entry_id",
]
