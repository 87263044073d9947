# src/auditcore/migration/builtin.py
"""
Bundled data-shape migrations.

Each migration declares its field transformations as plain tables and hands
them to the batch transform engine. Their ``down`` procedures undo the data
change: copy-style migrations purge what they wrote to the target, and the
in-place preferences migration strips the field it added.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import MigrationError
from ..models import DataTransformation, Migration
from .engine import BatchTransformEngine

if TYPE_CHECKING:
    from .runner import MigrationRunner

logger = logging.getLogger(__name__)


# =============================================================================
# VALUE TABLES
# =============================================================================

ROLE_MAP = {
    "student": "learner",
    "instructor": "admin",
    "supervisor": "admin",
    "coordinator": "admin",
}
VALID_ROLES = frozenset({"applicant", "learner", "admin", "super-admin"})

APPLICATION_STATUS_MAP = {
    "pending": "submitted",
    "in_review": "under_review",
    "accepted": "approved",
    "declined": "rejected",
}
VALID_APPLICATION_STATUSES = frozenset(
    {"draft", "submitted", "under_review", "approved", "rejected", "withdrawn"}
)

PRIORITY_MAP = {"1": "low", "2": "medium", "3": "high", "4": "urgent"}
DEFAULT_PRIORITY = "medium"

DOCUMENT_TYPE_MAP = {
    "resume": "cv",
    "id_card": "id",
    "cert": "certificate",
    "transcript": "transcript",
    "portfolio": "portfolio",
    "other": "other",
}
DEFAULT_DOCUMENT_TYPE = "other"

DOCUMENT_STATUS_MAP = {
    "uploaded": "uploaded",
    "pending_review": "pending",
    "approved": "approved",
    "rejected": "rejected",
}
DEFAULT_DOCUMENT_STATUS = "uploaded"

DEFAULT_REFRESH_INTERVAL_MS = 30000


# =============================================================================
# TRANSFORMS
# =============================================================================


def map_role(value: Any) -> Any:
    return ROLE_MAP.get(value, value)


def map_application_status(value: Any) -> Any:
    return APPLICATION_STATUS_MAP.get(value, value)


def map_priority(value: Any) -> str:
    """Numeric priority codes (int or str) to labels; anything else is ``medium``."""
    if value is None:
        return DEFAULT_PRIORITY
    return PRIORITY_MAP.get(str(value), DEFAULT_PRIORITY)


def map_document_type(value: Any) -> str:
    return DOCUMENT_TYPE_MAP.get(value, DEFAULT_DOCUMENT_TYPE)


def map_document_status(value: Any) -> str:
    return DOCUMENT_STATUS_MAP.get(value, DEFAULT_DOCUMENT_STATUS)


def build_preferences(settings: dict[str, Any] | None) -> dict[str, Any]:
    """
    Convert a flat legacy ``settings`` mapping into the nested preferences shape.

    Missing settings fall back to defaults: email and push notifications are
    on unless explicitly disabled, every other flag is off unless explicitly
    enabled.
    """
    value = settings or {}
    return {
        "theme": value.get("theme") or "auto",
        "language": value.get("language") or "en",
        "timezone": value.get("timezone") or "UTC",
        "notifications": {
            "email": value.get("emailNotifications") is not False,
            "push": value.get("pushNotifications") is not False,
            "sms": value.get("smsNotifications") is True,
            "categories": value.get("notificationCategories") or {},
        },
        "accessibility": {
            "highContrast": value.get("highContrast") is True,
            "largeText": value.get("largeText") is True,
            "reducedMotion": value.get("reducedMotion") is True,
            "screenReader": value.get("screenReader") is True,
            "keyboardNavigation": value.get("keyboardNavigation") is True,
        },
        "dashboard": {
            "widgets": value.get("dashboardWidgets") or {},
            "layout": value.get("dashboardLayout") or "default",
            "refreshInterval": value.get("refreshInterval") or DEFAULT_REFRESH_INTERVAL_MS,
        },
    }


USER_ROLE_TRANSFORMATIONS = (
    DataTransformation("role", "role", map_role, lambda v: v in VALID_ROLES),
)
USER_PREFERENCE_TRANSFORMATIONS = (
    DataTransformation("settings", "preferences", build_preferences),
)
APPLICATION_TRANSFORMATIONS = (
    DataTransformation(
        "status", "status", map_application_status, lambda v: v in VALID_APPLICATION_STATUSES
    ),
    DataTransformation("priority", "priority", map_priority),
)
DOCUMENT_TRANSFORMATIONS = (
    DataTransformation("documentType", "type", map_document_type),
    DataTransformation("status", "status", map_document_status),
)


# =============================================================================
# MIGRATIONS
# =============================================================================


async def _run_or_raise(
    engine: BatchTransformEngine,
    name: str,
    source: str,
    target: str,
    transformations: tuple[DataTransformation, ...],
) -> None:
    result = await engine.run_data_migration(source, target, list(transformations))
    if not result.success:
        detail = "; ".join(result.errors[:3]) or "see logs"
        raise MigrationError(
            name, f"{result.records_failed} records failed migrating {source} -> {target}: {detail}"
        )


def _copy_migration(
    engine: BatchTransformEngine,
    name: str,
    version: str,
    source: str,
    target: str,
    transformations: tuple[DataTransformation, ...],
) -> Migration:
    async def up() -> None:
        await _run_or_raise(engine, name, source, target, transformations)

    async def down() -> None:
        removed = await engine.purge_migrated(source, target)
        logger.info(f"Rolled back {name}: removed {removed} documents from '{target}'")

    return Migration(name=name, version=version, up=up, down=down)


def user_roles_migration(engine: BatchTransformEngine) -> Migration:
    return _copy_migration(
        engine, "migrate_user_roles", "1.0.0", "users_old", "users", USER_ROLE_TRANSFORMATIONS
    )


def user_preferences_migration(engine: BatchTransformEngine) -> Migration:
    name = "migrate_user_preferences"

    async def up() -> None:
        await _run_or_raise(engine, name, "users", "users", USER_PREFERENCE_TRANSFORMATIONS)

    async def down() -> None:
        updated = await engine.remove_field("users", "preferences")
        logger.info(f"Rolled back {name}: removed preferences from {updated} users")

    return Migration(name=name, version="1.0.1", up=up, down=down)


def application_status_migration(engine: BatchTransformEngine) -> Migration:
    return _copy_migration(
        engine,
        "migrate_application_status",
        "1.0.0",
        "applications_old",
        "applications",
        APPLICATION_TRANSFORMATIONS,
    )


def document_types_migration(engine: BatchTransformEngine) -> Migration:
    return _copy_migration(
        engine,
        "migrate_document_types",
        "1.0.0",
        "documents_old",
        "documents",
        DOCUMENT_TRANSFORMATIONS,
    )


BUILTIN_MIGRATIONS = (
    user_roles_migration,
    user_preferences_migration,
    application_status_migration,
    document_types_migration,
)


def register_builtin_migrations(runner: MigrationRunner) -> list[Migration]:
    """Register the bundled migrations on ``runner`` in their canonical order."""
    migrations = [factory(runner.engine) for factory in BUILTIN_MIGRATIONS]
    for migration in migrations:
        runner.register(migration)
    return migrations
