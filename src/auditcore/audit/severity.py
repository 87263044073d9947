# src/auditcore/audit/severity.py
"""
Severity classification for audit events.

Each category owns its own action vocabulary, so severity is looked up in a
per-category table rather than one global mapping. A failed login is "high"
for auth while the same word would mean nothing for system events. Actions
that are not listed fall through to ``Severity.LOW``.
"""

from __future__ import annotations

from ..models import Category, Severity

SeverityTable = dict[Severity, frozenset[str]]

AUTH_SEVERITIES: SeverityTable = {
    Severity.CRITICAL: frozenset({"LOGIN_FAILED_MULTIPLE", "ACCOUNT_LOCKED", "PASSWORD_RESET_ABUSE"}),
    Severity.HIGH: frozenset({"LOGIN_FAILED", "PASSWORD_RESET", "ACCOUNT_SUSPENDED"}),
    Severity.MEDIUM: frozenset({"LOGIN_SUCCESS", "LOGOUT", "PASSWORD_CHANGED"}),
}

SECURITY_SEVERITIES: SeverityTable = {
    Severity.CRITICAL: frozenset({"XSS_ATTACK", "SQL_INJECTION", "UNAUTHORIZED_ACCESS", "DATA_BREACH"}),
    Severity.HIGH: frozenset({"RATE_LIMIT_EXCEEDED", "SUSPICIOUS_ACTIVITY", "PRIVILEGE_ESCALATION"}),
    Severity.MEDIUM: frozenset({"SECURITY_HEADER_MISSING", "WEAK_PASSWORD", "SUSPICIOUS_LOGIN"}),
}

DATA_SEVERITIES: SeverityTable = {
    Severity.CRITICAL: frozenset({"DATA_DELETED", "BULK_DATA_EXPORT", "SENSITIVE_DATA_ACCESS"}),
    Severity.HIGH: frozenset({"DATA_MODIFIED", "DATA_EXPORT", "DATA_IMPORT"}),
    Severity.MEDIUM: frozenset({"DATA_VIEWED", "DATA_CREATED"}),
}

SYSTEM_SEVERITIES: SeverityTable = {
    Severity.CRITICAL: frozenset({"SYSTEM_ERROR", "DATABASE_ERROR", "SERVICE_DOWN"}),
    Severity.HIGH: frozenset({"HIGH_CPU_USAGE", "MEMORY_WARNING", "DISK_SPACE_LOW"}),
    Severity.MEDIUM: frozenset({"SERVICE_RESTART", "CONFIGURATION_CHANGE"}),
}

# user_action has no table: every user action is low severity.
SEVERITY_TABLES: dict[Category, SeverityTable] = {
    Category.AUTH: AUTH_SEVERITIES,
    Category.SECURITY: SECURITY_SEVERITIES,
    Category.DATA: DATA_SEVERITIES,
    Category.SYSTEM: SYSTEM_SEVERITIES,
}

_LOOKUP_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM)


def classify(category: Category | str, action: str) -> Severity:
    """
    Map (category, action) to a severity.

    Pure and total: unknown categories and unknown actions both yield
    ``Severity.LOW``.
    """
    try:
        table = SEVERITY_TABLES.get(Category(category))
    except ValueError:
        return Severity.LOW
    if table is None:
        return Severity.LOW

    for severity in _LOOKUP_ORDER:
        if action in table.get(severity, ()):
            return severity
    return Severity.LOW


__all__ = [
    "AUTH_SEVERITIES",
    "DATA_SEVERITIES",
    "SECURITY_SEVERITIES",
    "SEVERITY_TABLES",
    "SYSTEM_SEVERITIES",
    "classify",
]
