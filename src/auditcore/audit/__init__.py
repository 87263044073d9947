# src/auditcore/audit/__init__.py
"""
Audit logging pipeline.

Write path: AuditLogger -> EventBuffer -> FlushScheduler -> document store.
Read path: AuditQueryService and RetentionSweeper, which only touch the store.
"""

from .buffer import EventBuffer
from .logger import AuditLogger
from .notifier import BaseNotifier, CallbackNotifier, LoggingNotifier
from .query import AuditQueryService
from .retention import RetentionSweeper
from .scheduler import FlushScheduler
from .severity import classify

__all__ = [
    "AuditLogger",
    "AuditQueryService",
    "BaseNotifier",
    "CallbackNotifier",
    "EventBuffer",
    "FlushScheduler",
    "LoggingNotifier",
    "RetentionSweeper",
    "classify",
]
