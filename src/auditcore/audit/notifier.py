# src/auditcore/audit/notifier.py
"""
Alerting hooks for serious security events.

The logger hands high and critical security entries to a notifier. Delivery
(email, chat, pager) is the application's business; this module only defines
the interface and two small implementations.
"""

from __future__ import annotations

import abc
import inspect
import logging
from collections.abc import Awaitable, Callable

from ..models import LogEntry

logger = logging.getLogger(__name__)


class BaseNotifier(abc.ABC):
    """Receives entries that warrant an alert."""

    @abc.abstractmethod
    async def notify(self, entry: LogEntry) -> None:
        """Deliver an alert for ``entry``. May raise; the caller contains failures."""
        pass


class LoggingNotifier(BaseNotifier):
    """Emits alerts as WARNING records flagged for console display."""

    def __init__(self, logger_name: str = "auditcore.alerts"):
        self._logger = logging.getLogger(logger_name)

    async def notify(self, entry: LogEntry) -> None:
        self._logger.warning(
            f"[{entry.severity.value.upper()}] security event {entry.action} "
            f"by {entry.actor_id} ({entry.actor_role})",
            extra={"display": True, "audit_entry_id": entry.id},
        )


class CallbackNotifier(BaseNotifier):
    """Adapts a plain function or coroutine function into a notifier."""

    def __init__(self, callback: Callable[[LogEntry], Awaitable[None] | None]):
        self._callback = callback

    async def notify(self, entry: LogEntry) -> None:
        result = self._callback(entry)
        if inspect.isawaitable(result):
            await result
