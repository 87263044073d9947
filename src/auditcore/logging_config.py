# src/auditcore/logging_config.py
"""
Logging setup for auditcore processes.

The library itself only ever calls ``logging.getLogger(__name__)``; this
module is for the composition root and the CLI, which decide where records
go. It provides:

- Console logging gated by a :class:`DisplayFilter`
- Optional file logging with size-based rotation
- Per-component log level overrides

Key concept:

    **Display filter**: when ``console_enabled=False`` (the default), the
    console handler still exists but only passes records that carry
    ``extra={"display": True}``. Operator-facing messages such as
    "Migration migrate_user_roles completed" therefore reach the terminal
    while flush/debug chatter stays in the file.

Usage:
    from auditcore.logging_config import configure_logging, log_display

    configure_logging(app_name="auditcore", config={"file_enabled": False})

    logger = logging.getLogger("auditcore.cli")
    log_display(logger, logging.INFO, "Flushed %d entries", count)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": False,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/auditcore/logs",
    "file_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "auditcore": "INFO",
        "asyncio": "WARNING",
    },
}

# Handlers installed by the last configure_logging() call
_installed_handlers: list[logging.Handler] = []


def _parse_level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    When the console is globally enabled every record passes and the
    handler's own level does the filtering. Otherwise only records with
    ``record.display = True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level
        return False


def _create_file_handler(config: dict[str, Any], app_name: str) -> tuple[logging.Handler | None, Path | None]:
    """Create the rotating file handler, or (None, None) if the directory is unusable."""
    log_dir = Path(os.path.expanduser(config["file_directory"]))
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        sys.stderr.write(f"Warning: Cannot create log directory {log_dir}: {e}\n")
        return None, None

    try:
        filename = config["file_name"].format(app=app_name)
    except (KeyError, ValueError):
        filename = f"{app_name}.log"
    log_file_path = log_dir / filename

    try:
        handler = RotatingFileHandler(
            log_file_path,
            maxBytes=config["rotation_max_bytes"],
            backupCount=config["rotation_backup_count"],
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
        return None, None

    handler.setLevel(_parse_level(config["file_level"], logging.DEBUG))
    handler.setFormatter(logging.Formatter(config["file_format"]))
    return handler, log_file_path


def configure_logging(
    app_name: str = "auditcore",
    config: dict[str, Any] | None = None,
) -> Path | None:
    """
    Configure root logging for an auditcore process.

    Calling it again replaces the handlers installed by the previous call,
    leaving handlers added by other code (e.g. pytest's caplog) in place.

    Args:
        app_name: Used in the log file name.
        config: Overrides merged over ``DEFAULT_LOGGING_CONFIG``.

    Returns:
        Path to the log file, or None when file logging is disabled.
    """
    log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
    root_logger = logging.getLogger()

    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root_logger.setLevel(logging.DEBUG)

    console_enabled = bool(log_config["console_enabled"])
    console_handler = logging.StreamHandler(sys.stderr)
    # With the console "off" the filter is the only gate.
    console_handler.setLevel(
        _parse_level(log_config["console_level"], logging.WARNING)
        if console_enabled
        else logging.DEBUG
    )
    console_handler.setFormatter(logging.Formatter(log_config["console_format"]))
    console_handler.addFilter(
        DisplayFilter(
            console_globally_enabled=console_enabled,
            display_min_level=_parse_level(log_config["display_min_level"], logging.INFO),
        )
    )
    root_logger.addHandler(console_handler)
    _installed_handlers.append(console_handler)

    log_file_path = None
    if log_config["file_enabled"]:
        file_handler, log_file_path = _create_file_handler(log_config, app_name)
        if file_handler:
            root_logger.addHandler(file_handler)
            _installed_handlers.append(file_handler)

    for component_name, level_str in log_config["components"].items():
        logging.getLogger(component_name).setLevel(_parse_level(level_str, logging.INFO))

    if log_file_path:
        logging.getLogger(__name__).debug(f"Logging configured. Log file: {log_file_path}")
    return log_file_path


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also reaches the console in quiet mode.

    Merges ``display=True`` into the caller's ``extra`` mapping.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


__all__ = [
    "DEFAULT_LOGGING_CONFIG",
    "DisplayFilter",
    "configure_logging",
    "log_display",
]
