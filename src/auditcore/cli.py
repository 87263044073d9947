# src/auditcore/cli.py
"""
Command-line interface for auditcore.

Commands:
- ``auditcore audit query``    list stored audit entries, newest first
- ``auditcore audit stats``    aggregate counts over a trailing window
- ``auditcore audit cleanup``  delete entries past the retention horizon
- ``auditcore migrate run``       apply every registered migration
- ``auditcore migrate rollback``  roll every migration back, newest first
- ``auditcore migrate status``    registered migrations and run history

Every command accepts ``--config`` (a TOML file) and ``--json``.
Configuration is layered: defaults, the file, then ``AUDITCORE_*``
environment variables.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .api import AuditCore
from .config import AuditCoreConfig
from .exceptions import AuditCoreError, MigrationError
from .logging_config import configure_logging
from .models import Category, LogQuery, Severity

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

class OutputFormatter:
    """Formats CLI output as plain text or JSON."""

    def __init__(self, use_color: bool = True, json_output: bool = False):
        self.use_color = use_color and sys.stdout.isatty()
        self.json_output = json_output

    def _color(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        colors = {
            'green': '\033[92m',
            'red': '\033[91m',
            'yellow': '\033[93m',
            'cyan': '\033[96m',
            'bold': '\033[1m',
            'reset': '\033[0m'
        }
        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def success(self, text: str) -> str:
        return self._color(f"✓ {text}", 'green')

    def error(self, text: str) -> str:
        return self._color(f"✗ {text}", 'red')

    def header(self, text: str) -> str:
        return self._color(text, 'bold')

    def format_severity(self, severity: str) -> str:
        if severity in ("high", "critical"):
            return self._color(severity, 'red')
        if severity == "medium":
            return self._color(severity, 'yellow')
        return severity

    def emit_json(self, payload: Any) -> None:
        print(json.dumps(payload, indent=2, default=str))


# =============================================================================
# CLI COMMANDS
# =============================================================================

async def cmd_audit_query(core: AuditCore, filters: LogQuery, formatter: OutputFormatter) -> int:
    entries = await core.queries.query(filters)
    if formatter.json_output:
        formatter.emit_json([e.to_record() for e in entries])
        return 0

    print(formatter.header(f"Audit Entries ({len(entries)})"))
    print("=" * 45)
    for e in entries:
        target = f" -> {e.target_type}:{e.target_id}" if e.target_id else ""
        print(
            f"{e.timestamp.isoformat()}  [{formatter.format_severity(e.severity.value):>8}] "
            f"{e.category.value:<11} {e.action} by {e.actor_id} ({e.actor_role}){target}"
        )
    return 0


async def cmd_audit_stats(core: AuditCore, days: int, formatter: OutputFormatter) -> int:
    stats = await core.queries.stats(window_days=days)
    if formatter.json_output:
        formatter.emit_json(stats.model_dump(mode="json"))
        return 0

    print(formatter.header(f"Audit Statistics (last {days} days)"))
    print("=" * 45)
    print(f"Total entries: {stats.total_logs}")
    for title, counts in (
        ("By category", stats.by_category),
        ("By severity", stats.by_severity),
        ("By action", stats.by_action),
    ):
        print()
        print(f"{title}:")
        for key, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            print(f"  {key:<24} {count}")
    if stats.top_actors:
        print()
        print("Top actors:")
        for actor in stats.top_actors:
            print(f"  {actor.actor_id:<24} {actor.count}")
    return 0


async def cmd_audit_cleanup(core: AuditCore, days: Optional[int], formatter: OutputFormatter) -> int:
    deleted = await core.retention.cleanup(retention_days=days)
    if formatter.json_output:
        formatter.emit_json({"deleted": deleted})
    else:
        print(formatter.success(f"Deleted {deleted} audit entries"))
    return 0


async def cmd_migrate(core: AuditCore, action: str, formatter: OutputFormatter) -> int:
    runner = core.migrations
    if action == "status":
        status = runner.status()
        if formatter.json_output:
            formatter.emit_json(status)
            return 0
        print(formatter.header("Migrations"))
        print("=" * 45)
        for m in status["registered"]:
            marker = formatter._color("applied", 'green') if m["applied"] else "pending"
            print(f"  {m['name']:<32} v{m['version']:<8} {marker}")
        stats = status["stats"]
        print()
        print(
            f"Runs: {stats['total_migrations']} "
            f"({stats['successful_migrations']} ok, {stats['failed_migrations']} failed), "
            f"records processed: {stats['total_records_processed']}"
        )
        return 0

    try:
        if action == "run":
            names = await runner.run_all()
        else:
            names = await runner.rollback_all()
    except MigrationError as e:
        if formatter.json_output:
            formatter.emit_json({"success": False, "error": str(e), "history": runner.status()["history"]})
        else:
            print(formatter.error(str(e)))
        return 1

    if formatter.json_output:
        formatter.emit_json({"success": True, "migrations": names, "history": runner.status()["history"]})
    else:
        verb = "Applied" if action == "run" else "Rolled back"
        print(formatter.success(f"{verb} {len(names)} migrations"))
        for name in names:
            print(f"  {name}")
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

def _load_config(config_path: Optional[str]) -> AuditCoreConfig:
    config = AuditCoreConfig.from_toml(config_path) if config_path else AuditCoreConfig()
    return AuditCoreConfig.from_environment(base=config)


def _build_query(parsed: argparse.Namespace) -> LogQuery:
    return LogQuery(
        actor_id=parsed.actor,
        action=parsed.action,
        category=Category(parsed.category) if parsed.category else None,
        severity=Severity(parsed.severity) if parsed.severity else None,
        limit=parsed.limit,
    )


async def _dispatch(parsed: argparse.Namespace, config: AuditCoreConfig, formatter: OutputFormatter) -> int:
    async with AuditCore(config) as core:
        if parsed.command == "audit":
            if parsed.audit_command == "query":
                return await cmd_audit_query(core, _build_query(parsed), formatter)
            if parsed.audit_command == "stats":
                return await cmd_audit_stats(core, parsed.days, formatter)
            return await cmd_audit_cleanup(core, parsed.days, formatter)
        return await cmd_migrate(core, parsed.migrate_command, formatter)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the auditcore CLI."""
    parser = argparse.ArgumentParser(
        prog="auditcore",
        description="Audit log and data migration management"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to a TOML configuration file",
        default=None
    )
    parser.add_argument(
        "--json",
        help="Output in JSON format",
        action="store_true"
    )
    parser.add_argument(
        "--no-color",
        help="Disable colored output",
        action="store_true"
    )
    parser.add_argument(
        "--verbose", "-v",
        help="Log everything to the console",
        action="store_true"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # audit commands
    audit_parser = subparsers.add_parser("audit", help="Query and maintain the audit log")
    audit_sub = audit_parser.add_subparsers(dest="audit_command", required=True)

    query_parser = audit_sub.add_parser("query", help="List audit entries, newest first")
    query_parser.add_argument("--actor", help="Filter by actor id")
    query_parser.add_argument("--action", help="Filter by action")
    query_parser.add_argument("--category", choices=[c.value for c in Category])
    query_parser.add_argument("--severity", choices=[s.value for s in Severity])
    query_parser.add_argument("--limit", type=int, default=100)

    stats_parser = audit_sub.add_parser("stats", help="Aggregate statistics")
    stats_parser.add_argument("--days", type=int, default=30, help="Trailing window in days")

    cleanup_parser = audit_sub.add_parser("cleanup", help="Delete entries past retention")
    cleanup_parser.add_argument(
        "--days", type=int, default=None,
        help="Retention horizon in days (default: configured retention_days)"
    )

    # migrate command
    migrate_parser = subparsers.add_parser("migrate", help="Data migrations")
    migrate_parser.add_argument(
        "migrate_command",
        nargs="?",
        default="status",
        choices=["run", "rollback", "status"],
        help="Action to perform"
    )

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the auditcore CLI.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 0

    formatter = OutputFormatter(
        use_color=not parsed.no_color,
        json_output=parsed.json
    )

    try:
        config = _load_config(parsed.config)
    except AuditCoreError as e:
        print(formatter.error(str(e)), file=sys.stderr)
        return 2

    logging_overrides: Dict[str, Any] = dict(config.logging)
    if parsed.verbose:
        logging_overrides["console_enabled"] = True
        logging_overrides["console_level"] = "DEBUG"
    configure_logging(app_name="auditcore", config=logging_overrides)

    try:
        return asyncio.run(_dispatch(parsed, config, formatter))
    except AuditCoreError as e:
        print(formatter.error(str(e)), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
