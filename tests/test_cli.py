# tests/test_cli.py
"""
Tests for the auditcore command-line interface.

Each test points the CLI at a JSON document store under ``tmp_path`` and
checks the ``--json`` output.
"""

import json
import logging
from datetime import UTC, datetime, timedelta

import pytest

from auditcore import logging_config
from auditcore.cli import create_parser, main
from auditcore.models import Category, LogEntry, Severity


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    for handler in list(logging_config._installed_handlers):
        root.removeHandler(handler)
        handler.close()
    logging_config._installed_handlers.clear()


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def config_file(tmp_path, data_dir):
    path = tmp_path / "auditcore.toml"
    path.write_text(f'[store]\ntype = "json"\npath = "{data_dir.as_posix()}"\n')
    return str(path)


def write_collection(data_dir, name, docs):
    (data_dir / f"{name}.json").write_text(json.dumps({d["id"]: d for d in docs}))


def read_collection(data_dir, name):
    path = data_dir / f"{name}.json"
    return json.loads(path.read_text()) if path.exists() else {}


def audit_record(action, actor="u1", category=Category.AUTH, severity=Severity.LOW, age=timedelta()):
    return LogEntry(
        action=action,
        actor_id=actor,
        actor_role="learner",
        category=category,
        severity=severity,
        timestamp=datetime.now(UTC) - age,
    ).to_record()


def run_json(capsys, *args):
    code = main(list(args))
    out = capsys.readouterr().out
    return code, json.loads(out)


class TestParser:
    def test_migrate_defaults_to_status(self):
        parsed = create_parser().parse_args(["migrate"])
        assert parsed.migrate_command == "status"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestAuditCommands:
    """Tests for ``auditcore audit``."""

    def test_query_with_filters(self, capsys, config_file, data_dir):
        write_collection(
            data_dir,
            "audit-logs",
            [
                audit_record("LOGIN_FAILED", "u1", severity=Severity.HIGH),
                audit_record("LOGOUT", "u2", age=timedelta(minutes=5)),
            ],
        )
        code, rows = run_json(capsys, "--config", config_file, "--json", "audit", "query", "--actor", "u1")
        assert code == 0
        assert [r["action"] for r in rows] == ["LOGIN_FAILED"]

    def test_stats(self, capsys, config_file, data_dir):
        write_collection(
            data_dir,
            "audit-logs",
            [audit_record("LOGIN_FAILED", "u1"), audit_record("LOGOUT", "u1"), audit_record("LOGOUT", "u2")],
        )
        code, stats = run_json(capsys, "--config", config_file, "--json", "audit", "stats", "--days", "7")
        assert code == 0
        assert stats["total_logs"] == 3
        assert stats["by_action"] == {"LOGIN_FAILED": 1, "LOGOUT": 2}
        assert stats["top_actors"][0] == {"actor_id": "u1", "count": 2}

    def test_cleanup(self, capsys, config_file, data_dir):
        write_collection(
            data_dir,
            "audit-logs",
            [audit_record("OLD", age=timedelta(days=40)), audit_record("NEW")],
        )
        code, payload = run_json(capsys, "--config", config_file, "--json", "audit", "cleanup", "--days", "30")
        assert code == 0
        assert payload == {"deleted": 1}
        assert [d["action"] for d in read_collection(data_dir, "audit-logs").values()] == ["NEW"]

    def test_text_output(self, capsys, config_file, data_dir):
        write_collection(data_dir, "audit-logs", [audit_record("LOGOUT", "u7")])
        assert main(["--config", config_file, "--no-color", "audit", "query"]) == 0
        out = capsys.readouterr().out
        assert "Audit Entries (1)" in out
        assert "LOGOUT by u7" in out


class TestMigrateCommands:
    """Tests for ``auditcore migrate``."""

    def test_run_then_rollback(self, capsys, config_file, data_dir):
        write_collection(data_dir, "users_old", [{"id": "u1", "role": "student"}])

        code, payload = run_json(capsys, "--config", config_file, "--json", "migrate", "run")
        assert code == 0
        assert payload["success"] is True
        assert payload["migrations"][0] == "migrate_user_roles"
        assert read_collection(data_dir, "users")["u1"]["role"] == "learner"

        code, payload = run_json(capsys, "--config", config_file, "--json", "migrate", "rollback")
        assert code == 0
        assert payload["migrations"][-1] == "migrate_user_roles"
        assert read_collection(data_dir, "users") == {}

    def test_status(self, capsys, config_file):
        code, status = run_json(capsys, "--config", config_file, "--json", "migrate", "status")
        assert code == 0
        assert [m["name"] for m in status["registered"]][0] == "migrate_user_roles"
        assert status["stats"]["total_migrations"] == 0

    def test_failed_run_exits_nonzero(self, capsys, config_file, data_dir):
        (data_dir / "users_old.json").write_text("{broken")
        code = main(["--config", config_file, "--no-color", "migrate", "run"])
        assert code == 1
        assert "migrate_user_roles" in capsys.readouterr().out


def test_bad_config_exits_with_2(capsys, tmp_path):
    assert main(["--config", str(tmp_path / "missing.toml"), "migrate"]) == 2
    assert "Config file not found" in capsys.readouterr().err
