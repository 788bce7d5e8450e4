from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from fleet_backup import cli
from fleet_backup.exceptions import FatalEnumerationError, FatalListingError
from fleet_backup.schemas import BatchResult, ItemOutcome, Settings


def _result(operation, *statuses):
    return BatchResult(
        operation=operation,
        prefix="1700000000",
        started_at=datetime(2023, 11, 14, tzinfo=timezone.utc),
        items=[ItemOutcome(name=f"db{i}", stage="done", status=s) for i, s in enumerate(statuses)],
    )


@pytest.fixture
def logging_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "setup_logging", lambda *args: calls.append(args))
    return calls


@pytest.fixture
def wiring(monkeypatch, logging_calls):
    settings = Settings()
    monkeypatch.setattr(cli, "load_config", lambda path: settings)
    monkeypatch.setattr(cli, "get_storage_provider", lambda storage_config: MagicMock())
    pushes = []
    monkeypatch.setattr(cli, "push_metrics", lambda gateway, job: pushes.append((gateway, job)))
    return settings, pushes


def test_backup_success(wiring, monkeypatch):
    monkeypatch.setattr(cli, "run_backup_all", lambda settings, storage: _result("backup", "completed"))
    assert cli.main(["backup"]) == cli.EXIT_OK


def test_item_failures_keep_exit_zero_by_default(wiring, monkeypatch):
    monkeypatch.setattr(cli, "run_backup_all", lambda settings, storage: _result("backup", "failed", "completed"))
    assert cli.main(["backup"]) == cli.EXIT_OK


def test_strict_flag_reports_item_failures(wiring, monkeypatch):
    monkeypatch.setattr(cli, "run_backup_all", lambda settings, storage: _result("backup", "failed", "completed"))
    assert cli.main(["--strict", "backup"]) == cli.EXIT_ITEM_FAILURES


def test_fail_on_item_error_setting(wiring, monkeypatch):
    settings, _ = wiring
    settings.fail_on_item_error = True
    monkeypatch.setattr(cli, "run_restore_all", lambda *a, **kw: _result("restore", "failed"))
    assert cli.main(["restore", "--prefix", "1700000000"]) == cli.EXIT_ITEM_FAILURES


def test_enumeration_failure_exits_fatal(wiring, monkeypatch):
    def fail(settings, storage):
        raise FatalEnumerationError("Failed to list databases")

    monkeypatch.setattr(cli, "run_backup_all", fail)
    assert cli.main(["backup"]) == cli.EXIT_FATAL


def test_listing_failure_exits_fatal(wiring, monkeypatch):
    def fail(settings, storage, prefix, databases=None):
        raise FatalListingError("Failed to list backups")

    monkeypatch.setattr(cli, "run_restore_all", fail)
    assert cli.main(["restore", "--prefix", "1700000000"]) == cli.EXIT_FATAL


def test_restore_prefix_from_environment(wiring, monkeypatch):
    calls = []

    def restore(settings, storage, prefix, databases=None):
        calls.append((prefix, databases))
        return _result("restore", "completed")

    monkeypatch.setattr(cli, "run_restore_all", restore)
    monkeypatch.setenv("S3_DIR", "1700000000")

    assert cli.main(["restore", "--database", "userdb", "--database", "admindb"]) == cli.EXIT_OK
    assert calls == [("1700000000", ["userdb", "admindb"])]


def test_restore_without_prefix_is_usage_error(wiring, monkeypatch):
    monkeypatch.delenv("S3_DIR", raising=False)
    monkeypatch.setattr(cli, "run_restore_all", MagicMock())

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["restore"])
    assert exc_info.value.code == cli.EXIT_USAGE


def test_metrics_pushed_when_configured(wiring, monkeypatch):
    settings, pushes = wiring
    settings.metrics.pushgateway = "localhost:9091"
    monkeypatch.setattr(cli, "run_backup_all", lambda settings, storage: _result("backup", "completed"))

    cli.main(["backup"])

    assert pushes == [("localhost:9091", "fleet_backup")]


def test_log_options_reach_setup_logging(wiring, logging_calls, monkeypatch):
    monkeypatch.setattr(cli, "run_backup_all", lambda settings, storage: _result("backup", "completed"))

    cli.main(["--log-level", "warning", "--log-file", "/var/log/fleet.log", "backup"])

    assert logging_calls == [("WARNING", "/var/log/fleet.log")]
