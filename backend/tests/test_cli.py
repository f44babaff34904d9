import json
import logging

import pytest

from unitask.cli import main
from unitask.logging_config import JSONFormatter
from unitask.models import Task


@pytest.fixture(autouse=True)
def restore_logging():
    # main() reconfigures the root logger onto the captured stdout
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture()
def legacy_tasks(make_task):
    make_task(id="t1", friendly_id="CLI-1", progress=40)
    make_task(id="t2", progress={"actual": 2, "planned": 4})


def test_migrate_dry_run(legacy_tasks, db_session, capsys):
    assert main(["migrate", "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "Scanned: 2, Processed: 2, Skipped (already migrated): 0" in out
    assert "(No changes made to DB)" in out
    assert db_session.get(Task, "t1").progress_v13 is None


def test_validate_exit_codes(legacy_tasks, capsys):
    assert main(["validate"]) == 1
    captured = capsys.readouterr()
    assert "Total tasks: 2, Valid V13 tasks: 0" in captured.out
    assert "[CLI-1] Missing progressV13" in captured.err
    assert (captured.out + captured.err).count("[CLI-1] Missing progressV13") == 1

    assert main(["migrate"]) == 0
    assert main(["validate"]) == 0
    assert "All checks passed" in capsys.readouterr().out


def test_finalize_is_locked_without_flag(legacy_tasks, db_session, capsys):
    main(["migrate"])
    assert main(["finalize"]) == 1
    assert "--force-finalize" in capsys.readouterr().err
    db_session.expire_all()
    assert db_session.get(Task, "t1").progress == 40

    assert main(["finalize", "--force-finalize"]) == 0
    db_session.expire_all()
    assert db_session.get(Task, "t1").progress == {"actual": 40, "planned": 0}


def test_rollback(legacy_tasks, db_session, capsys):
    main(["migrate"])
    assert main(["rollback", "--grace-seconds", "0"]) == 0
    assert "2 tasks cleaned" in capsys.readouterr().out
    db_session.expire_all()
    assert db_session.get(Task, "t2").type is None


def test_rollback_interrupted(legacy_tasks, monkeypatch, capsys):
    def interrupt(seconds):
        raise KeyboardInterrupt

    monkeypatch.setattr("unitask.migrations.v13.time.sleep", interrupt)
    assert main(["rollback", "--grace-seconds", "3"]) == 130
    assert "Aborted." in capsys.readouterr().err


def test_unknown_command():
    with pytest.raises(SystemExit):
        main(["explode"])


def test_json_formatter_includes_context():
    record = logging.LogRecord("unitask.test", logging.INFO, __file__, 1, "Job done", None, None)
    record.job_id = "job-1"
    record.operation = "migrate_shadow"
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "Job done"
    assert data["job_id"] == "job-1"
    assert data["operation"] == "migrate_shadow"
    assert "user_id" not in data
