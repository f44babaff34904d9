from datetime import datetime, timezone

import pytest

from unitask.data_migration import resolve_progress
from unitask.migrations import (
    FinalizeLockedError,
    JobCancelled,
    finalize_v13,
    migrate_shadow,
    rollback_shadow,
    validate_v13,
)
from unitask.models import Task


@pytest.fixture()
def legacy_tasks(make_task):
    created = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    return [
        make_task(id="t-number", friendly_id="EUP-1", progress=75, created_at=created),
        make_task(id="t-object", friendly_id="EUP-2", progress={"actual": 5, "planned": 10}),
        make_task(id="t-none", progress=None),
    ]


def reload(db_session, task_id):
    db_session.expire_all()
    return db_session.get(Task, task_id)


class TestMigrateShadow:
    def test_writes_shadow_fields_and_keeps_legacy(self, db_session, legacy_tasks):
        result = migrate_shadow(db_session)
        assert result == {"scanned": 3, "processed": 3, "skipped": 0, "dry_run": False}

        number = reload(db_session, "t-number")
        assert number.progress == 75
        assert number.progress_v13 == {"actual": 75, "planned": 0}
        assert number.type == "task"
        assert number.ancestor_ids == []
        assert number.plan_status == "detached"
        assert number.parent_id is None
        assert number.order == pytest.approx(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc).timestamp(), abs=86400)

        obj = reload(db_session, "t-object")
        assert obj.progress == {"actual": 5, "planned": 10}
        assert obj.progress_v13 == {"actual": 5, "planned": 10}

        assert reload(db_session, "t-none").progress_v13 == {"actual": 0, "planned": 0}

    def test_resolved_progress_is_unchanged_by_migration(self, db_session, legacy_tasks):
        before = {t.id: resolve_progress(t).to_dict() for t in legacy_tasks}
        migrate_shadow(db_session)
        db_session.expire_all()
        after = {t.id: resolve_progress(t).to_dict() for t in db_session.query(Task).all()}
        assert after == before

    def test_skips_already_migrated(self, db_session, legacy_tasks, make_task):
        make_task(id="t-done", progress=10, progress_v13={"actual": 99, "planned": 100}, type="epic", order=1.0)
        result = migrate_shadow(db_session)
        assert result["skipped"] == 1
        assert result["processed"] == 3
        assert reload(db_session, "t-done").progress_v13 == {"actual": 99, "planned": 100}

    def test_existing_shadow_is_kept_when_filling_hierarchy(self, db_session, make_task):
        make_task(id="t-half", progress=10, progress_v13={"actual": 60, "planned": 80, "aggregated": 70})
        assert migrate_shadow(db_session)["processed"] == 1

        task = reload(db_session, "t-half")
        assert task.progress_v13 == {"actual": 60, "planned": 80, "aggregated": 70}
        assert task.type == "task"
        assert task.order is not None
        assert task.ancestor_ids == []

    def test_existing_hierarchy_fields_are_kept(self, db_session, make_task):
        make_task(id="t-half", progress=10, type="epic", ancestor_ids=["root"], parent_id="root",
                  plan_status="attached")
        migrate_shadow(db_session)

        task = reload(db_session, "t-half")
        assert task.progress_v13 == {"actual": 10, "planned": 0}
        assert task.type == "epic"
        assert task.ancestor_ids == ["root"]
        assert task.plan_status == "attached"

    def test_dry_run_writes_nothing(self, db_session, legacy_tasks):
        result = migrate_shadow(db_session, dry_run=True)
        assert result["processed"] == 3
        assert result["dry_run"] is True
        assert all(reload(db_session, t).progress_v13 is None for t in ("t-number", "t-object", "t-none"))

    def test_batches_commit(self, db_session, legacy_tasks, monkeypatch):
        commits = []
        original_commit = db_session.commit
        monkeypatch.setattr(db_session, "commit", lambda: commits.append(1) or original_commit())
        migrate_shadow(db_session, batch_size=2)
        assert len(commits) == 2

    def test_empty_table(self, db_session):
        assert migrate_shadow(db_session) == {"scanned": 0, "processed": 0, "skipped": 0, "dry_run": False}

    def test_reports_progress(self, db_session, legacy_tasks):
        reports = []
        migrate_shadow(db_session, on_progress=lambda percent, step: reports.append((percent, step)))
        assert reports[0][0] == 1
        assert reports[-1] == (95, "Scanned 3/3 tasks")


class TestValidate:
    def test_unmigrated_tasks_fail(self, db_session, legacy_tasks):
        result = validate_v13(db_session)
        assert not result["ok"]
        assert result["valid"] == 0
        assert "[EUP-1] Missing progressV13" in result["errors"]
        assert "[t-none] Missing type" in result["errors"]

    def test_migrated_tasks_pass(self, db_session, legacy_tasks):
        migrate_shadow(db_session)
        result = validate_v13(db_session)
        assert result == {"total": 3, "valid": 3, "errors": [], "ok": True}

    def test_progress_mismatch(self, db_session, make_task):
        make_task(id="t1", progress=10, progress_v13={"actual": 20, "planned": 0},
                  type="task", order=1.0, ancestor_ids=[])
        result = validate_v13(db_session)
        assert result["errors"] == ["[t1] Progress Mismatch! Legacy: 10, V13: 20"]

    def test_hierarchy_errors(self, db_session, make_task):
        make_task(id="t1", progress=0, progress_v13={"actual": 0, "planned": 0},
                  type="task", order=1.0, ancestor_ids=["p"])
        result = validate_v13(db_session)
        assert result["valid"] == 0
        assert any("Orphaned Task" in e for e in result["errors"])

    def test_counts_valid_tasks_per_task(self, db_session, legacy_tasks, make_task):
        migrate_shadow(db_session)
        make_task(id="t-bad", progress=1)
        result = validate_v13(db_session)
        assert result["total"] == 4
        assert result["valid"] == 3


class TestRollback:
    def test_drops_v13_fields_only(self, db_session, legacy_tasks):
        migrate_shadow(db_session)
        result = rollback_shadow(db_session)
        assert result == {"updated": 3}

        task = reload(db_session, "t-object")
        assert task.progress == {"actual": 5, "planned": 10}
        assert task.progress_v13 is None
        assert task.type is None
        assert task.order is None
        assert task.ancestor_ids is None

    def test_grace_period_waits_before_writing(self, db_session, legacy_tasks):
        migrate_shadow(db_session)
        slept = []
        rollback_shadow(db_session, grace_seconds=3, sleep=slept.append)
        assert slept == [1, 1, 1]

    def test_cancel_during_grace_period(self, db_session, legacy_tasks):
        migrate_shadow(db_session)

        def cancel(percent, step):
            raise JobCancelled("cancelled")

        with pytest.raises(JobCancelled):
            rollback_shadow(db_session, grace_seconds=5, on_progress=cancel, sleep=lambda s: None)
        assert reload(db_session, "t-number").progress_v13 is not None


class TestFinalize:
    def test_requires_force(self, db_session, legacy_tasks):
        migrate_shadow(db_session)
        with pytest.raises(FinalizeLockedError):
            finalize_v13(db_session)
        assert reload(db_session, "t-number").progress == 75

    def test_folds_shadow_into_progress(self, db_session, legacy_tasks, make_task):
        migrate_shadow(db_session)
        task = reload(db_session, "t-number")
        task.progress_v13 = {"actual": 80, "planned": 100, "aggregated": 90}
        db_session.commit()

        result = finalize_v13(db_session, force=True)
        assert result == {"finalized": 3}

        task = reload(db_session, "t-number")
        assert task.progress == {"actual": 80, "planned": 100, "aggregated": 90}
        assert task.progress_v13 is None
        # Finalized rows resolve through the legacy-object path
        assert resolve_progress(task).to_dict() == {"actual": 80, "planned": 100}

    def test_unmigrated_rows_untouched(self, db_session, make_task):
        make_task(id="legacy", progress=33)
        assert finalize_v13(db_session, force=True) == {"finalized": 0}
        assert reload(db_session, "legacy").progress == 33
