"""
V13 shadow migration jobs.

Lifecycle:
1. ``migrate_shadow``  writes ``progress_v13`` and the hierarchy fields,
   leaving legacy ``progress`` untouched.
2. ``validate_v13``    checks every row is ready for V13-only readers.
3. ``rollback_shadow`` (emergency) drops every V13 field again.
4. ``finalize_v13``    folds ``progress_v13`` into ``progress`` and drops the
   shadow field. Destructive; requires ``force=True``.

Every job takes a SQLAlchemy session and an optional
``on_progress(percent, step)`` callback, commits in batches, and returns a
plain result dict.
"""

import logging
import math
import time
from collections.abc import Mapping
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from unitask.data_migration import resolve_progress
from unitask.hierarchy import assert_valid_hierarchy
from unitask.models import PlanStatus, Task, TaskType

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

DEFAULT_BATCH_SIZE = 400
DEFAULT_ROLLBACK_BATCH_SIZE = 500
MAX_REPORTED_ERRORS = 20
REPORT_EVERY = 50


class MigrationError(Exception):
    """Base error for V13 migration jobs."""


class FinalizeLockedError(MigrationError):
    """Raised when finalize is attempted without an explicit force flag."""


class JobCancelled(MigrationError):
    """Raised from a progress callback to stop a running job."""


def _noop_progress(percent: int, step: str) -> None:
    pass


def _percent(done: int, total: int, start: int = 5, end: int = 95) -> int:
    if total <= 0:
        return end
    return start + int((done / total) * (end - start))


def _should_report(index: int, total: int) -> bool:
    return index % REPORT_EVERY == 0 or index == total


def _load_tasks(db: Session) -> List[Task]:
    return db.query(Task).order_by(Task.id).all()


def _is_migrated(task: Task) -> bool:
    return task.progress_v13 is not None and bool(task.type) and task.order is not None


def _legacy_progress(task: Task) -> dict:
    # Read only the legacy field, even if a shadow value exists
    return resolve_progress({"progress": task.progress}).to_dict()


def _shadow_update(task: Task) -> dict:
    """
    Fields to write for a task not yet fully migrated.

    An existing ``progress_v13`` mapping is authoritative and kept as is;
    only hierarchy fields that are still missing are filled in.
    """
    update = {}
    if not isinstance(task.progress_v13, Mapping):
        update["progress_v13"] = _legacy_progress(task)
    if not task.type:
        update["type"] = TaskType.TASK.value
    if task.order is None:
        update["order"] = _creation_order(task)
    if not isinstance(task.ancestor_ids, list):
        update["ancestor_ids"] = []
    if not task.plan_status:
        update["plan_status"] = PlanStatus.DETACHED.value
    return update


def _creation_order(task: Task) -> float:
    if task.created_at is not None:
        return task.created_at.timestamp()
    return time.time()


def migrate_shadow(
    db: Session,
    dry_run: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> dict:
    """Populate V13 shadow fields on every task not yet migrated."""
    on_progress = on_progress or _noop_progress
    logger.info(
        f"Starting V13 shadow migration dry_run={dry_run} batch_size={batch_size}",
        extra={"operation": "migrate_shadow"}
    )

    on_progress(1, "Loading tasks...")
    tasks = _load_tasks(db)
    total = len(tasks)
    if total == 0:
        logger.info("No tasks found to migrate")
        return {"scanned": 0, "processed": 0, "skipped": 0, "dry_run": dry_run}

    processed = 0
    skipped = 0
    pending = 0
    for index, task in enumerate(tasks, start=1):
        if _is_migrated(task):
            skipped += 1
        else:
            update = _shadow_update(task)
            if dry_run:
                logger.info(f"[DRY] Would update {task.id} ({task.friendly_id or 'NoID'}): {update}")
            else:
                for key, value in update.items():
                    setattr(task, key, value)
                pending += 1
            processed += 1

        if pending >= batch_size:
            db.commit()
            logger.info(f"Committed batch of {pending} tasks")
            pending = 0

        if _should_report(index, total):
            on_progress(_percent(index, total), f"Scanned {index}/{total} tasks")

    if pending > 0:
        db.commit()

    result = {"scanned": total, "processed": processed, "skipped": skipped, "dry_run": dry_run}
    logger.info(f"V13 shadow migration complete: {result}", extra={"operation": "migrate_shadow"})
    return result


def _validate_task(task: Task) -> List[str]:
    errors = []
    shadow = task.progress_v13
    if shadow is None:
        errors.append("Missing progressV13")
    if not task.type:
        errors.append("Missing type")
    if task.order is None or (isinstance(task.order, float) and math.isnan(task.order)):
        errors.append(f"Invalid order: {task.order}")
    if not isinstance(task.ancestor_ids, list):
        errors.append("Missing/Invalid ancestorIds")

    if isinstance(shadow, dict):
        legacy_actual = _legacy_progress(task)["actual"]
        if shadow.get("actual") != legacy_actual:
            errors.append(f"Progress Mismatch! Legacy: {legacy_actual}, V13: {shadow.get('actual')}")

    if isinstance(task.ancestor_ids, list):
        check = assert_valid_hierarchy(task.to_document())
        if not check.valid:
            errors.append(check.error)

    return errors


def validate_v13(db: Session, on_progress: Optional[ProgressCallback] = None) -> dict:
    """Report every task that is not ready for V13-only readers."""
    on_progress = on_progress or _noop_progress
    logger.info("Starting V13 data validation", extra={"operation": "validate_v13"})

    on_progress(1, "Loading tasks...")
    tasks = _load_tasks(db)
    total = len(tasks)
    errors: List[str] = []
    valid = 0

    for index, task in enumerate(tasks, start=1):
        task_errors = _validate_task(task)
        if task_errors:
            label = task.friendly_id or task.id
            errors.extend(f"[{label}] {message}" for message in task_errors)
        else:
            valid += 1
        if _should_report(index, total):
            on_progress(_percent(index, total), f"Validated {index}/{total} tasks")

    if errors:
        logger.warning(
            f"V13 validation found {len(errors)} errors across {total - valid} tasks",
            extra={"operation": "validate_v13"}
        )
    else:
        logger.info("All checks passed, data is ready for V13", extra={"operation": "validate_v13"})

    return {"total": total, "valid": valid, "errors": errors, "ok": not errors}


def rollback_shadow(
    db: Session,
    batch_size: int = DEFAULT_ROLLBACK_BATCH_SIZE,
    grace_seconds: int = 0,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> dict:
    """
    Emergency rollback: drop every V13 field from every task.

    Legacy ``progress`` is never touched. The grace period is reported one
    second at a time so a cancelling callback can abort before any write.
    """
    on_progress = on_progress or _noop_progress
    sleep = sleep or time.sleep
    logger.warning(
        f"Starting V13 shadow rollback, grace period {grace_seconds}s",
        extra={"operation": "rollback_shadow"}
    )

    for remaining in range(grace_seconds, 0, -1):
        on_progress(0, f"Rolling back in {remaining}s...")
        sleep(1)

    on_progress(1, "Loading tasks...")
    tasks = _load_tasks(db)
    total = len(tasks)
    updated = 0
    pending = 0

    for index, task in enumerate(tasks, start=1):
        task.progress_v13 = None
        task.type = None
        task.order = None
        task.ancestor_ids = None
        task.parent_id = None
        task.plan_id = None
        pending += 1
        updated += 1

        if pending >= batch_size:
            db.commit()
            logger.info(f"Rolled back {updated} tasks...")
            pending = 0

        if _should_report(index, total):
            on_progress(_percent(index, total), f"Rolled back {index}/{total} tasks")

    if pending > 0:
        db.commit()

    logger.warning(f"Rollback complete, {updated} tasks cleaned", extra={"operation": "rollback_shadow"})
    return {"updated": updated}


def finalize_v13(
    db: Session,
    force: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> dict:
    """Make ``progress_v13`` the one progress field. Destroys legacy values."""
    on_progress = on_progress or _noop_progress
    if not force:
        raise FinalizeLockedError(
            "Finalize destroys legacy progress values; pass force to run it. "
            "Ensure V13 has been running in production stably for at least 24h."
        )

    logger.warning("Starting V13 finalization", extra={"operation": "finalize_v13"})
    on_progress(1, "Loading tasks...")
    tasks = _load_tasks(db)
    total = len(tasks)
    finalized = 0
    pending = 0

    for index, task in enumerate(tasks, start=1):
        if task.progress_v13 is not None:
            task.progress = task.progress_v13
            task.progress_v13 = None
            pending += 1
            finalized += 1

        if pending >= batch_size:
            db.commit()
            pending = 0

        if _should_report(index, total):
            on_progress(_percent(index, total), f"Finalized {index}/{total} tasks")

    if pending > 0:
        db.commit()

    logger.warning(f"V13 finalization complete, {finalized} tasks finalized", extra={"operation": "finalize_v13"})
    return {"finalized": finalized}
