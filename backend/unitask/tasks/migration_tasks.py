"""Background jobs for the V13 shadow migration."""

import logging
from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded

from .base import ProgressTask
from .progress import TaskProgressStore
from ..config import ROLLBACK_GRACE_SECONDS
from ..database import SessionLocal
from ..migrations import (
    JobCancelled,
    finalize_v13,
    migrate_shadow,
    rollback_shadow,
    validate_v13,
)

logger = logging.getLogger(__name__)


def _run_job(task: ProgressTask, action: str, job, **job_kwargs):
    """Run a migration job in its own session and record the outcome."""
    job_id = task.request.id
    logger.info(f"Starting {action}: job_id={job_id}, options={job_kwargs}", extra={"operation": action})

    if not TaskProgressStore.get(job_id):
        logger.error(f"No progress entry found for job {job_id}")
        TaskProgressStore.create(task_id=job_id, task_type="BACKGROUND", metadata={"action": action})

    db = SessionLocal()
    try:
        result = job(db, on_progress=task.progress_callback(), **job_kwargs)
        task.set_complete(result)
        return {"status": "completed", **result}
    except JobCancelled:
        db.rollback()
        logger.info(f"Job {job_id} cancelled", extra={"operation": action})
        return {"status": "cancelled"}
    except SoftTimeLimitExceeded:
        db.rollback()
        logger.error(f"Job {job_id} timed out", extra={"operation": action})
        task.set_failed("Job timed out")
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"{action} job {job_id} failed: {e}", extra={"operation": action})
        task.set_failed(str(e), {"error_type": type(e).__name__})
        raise
    finally:
        db.close()


@shared_task(bind=True, base=ProgressTask)
def migrate_shadow_task(self, dry_run: bool = False, batch_size: int = 400):
    """Write V13 shadow fields to every task not yet migrated."""
    return _run_job(self, "migrate_shadow", migrate_shadow, dry_run=dry_run, batch_size=batch_size)


@shared_task(bind=True, base=ProgressTask)
def validate_v13_task(self):
    """Check that every task is ready for V13-only readers."""
    return _run_job(self, "validate_v13", validate_v13)


@shared_task(bind=True, base=ProgressTask)
def rollback_shadow_task(self, batch_size: int = 500, grace_seconds: int = None):
    """Drop every V13 field from every task (emergency only)."""
    if grace_seconds is None:
        grace_seconds = ROLLBACK_GRACE_SECONDS
    return _run_job(
        self, "rollback_shadow", rollback_shadow,
        batch_size=batch_size, grace_seconds=grace_seconds,
    )


@shared_task(bind=True, base=ProgressTask)
def finalize_v13_task(self, force: bool = False, batch_size: int = 400):
    """Fold progress_v13 into progress and drop the shadow field."""
    return _run_job(self, "finalize_v13", finalize_v13, force=force, batch_size=batch_size)
