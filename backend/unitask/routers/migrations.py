"""API endpoints for running V13 migration jobs in the background."""

import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, status

from unitask.auth import get_current_admin_user
from unitask.celery_app import celery_app
from unitask.models import User
from unitask.schemas import (
    FinalizeRequest,
    JobProgressResponse,
    RollbackRequest,
    ShadowMigrationRequest,
    StartJobResponse,
)
from unitask.tasks import (
    TaskProgressStore,
    TaskStatus,
    finalize_v13_task,
    migrate_shadow_task,
    rollback_shadow_task,
    validate_v13_task,
)

router = APIRouter(prefix="/api/migrations", tags=["migrations"])
logger = logging.getLogger(__name__)


def _start_job(celery_task, action: str, user: User, message: str, **job_kwargs) -> StartJobResponse:
    """Create the progress entry first, then start the Celery task under the same id."""
    job_id = str(uuid.uuid4())
    TaskProgressStore.create(
        task_id=job_id,
        task_type="BACKGROUND",
        metadata={"user_id": user.id, "action": action, "options": job_kwargs},
    )

    logger.info(
        f"Starting {action}: job_id={job_id}, options={job_kwargs}",
        extra={"operation": action, "job_id": job_id, "user_id": user.id}
    )
    celery_task.apply_async(kwargs=job_kwargs, task_id=job_id)

    return StartJobResponse(job_id=job_id, status="started", message=message)


@router.post("/v13/shadow", response_model=StartJobResponse)
async def start_shadow_migration(
    request: ShadowMigrationRequest,
    current_user: User = Depends(get_current_admin_user),
):
    """Write V13 shadow fields to every task not yet migrated."""
    message = "V13 shadow migration started" + (" (dry run)" if request.dry_run else "")
    return _start_job(
        migrate_shadow_task, "migrate_shadow", current_user, message,
        dry_run=request.dry_run, batch_size=request.batch_size,
    )


@router.post("/v13/validate", response_model=StartJobResponse)
async def start_validation(current_user: User = Depends(get_current_admin_user)):
    """Check every task against the V13 contract."""
    return _start_job(validate_v13_task, "validate_v13", current_user, "V13 validation started")


@router.post("/v13/rollback", response_model=StartJobResponse)
async def start_rollback(
    request: RollbackRequest,
    current_user: User = Depends(get_current_admin_user),
):
    """Emergency rollback of every V13 field. Cancel during the grace period to abort."""
    return _start_job(
        rollback_shadow_task, "rollback_shadow", current_user, "V13 rollback scheduled",
        batch_size=request.batch_size, grace_seconds=request.grace_seconds,
    )


@router.post("/v13/finalize", response_model=StartJobResponse)
async def start_finalize(
    request: FinalizeRequest,
    current_user: User = Depends(get_current_admin_user),
):
    """Fold progress_v13 into progress. Refused unless ``force`` is set."""
    if not request.force:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Finalize destroys legacy progress values; set force=true to run it"
        )
    return _start_job(
        finalize_v13_task, "finalize_v13", current_user, "V13 finalization started",
        force=True, batch_size=request.batch_size,
    )


@router.get("/jobs/{job_id}/progress", response_model=JobProgressResponse)
async def get_job_progress(job_id: str, current_user: User = Depends(get_current_admin_user)):
    """Get the current progress of a migration job."""
    progress = TaskProgressStore.get(job_id)
    if not progress:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found or expired")

    return JobProgressResponse(
        job_id=progress.task_id,
        action=progress.metadata.get("action"),
        status=progress.status.value,
        progress=progress.progress,
        current_step=progress.current_step,
        result=progress.result,
        error=progress.error,
    )


@router.delete("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, current_user: User = Depends(get_current_admin_user)):
    """
    Cancel a running job.

    The job sees the cancelled status at its next progress report and rolls
    back its open batch; batches already committed stay committed.
    """
    progress = TaskProgressStore.get(job_id)
    if not progress:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    if progress.status not in (TaskStatus.PENDING, TaskStatus.RUNNING):
        return {"status": "already_done", "message": "Job already finished"}

    celery_app.control.revoke(job_id)
    TaskProgressStore.set_cancelled(job_id)

    logger.info(f"Job cancelled: job_id={job_id}", extra={"operation": "cancel_job", "job_id": job_id, "user_id": current_user.id})
    return {"status": "cancelled", "message": "Job cancelled"}
