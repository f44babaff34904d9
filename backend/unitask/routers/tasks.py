"""API endpoints for tenant tasks and their resolved progress."""

import logging
import re
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from unitask.aggregation import ProgressSummary, summarize_progress
from unitask.auth import get_current_active_user
from unitask.data_migration import ResolvedProgress, resolve_progress
from unitask.database import get_db
from unitask.hierarchy import assert_valid_hierarchy, build_tree, recalculate_ancestors
from unitask.models import PlanStatus, Task, TaskStatus, User, generate_task_id
from unitask.schemas import (
    ProgressUpdate,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TreeNodeResponse,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


def _tenant_tasks(db: Session, user: User):
    return db.query(Task).filter(Task.tenant_id == user.tenant_id, Task.is_active == True)


def _get_task_or_404(db: Session, user: User, task_id: str) -> Task:
    task = _tenant_tasks(db, user).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


def _friendly_prefix(project_id: str) -> str:
    """First three letters of the project, non-letters replaced by X."""
    return re.sub(r"[^A-Z]", "X", project_id[:3].upper())


def _legacy_progress_value(current, progress: ProgressUpdate):
    """Mirror a shadow write into the legacy field, keeping its existing shape."""
    if isinstance(current, dict):
        return {"actual": progress.actual, "planned": progress.planned}
    return progress.actual


@router.get("", response_model=TaskListResponse)
def list_tasks(
    project_id: Optional[str] = None,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """List the tenant's active tasks with resolved progress."""
    query = _tenant_tasks(db, current_user)
    if project_id:
        query = query.filter(Task.project_id == project_id)
    if status_filter:
        query = query.filter(Task.status == status_filter.value)

    tasks = query.order_by(Task.order, Task.created_at).all()
    return TaskListResponse(tasks=[TaskResponse.from_task(task) for task in tasks])


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    request: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Create a task. New rows are written in the V13 shape."""
    parent = None
    if request.parent_id:
        parent = _get_task_or_404(db, current_user, request.parent_id)

    task = Task(
        id=generate_task_id(),
        tenant_id=current_user.tenant_id,
        project_id=request.project_id,
        week_id=request.week_id,
        title=request.title,
        description=request.description,
        status=request.status.value,
        created_by=str(current_user.id),
        type=request.type.value,
        order=time.time(),
        parent_id=parent.id if parent else None,
        ancestor_ids=recalculate_ancestors(parent.to_document() if parent else None),
        plan_status=PlanStatus.DETACHED.value,
    )

    check = assert_valid_hierarchy(task.to_document())
    if not check.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.error)

    progress = request.progress or ProgressUpdate(actual=0, planned=0)
    task.progress_v13 = progress.model_dump(exclude_none=True)
    task.progress = progress.actual

    if request.project_id:
        max_number = db.query(func.max(Task.task_number)).filter(
            Task.tenant_id == current_user.tenant_id,
            Task.project_id == request.project_id,
        ).scalar()
        task.task_number = (max_number or 0) + 1
        task.friendly_id = f"{_friendly_prefix(request.project_id)}-{task.task_number}"

    db.add(task)
    db.commit()
    db.refresh(task)

    logger.info(
        f"Task created: task_id={task.id}, friendly_id={task.friendly_id}",
        extra={"operation": "create_task", "task_id": task.id, "user_id": current_user.id, "tenant_id": current_user.tenant_id}
    )
    return TaskResponse.from_task(task)


@router.get("/tree", response_model=List[TreeNodeResponse])
def get_task_tree(
    project_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Hierarchy view of the tenant's tasks, optionally limited to one project."""
    documents = [task.to_document() for task in _tenant_tasks(db, current_user).all()]
    return [node.to_dict() for node in build_tree(documents, project_id=project_id)]


@router.get("/summary", response_model=ProgressSummary)
def get_progress_summary(
    project_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Total and average progress across the tenant's (or one project's) tasks."""
    query = _tenant_tasks(db, current_user)
    if project_id:
        query = query.filter(Task.project_id == project_id)
    return summarize_progress(query.all())


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return TaskResponse.from_task(_get_task_or_404(db, current_user, task_id))


@router.get("/{task_id}/progress", response_model=ResolvedProgress, response_model_exclude_none=True)
def get_task_progress(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Resolved progress of a single task, whichever schema generation wrote it."""
    return resolve_progress(_get_task_or_404(db, current_user, task_id))


@router.put("/{task_id}/progress", response_model=ResolvedProgress, response_model_exclude_none=True)
def update_task_progress(
    task_id: str,
    request: ProgressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Record progress through the V13 write path.

    The shadow field becomes authoritative for this task; the legacy field is
    kept in step so pre-V13 readers and ``validate_v13`` still agree.
    """
    task = _get_task_or_404(db, current_user, task_id)
    task.progress_v13 = request.model_dump(exclude_none=True)
    task.progress = _legacy_progress_value(task.progress, request)
    db.commit()
    db.refresh(task)

    logger.info(
        f"Task progress updated: task_id={task.id}, actual={request.actual}, planned={request.planned}",
        extra={"operation": "update_progress", "task_id": task.id, "user_id": current_user.id}
    )
    return resolve_progress(task)
