from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from unitask.data_migration import ResolvedProgress, resolve_progress
from unitask.models import TaskStatus, TaskType


# ========== Auth Schemas ==========
class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserProfileResponse(BaseModel):
    id: int
    name: str
    email: str
    tenant_id: str
    is_admin: bool
    is_active: bool
    created_at: Optional[str] = None


class SetupRequest(BaseModel):
    """First admin account, created once per installation."""
    name: str
    email: EmailStr
    password: str = Field(min_length=8)
    tenant_id: str


# ========== Task Schemas ==========
class ProgressUpdate(BaseModel):
    actual: float = Field(ge=0)
    planned: float = Field(default=0, ge=0)
    aggregated: Optional[float] = Field(default=None, ge=0)


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    project_id: Optional[str] = None
    week_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    type: TaskType = TaskType.TASK
    parent_id: Optional[str] = None
    progress: Optional[ProgressUpdate] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    friendly_id: Optional[str] = None
    tenant_id: str
    project_id: Optional[str] = None
    week_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: str
    is_active: bool = True
    type: Optional[str] = None
    order: Optional[float] = None
    parent_id: Optional[str] = None
    ancestor_ids: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    progress: ResolvedProgress

    @field_serializer("progress")
    def serialize_progress(self, progress: ResolvedProgress) -> dict:
        # aggregated only appears when the shadow field carried it
        return progress.to_dict()

    @classmethod
    def from_task(cls, task) -> "TaskResponse":
        """Build a response with resolved progress instead of the raw columns."""
        return cls(
            id=task.id,
            friendly_id=task.friendly_id,
            tenant_id=task.tenant_id,
            project_id=task.project_id,
            week_id=task.week_id,
            title=task.title,
            description=task.description,
            status=task.status,
            is_active=task.is_active if task.is_active is not None else True,
            type=task.type,
            order=task.order,
            parent_id=task.parent_id,
            ancestor_ids=task.ancestor_ids,
            created_at=task.created_at,
            progress=resolve_progress(task),
        )


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]


class TreeNodeResponse(BaseModel):
    id: str
    friendly_id: Optional[str] = None
    title: Optional[str] = None
    type: str
    status: Optional[str] = None
    order: Optional[float] = None
    level: int
    progress: Dict[str, Union[int, float]]
    children: List["TreeNodeResponse"] = []


# ========== Migration Job Schemas ==========
class ShadowMigrationRequest(BaseModel):
    dry_run: bool = False
    batch_size: int = Field(default=400, ge=1, le=500)


class RollbackRequest(BaseModel):
    batch_size: int = Field(default=500, ge=1, le=500)
    grace_seconds: Optional[int] = Field(default=None, ge=0, le=60)


class FinalizeRequest(BaseModel):
    force: bool = False
    batch_size: int = Field(default=400, ge=1, le=500)


class StartJobResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobProgressResponse(BaseModel):
    job_id: str
    action: Optional[str] = None
    status: str
    progress: int
    current_step: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[Dict] = None
