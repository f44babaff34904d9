"""Progress tracking for background jobs using Redis."""

from enum import Enum
from typing import Optional, Any
from datetime import datetime, timedelta, timezone
import redis
from pydantic import BaseModel

from unitask.config import CELERY_BROKER_URL

# Redis connection (same as Celery broker)
redis_client = redis.Redis.from_url(CELERY_BROKER_URL, decode_responses=True)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskProgress(BaseModel):
    task_id: str
    task_type: str  # "BACKGROUND" or "INLINE"
    status: TaskStatus
    progress: int  # 0-100
    current_step: Optional[str] = None
    metadata: dict = {}
    result: Optional[Any] = None
    error: Optional[dict] = None
    created_at: str
    updated_at: str
    expires_at: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskProgressStore:
    """Store and retrieve job progress from Redis with TTL."""

    RUNNING_TTL = 300  # 5 minutes for running jobs
    COMPLETED_TTL = 600  # 10 minutes for finished jobs

    @staticmethod
    def _key(task_id: str) -> str:
        return f"task_progress:{task_id}"

    @classmethod
    def create(cls, task_id: str, task_type: str, metadata: dict = None) -> TaskProgress:
        """Create initial progress entry."""
        now = _utcnow()
        progress = TaskProgress(
            task_id=task_id,
            task_type=task_type,
            status=TaskStatus.PENDING,
            progress=0,
            metadata=metadata or {},
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
            expires_at=(now + timedelta(seconds=cls.RUNNING_TTL)).isoformat()
        )
        cls._save(progress, cls.RUNNING_TTL)
        return progress

    @classmethod
    def update(cls, task_id: str, progress: int = None, current_step: str = None, status: TaskStatus = None):
        """Update progress and refresh TTL. A cancelled job stays cancelled."""
        data = cls.get(task_id)
        if not data or data.status == TaskStatus.CANCELLED:
            return
        if progress is not None:
            data.progress = progress
        data.status = status if status is not None else TaskStatus.RUNNING
        if current_step:
            data.current_step = current_step
        data.updated_at = _utcnow().isoformat()
        cls._save(data, cls.RUNNING_TTL)

    @classmethod
    def set_complete(cls, task_id: str, result: Any = None):
        """Mark job as complete."""
        data = cls.get(task_id)
        if not data:
            return
        data.status = TaskStatus.COMPLETED
        data.progress = 100
        data.result = result
        data.updated_at = _utcnow().isoformat()
        cls._save(data, cls.COMPLETED_TTL)

    @classmethod
    def set_failed(cls, task_id: str, error_message: str = None, error_details: dict = None):
        """Mark job as failed."""
        data = cls.get(task_id)
        if not data:
            return
        data.status = TaskStatus.FAILED
        data.error = {"message": error_message or "Unknown error", "details": error_details or {}}
        data.updated_at = _utcnow().isoformat()
        cls._save(data, cls.COMPLETED_TTL)

    @classmethod
    def set_cancelled(cls, task_id: str):
        """Mark job as cancelled."""
        data = cls.get(task_id)
        if not data:
            return
        data.status = TaskStatus.CANCELLED
        data.updated_at = _utcnow().isoformat()
        cls._save(data, cls.COMPLETED_TTL)

    @classmethod
    def get(cls, task_id: str) -> Optional[TaskProgress]:
        """Get progress by job ID."""
        data = redis_client.get(cls._key(task_id))
        if not data:
            return None
        return TaskProgress.model_validate_json(data)

    @classmethod
    def _save(cls, progress: TaskProgress, ttl: int):
        """Save progress to Redis with TTL."""
        redis_client.setex(cls._key(progress.task_id), ttl, progress.model_dump_json())
