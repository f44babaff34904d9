import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, Text, JSON, Index
from sqlalchemy.sql import func

from unitask.database import Base


class TaskStatus(str, enum.Enum):
    """Workflow status of a task."""
    PENDING = "pending"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskType(str, enum.Enum):
    """Hierarchy node type introduced by the V13 schema."""
    TASK = "task"
    EPIC = "epic"
    MILESTONE = "milestone"
    ROOT_EPIC = "root_epic"
    SUBTASK = "subtask"


class PlanStatus(str, enum.Enum):
    DETACHED = "detached"
    ATTACHED = "attached"


def generate_task_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    tenant_id = Column(String, nullable=False, index=True)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Task(Base):
    """
    A task record.

    ``progress`` is the legacy field and holds either a bare number or an
    ``{actual, planned}`` object depending on when the row was written.
    ``progress_v13`` is the shadow field written by V13-aware paths.
    Read progress through ``unitask.data_migration.resolve_progress``,
    never from either column directly.
    """
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=generate_task_id)
    friendly_id = Column(String, nullable=True)
    task_number = Column(Integer, nullable=True)
    tenant_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=True, index=True)
    week_id = Column(String, nullable=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=TaskStatus.PENDING.value)
    is_active = Column(Boolean, default=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Legacy progress (number or object)
    progress = Column(JSON(none_as_null=True), nullable=True)

    # V13 shadow fields
    progress_v13 = Column(JSON(none_as_null=True), nullable=True)
    type = Column(String, nullable=True)
    order = Column("order", Float, nullable=True)
    ancestor_ids = Column(JSON(none_as_null=True), nullable=True)
    parent_id = Column(String, nullable=True, index=True)
    plan_id = Column(String, nullable=True)
    plan_status = Column(String, nullable=True)

    __table_args__ = (
        Index('idx_tasks_tenant_project', 'tenant_id', 'project_id'),
    )

    def to_document(self) -> dict:
        """Return the camelCase document view of this task."""
        return {
            "id": self.id,
            "friendlyId": self.friendly_id,
            "taskNumber": self.task_number,
            "tenantId": self.tenant_id,
            "projectId": self.project_id,
            "weekId": self.week_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "isActive": self.is_active,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "progress": self.progress,
            "progressV13": self.progress_v13,
            "type": self.type,
            "order": self.order,
            "ancestorIds": self.ancestor_ids,
            "parentId": self.parent_id,
            "planId": self.plan_id,
            "planStatus": self.plan_status,
        }
