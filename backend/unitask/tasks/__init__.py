from .progress import TaskProgressStore, TaskProgress, TaskStatus
from .base import ProgressTask
from .migration_tasks import migrate_shadow_task, validate_v13_task, rollback_shadow_task, finalize_v13_task

__all__ = [
    'TaskProgressStore',
    'TaskProgress',
    'TaskStatus',
    'ProgressTask',
    'migrate_shadow_task',
    'validate_v13_task',
    'rollback_shadow_task',
    'finalize_v13_task',
]
