"""Base Celery task with progress tracking."""

import logging
import uuid
from celery import Task

from unitask.migrations import JobCancelled
from .progress import TaskProgressStore, TaskStatus

logger = logging.getLogger(__name__)


class ProgressTask(Task):
    """Base task class with progress tracking support."""

    abstract = True  # Don't register this as a concrete task

    def __init__(self):
        super().__init__()
        self._task_progress_id = None

    def apply_async(self, args=None, kwargs=None, **options):
        """Override to generate task ID if not provided."""
        if 'task_id' not in options:
            options['task_id'] = str(uuid.uuid4())
        return super().apply_async(args=args, kwargs=kwargs, **options)

    def __call__(self, *args, **kwargs):
        """Called when task starts executing."""
        self._task_progress_id = self.request.id
        return self.run(*args, **kwargs)

    def update_progress(self, progress: int, current_step: str = None):
        """Update task progress."""
        logger.debug(f"[update_progress] task_id={self._task_progress_id}, progress={progress}, step={current_step}")
        if self._task_progress_id:
            TaskProgressStore.update(self._task_progress_id, progress, current_step)
        else:
            logger.warning("[update_progress] No task_progress_id!")

    def set_complete(self, result=None):
        """Mark task as complete."""
        logger.info(f"[set_complete] task_id={self._task_progress_id}")
        if self._task_progress_id:
            TaskProgressStore.set_complete(self._task_progress_id, result)

    def set_failed(self, error_message: str, error_details: dict = None):
        """Mark task as failed."""
        logger.info(f"[set_failed] task_id={self._task_progress_id}, error={error_message}")
        if self._task_progress_id:
            TaskProgressStore.set_failed(self._task_progress_id, error_message, error_details)

    def is_cancelled(self) -> bool:
        """Check if task has been cancelled."""
        if not self._task_progress_id:
            return False
        progress = TaskProgressStore.get(self._task_progress_id)
        return bool(progress and progress.status == TaskStatus.CANCELLED)

    def progress_callback(self):
        """
        Callback for migration jobs: records progress and stops the job
        once it has been cancelled through the API.
        """
        def on_progress(percent: int, step: str):
            if self.is_cancelled():
                raise JobCancelled(f"Job {self._task_progress_id} cancelled")
            self.update_progress(percent, step)
        return on_progress
