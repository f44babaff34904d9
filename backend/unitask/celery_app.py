"""
Celery configuration for background jobs
"""

import logging
from celery import Celery
from celery.signals import worker_process_init

from unitask.config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND
from unitask.logging_config import setup_logging

logger = logging.getLogger(__name__)

celery_app = Celery(
    "unitask",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["unitask.tasks", "unitask.tasks.migration_tasks"],
)

# shared_task proxies resolve to this app from any thread, not only the importing one
celery_app.set_default()

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_track_started=True,
    task_time_limit=3600,  # 1 hour max per job
    # Result backend settings
    result_expires=86400,  # Results expire after 24 hours
    # Worker settings; migration jobs hold one DB session each
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)


@worker_process_init.connect
def on_worker_init(sender=None, **kwargs):
    """Configure logging in each worker process"""
    setup_logging()
    logger.info("Celery worker process initialized")
