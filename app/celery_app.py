"""
Ledger Reports - Celery Configuration

Celery configuration for report builds and the artifact retention sweep.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings


redis_url = settings.redis_url

# Create Celery app
celery_app = Celery(
    'ledger_reports',
    broker=redis_url,
    backend=redis_url,
    include=['app.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone='UTC',
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=1800,  # 30 minutes
    task_soft_time_limit=1500,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=settings.ticket_ttl_seconds,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Remove report files past the retention window every hour
        'prune-report-artifacts': {
            'task': 'app.tasks.celery_tasks.prune_report_artifacts_task',
            'schedule': crontab(minute=15),
        },
    },
)


celery_app.conf.task_routes = {
    'app.tasks.celery_tasks.build_general_ledger_task': {'queue': 'reports'},
    'app.tasks.celery_tasks.*': {'queue': 'default'},
}
