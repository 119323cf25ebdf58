"""Celery worker configuration.

Runs the scheduled payout job; payouts can also be triggered on demand
through the API.
"""

from celery import Celery
from celery.schedules import crontab

from settlement_core.config import settings

# Create Celery app
celery_app = Celery(
    "settlement_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["settlement_core.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,
    task_soft_time_limit=540,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Pay out pending commissions daily
        "process-commission-payouts": {
            "task": "settlement_core.tasks.process_commission_payouts",
            "schedule": crontab(hour=settings.payout_time_hour, minute=0),
        },
        # Re-send transfers whose outcome is still unknown
        "resume-stuck-payouts": {
            "task": "settlement_core.tasks.resume_stuck_payouts",
            "schedule": crontab(minute="*/30"),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
