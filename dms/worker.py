"""Celery worker configuration.

Periodic jobs:
- Daily reminder to institutions whose chargeback deadline has passed
"""

from celery import Celery
from celery.schedules import crontab

from dms.config import settings

celery_app = Celery(
    "dms_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["dms.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.timezone,
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_default_retry_delay=60,
    beat_schedule={
        "remind-overdue-chargebacks": {
            "task": "dms.tasks.remind_overdue_chargebacks",
            "schedule": crontab(hour=settings.overdue_reminder_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
