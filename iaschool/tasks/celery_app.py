from celery import Celery
from celery.schedules import crontab

from ..core.config import settings

# Celery configuration
celery_app = Celery(
    "iaschool",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "iaschool.tasks.campaign_tasks",
        "iaschool.tasks.maintenance_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "mark-overdue-charges": {
        "task": "iaschool.tasks.maintenance_tasks.mark_overdue_charges",
        "schedule": crontab(hour=6, minute=0),
    },
    "expire-referral-rewards": {
        "task": "iaschool.tasks.maintenance_tasks.expire_referral_rewards",
        "schedule": crontab(hour=6, minute=30),
    },
}
