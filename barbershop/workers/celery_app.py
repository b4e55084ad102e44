from celery import Celery
from barbershop.core.config import settings

celery_app = Celery(
    "barbershop",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["barbershop.workers.tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.BOOKING_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=100,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    # Queue routing
    task_routes={
        "send_notification_task": {"queue": "notifications"},
        "barbershop.workers.tasks.*": {"queue": "default"},
    },
    # Beat schedule
    beat_schedule={
        "send-booking-reminders": {
            "task": "send_reminders_task",
            "schedule": 3600.0,  # Every hour
        },
    },
)
