"""
Celery Application Configuration
"""
from celery import Celery
from checkin_guard.config import settings

# Create Celery app
celery_app = Celery(
    "checkin_guard_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "checkin_guard.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max
    task_soft_time_limit=540,  # 9 minutes soft limit
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # Results expire after 1 hour
)

# Periodic retention for behavior baselines
celery_app.conf.beat_schedule = {
    "prune-behavior-history": {
        "task": "checkin_guard.worker.tasks.prune_behavior_history",
        "schedule": float(settings.BEHAVIOR_PRUNE_INTERVAL_SEC),
    },
}

# Task routing
celery_app.conf.task_routes = {
    "checkin_guard.worker.tasks.prune_behavior_history": {"queue": "maintenance"},
    "checkin_guard.worker.tasks.*": {"queue": "default"},
}
