from celery import Celery
import os

# Celery configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")

celery_app = Celery(
    "pastebox",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["pastebox.cleanup"],
)

celery_app.conf.task_always_eager = os.getenv("CELERY_TASK_ALWAYS_EAGER", "").lower() in ("1", "true")

celery_app.conf.beat_schedule = {
    # Every 10 minutes evict expired, burnt or stale pastes
    "sweep-expired-pastes": {
        "task": "pastebox.cleanup.sweep_expired",
        "schedule": 600.0,
    },
}
