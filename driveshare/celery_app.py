from celery import Celery

from driveshare.config import settings


celery_app = Celery(
    "driveshare_tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["driveshare.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    beat_schedule={
        "sweep-expired-bookings": {
            "task": "driveshare.tasks.sweep_expired_bookings",
            "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
        },
    },
)
