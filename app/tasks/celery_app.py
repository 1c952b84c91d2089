"""Celery application configuration."""

from celery import Celery

from core.config import config

celery_app = Celery(
    "activity_enrollment",
    broker=config.REDIS_URL,
    backend=config.REDIS_URL,
    include=["app.tasks.email_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,
    # Run tasks in-process (tests, local development without Redis)
    task_always_eager=config.CELERY_TASK_ALWAYS_EAGER,
)


if __name__ == "__main__":
    celery_app.start()
