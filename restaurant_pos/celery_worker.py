"""
Celery Worker Configuration
Redis is both the broker and the result backend.

    celery -A restaurant_pos.celery_worker worker --loglevel=info
"""

from celery import Celery

from restaurant_pos.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "churre_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["restaurant_pos.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Lima",
    enable_utc=True,

    # One workbook write at a time per process
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    result_expires=3600,

    # Requeue the export if the worker dies mid-write
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == "__main__":
    celery_app.start()
