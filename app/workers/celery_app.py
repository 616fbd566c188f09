from celery import Celery

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "aivi",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.workers.analysis"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Deferred analysis results are only read from logs
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
)
