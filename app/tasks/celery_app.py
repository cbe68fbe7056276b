from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "bookings",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.notifications"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_acks_late=False,
    task_always_eager=settings.celery_task_always_eager,
    broker_connection_timeout=settings.celery_broker_connection_timeout,
    broker_connection_max_retries=0,
)
