from celery import Celery

from ..core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'title_improver_tasks',
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    # Stage results live in the job store, not in Celery
    task_ignore_result=True,
    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=settings.celery_task_soft_time_limit,
    # At-least-once: ack after the handler ran, requeue if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
    broker_connection_retry_on_startup=True,
    task_default_queue=settings.celery_queue,
    task_routes={
        'title_improver.dispatch_event': {'queue': settings.celery_queue},
    },
    include=['title_improver.infrastructure.celery_tasks'],
)
