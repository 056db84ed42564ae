"""
Celery runtime: configuration and the dispatch task
"""
from unittest.mock import AsyncMock, MagicMock, patch

from title_improver.infrastructure.celery_config import celery_app, settings
from title_improver.infrastructure import celery_tasks
from title_improver.shared.events import DISPATCH_TASK_NAME


def test_delivery_is_at_least_once():
    assert celery_app.conf.task_acks_late is True
    assert celery_app.conf.task_reject_on_worker_lost is True
    assert celery_app.conf.worker_prefetch_multiplier == 1


def test_serialization_and_queue():
    assert celery_app.conf.task_serializer == "json"
    assert celery_app.conf.accept_content == ["json"]
    assert celery_app.conf.task_default_queue == settings.celery_queue


def test_dispatch_task_is_registered():
    assert celery_tasks.dispatch_event.name == DISPATCH_TASK_NAME
    assert DISPATCH_TASK_NAME in celery_app.tasks


def test_dispatch_delivers_on_worker_bus():
    pipeline = MagicMock()
    pipeline.bus.deliver = AsyncMock(return_value=1)
    payload = {"jobId": "Job_1", "email": "user@example.com", "channel": "@mkbhd"}

    with patch.object(celery_tasks, "get_worker_pipeline", return_value=pipeline):
        delivered = celery_tasks.dispatch_event("yt.submit", payload)

    assert delivered == 1
    pipeline.bus.deliver.assert_awaited_once_with("yt.submit", payload)


def test_worker_pipeline_is_built_once():
    built = MagicMock()

    with patch.object(celery_tasks, "_pipeline", None), \
         patch.object(celery_tasks, "setup_structured_logging"), \
         patch.object(celery_tasks, "get_job_store"), \
         patch.object(celery_tasks, "get_event_bus"), \
         patch.object(celery_tasks, "build_pipeline", return_value=built) as build:
        assert celery_tasks.get_worker_pipeline() is built
        assert celery_tasks.get_worker_pipeline() is built

    assert build.call_count == 1
