"""
Celery tasks for the title-improver worker
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from common.log_utils import setup_structured_logging

from .celery_config import celery_app, settings
from .redis_store import get_job_store
from ..domain.pipeline import Pipeline, build_pipeline
from ..shared.events import DISPATCH_TASK_NAME, get_event_bus

logger = logging.getLogger(__name__)

_pipeline: Optional[Pipeline] = None


def get_worker_pipeline() -> Pipeline:
    """Stages wired on the Celery bus, built on first task"""
    global _pipeline
    if _pipeline is None:
        setup_structured_logging(
            service_name="title-improver-worker",
            log_level=settings.log_level,
            log_dir=settings.log_dir,
            json_format=settings.log_format == "json",
        )
        _pipeline = build_pipeline(settings, get_job_store(settings), get_event_bus(settings))
    return _pipeline


@celery_app.task(name=DISPATCH_TASK_NAME)
def dispatch_event(topic: str, payload: Dict[str, Any]) -> int:
    """
    Deliver one emitted event to the stages subscribed to ``topic``.

    Returns:
        Number of handlers that ran without raising
    """
    pipeline = get_worker_pipeline()
    logger.info(f"🚀 Worker delivering {topic} for job {payload.get('jobId')}")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(pipeline.bus.deliver(topic, payload))
    finally:
        loop.close()
