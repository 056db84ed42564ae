"""
JobStage - Template Method base for event-triggered pipeline stages

🔄 Lifecycle of one delivery (``handle``):
    1. Require a job id
    2. Load the Job (fresh placeholder when the record is missing)
    3. Status guard: skip stale deliveries without touching anything
    4. validate() - stage pre-conditions
    5. Persist the stage's in-progress status
    6. execute() - collaborator call, persist outcome, emit next topic

Any exception after step 1 goes through ``_fail``: job marked failed with the
exception message and the stage's error topic emitted. Stages list
``silent_errors`` that fail the job without emitting.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type
import logging
import time

from common.log_utils import set_correlation_id

from ..core.models import InvalidStatusTransition, Job, JobStatus
from ..shared.events import EventBus, Topic
from ..shared.exceptions import ErrorCode, InvalidEventError, StaleEventError, TitleImproverException

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Outcome of one delivery"""
    status: StageStatus
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[TitleImproverException] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == StageStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'data': self.data,
            'error': self.error.to_dict() if self.error else None,
            'duration_seconds': self.duration_seconds,
        }


@dataclass
class StageContext:
    """Addressing fields of the delivery plus the loaded Job"""
    payload: Dict[str, Any]
    job_id: Optional[str] = None
    email: Optional[str] = None
    job: Optional[Job] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'StageContext':
        return cls(
            payload=payload,
            job_id=payload.get('jobId') or None,
            email=payload.get('email') or None,
        )

    def lookup(self, payload_key: str, job_attr: str) -> Any:
        """Payload value, falling back to the Job record"""
        value = self.payload.get(payload_key)
        if value:
            return value
        if self.job is not None:
            return getattr(self.job, job_attr, None)
        return None


class JobStage(ABC):
    """
    Base class for pipeline stages (Template Method pattern).

    Subclasses set ``name``, ``subscribes``, ``error_topic``,
    ``error_message`` and ``in_progress_status`` and implement ``execute``.
    """

    name: str = "stage"
    subscribes: Topic
    error_topic: Topic
    error_message: str = "Processing failed, please try again"
    in_progress_status: JobStatus
    silent_errors: Tuple[Type[Exception], ...] = ()

    def __init__(self, store, bus: EventBus):
        self.store = store
        self.bus = bus

    async def handle(self, payload: Dict[str, Any]) -> StageResult:
        """Subscriber entry point for one delivery of ``subscribes``"""
        context = StageContext.from_payload(payload)
        set_correlation_id(context.job_id)
        start_time = time.monotonic()
        log_extra = {'job_id': context.job_id, 'stage': self.name}

        try:
            if not context.job_id:
                raise InvalidEventError("JOB id is missing")

            context.job = self.load_job(context)
            context.email = context.email or context.job.email
            self.guard(context.job)
            self.validate(context)

            context.job = context.job.advance(self.in_progress_status)
            self.store.set(context.job_id, context.job)
            logger.info(f"▶️ {self.name}: {self.in_progress_status.value}", extra=log_extra)

            data = await self.execute(context)

            duration = time.monotonic() - start_time
            logger.info(
                f"✅ {self.name} completed in {duration:.2f}s",
                extra={**log_extra, 'duration_ms': int(duration * 1000)}
            )
            return StageResult(StageStatus.COMPLETED, data=data or {}, duration_seconds=duration)

        except StaleEventError as e:
            logger.warning(f"⏭️ {e.message}", extra=log_extra)
            return StageResult(StageStatus.SKIPPED, error=e)

        except Exception as e:
            duration = time.monotonic() - start_time
            error = self._wrap(e, context)
            logger.error(f"❌ {self.name} failed: {error.message}", extra=log_extra)
            await self._fail(context, e)
            return StageResult(StageStatus.FAILED, error=error, duration_seconds=duration)

        finally:
            set_correlation_id(None)

    def load_job(self, context: StageContext) -> Job:
        job = self.store.get(context.job_id)
        if job is None:
            logger.warning(f"Job {context.job_id} not found in store, starting a fresh record")
            job = Job.create_new(
                job_id=context.job_id,
                email=context.email,
                channel=context.payload.get('channel'),
            )
        return job

    def guard(self, job: Job):
        """
        Raises:
            StaleEventError: job already failed or moved past this stage
        """
        if not job.status.can_advance_to(self.in_progress_status):
            raise StaleEventError(job.job_id, job.status.value, self.name)

    def validate(self, context: StageContext):
        """
        Check stage pre-conditions (Hook Method). Default: none.

        Raises:
            TitleImproverException: if the delivery cannot be processed
        """

    @abstractmethod
    async def execute(self, context: StageContext) -> Dict[str, Any]:
        """
        Main stage logic (Hook Method): call the collaborator, persist the
        outcome and emit the next topic.
        """

    def error_payload(self, context: StageContext, exc: Exception) -> Dict[str, Any]:
        return {
            'jobId': context.job_id,
            'email': context.email,
            'message': self.error_message,
        }

    async def _fail(self, context: StageContext, exc: Exception):
        """Mark the job failed and emit the error topic"""
        if not context.job_id or not context.email:
            logger.error(
                f"Cannot report {self.name} failure, missing jobId or email",
                extra={'job_id': context.job_id, 'stage': self.name}
            )
            return

        if context.job is None:
            logger.error(
                f"Job {context.job_id} could not be loaded, {self.name} failure not recorded",
                extra={'job_id': context.job_id, 'stage': self.name}
            )
            return

        try:
            job = context.job.fail(str(exc))
        except InvalidStatusTransition as e:
            logger.warning(f"{e}, leaving record untouched")
            return
        self.store.set(context.job_id, job)
        context.job = job

        if isinstance(exc, self.silent_errors):
            return

        await self.bus.emit(self.error_topic, self.error_payload(context, exc))

    def _wrap(self, exc: Exception, context: StageContext) -> TitleImproverException:
        if isinstance(exc, TitleImproverException):
            return exc
        return TitleImproverException(
            f"Stage {self.name} failed: {exc}",
            error_code=ErrorCode.PROCESSING_STAGE_FAILED,
            details={'stage': self.name},
            cause=exc,
            job_id=context.job_id,
        )
