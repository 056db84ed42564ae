"""
Entry stage: accept a submission, create the Job and start the pipeline
"""

import logging
import secrets

from common.datetime_utils import epoch_millis
from common.exception_handlers import ConflictException, ValidationException

from ...core.models import Job, SubmitRequest, SubmitResponse
from ...shared.events import EventBus, Topic

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = (
    "Your request has been queued! You will get soon an email with improved videos title."
)


def generate_job_id() -> str:
    return f"Job_{epoch_millis()}_{secrets.token_hex(6)}"


class SubmitStage:
    """HTTP-triggered, so not a JobStage: there is no prior event to guard"""

    name = "submit"

    def __init__(self, store, bus: EventBus):
        self.store = store
        self.bus = bus

    async def submit(self, request: SubmitRequest) -> SubmitResponse:
        """
        Raises:
            ValidationException: channel or email missing (nothing persisted)
            ConflictException: supplied jobId already has a record (nothing persisted)
        """
        if not request.channel or not request.email:
            raise ValidationException("Missing required fields: channel and email")

        job_id = request.job_id or generate_job_id()
        if request.job_id and self.store.get(job_id) is not None:
            raise ConflictException("Job", job_id)

        job = Job.create_new(job_id=job_id, email=request.email, channel=request.channel)
        self.store.set(job_id, job)
        logger.info(f"📥 Job Created! {job_id}", extra={'job_id': job_id})

        await self.bus.emit(Topic.SUBMIT, {
            'jobId': job_id,
            'channel': request.channel,
            'email': request.email,
        })
        return SubmitResponse(job_id=job_id, message=QUEUED_MESSAGE)
