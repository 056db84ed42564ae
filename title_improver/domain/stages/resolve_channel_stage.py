"""
Stage 1: Resolve the submitted channel identifier to a channel id and name
"""

from typing import Any, Dict
import logging

from ..job_stage import JobStage, StageContext
from ...core.models import JobStatus
from ...shared.events import Topic
from ...shared.exceptions import ChannelNotFoundError, InvalidEventError

logger = logging.getLogger(__name__)


class ResolveChannelStage(JobStage):
    """
    ``yt.submit`` -> ``yt.channel.resolved``

    An unknown channel fails the job without emitting anything; only
    exceptions reach ``yt.channel.error``.
    """

    name = "resolve_channel"
    subscribes = Topic.SUBMIT
    error_topic = Topic.CHANNEL_ERROR
    error_message = "Failed to resolve channel, please try again"
    in_progress_status = JobStatus.RESOLVING_CHANNEL
    silent_errors = (ChannelNotFoundError,)

    def __init__(self, store, bus, channel_client):
        super().__init__(store, bus)
        self.channel_client = channel_client

    def validate(self, context: StageContext):
        if not context.lookup('channel', 'channel'):
            raise InvalidEventError("Channel is missing", job_id=context.job_id)

    async def execute(self, context: StageContext) -> Dict[str, Any]:
        channel = context.lookup('channel', 'channel')
        logger.info(f"🔍 Resolving YouTube channel {channel}", extra={'job_id': context.job_id})

        descriptor = await self.channel_client.resolve(channel)
        if not descriptor.found:
            logger.error(f"Channel not found! ({channel})", extra={'job_id': context.job_id})
            raise ChannelNotFoundError(channel, job_id=context.job_id)

        channel_id = descriptor.id
        channel_name = descriptor.title
        logger.info(
            f"Resolved channel {channel_name} ({channel_id}), "
            f"subscribers={descriptor.subscriber or 0}, videos={descriptor.videos or 0}"
        )

        # Status stays "resolving channel" until the fetch stage picks it up
        context.job = context.job.advance(
            JobStatus.RESOLVING_CHANNEL,
            channel_id=channel_id,
            channel_name=channel_name,
        )
        self.store.set(context.job_id, context.job)

        await self.bus.emit(Topic.CHANNEL_RESOLVED, {
            'jobId': context.job_id,
            'email': context.email,
            'channelId': channel_id,
            'channelName': channel_name,
        })
        return {'channel_id': channel_id, 'channel_name': channel_name}
