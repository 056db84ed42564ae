"""
Stage 2: Fetch the resolved channel's videos
"""

from typing import Any, Dict
import logging

from ..job_stage import JobStage, StageContext
from ...core.models import JobStatus, Video
from ...shared.events import Topic
from ...shared.exceptions import InvalidEventError, NoVideosFoundError

logger = logging.getLogger(__name__)


class FetchVideosStage(JobStage):
    """``yt.channel.resolved`` -> ``yt.videos.fetched``"""

    name = "fetch_videos"
    subscribes = Topic.CHANNEL_RESOLVED
    error_topic = Topic.VIDEOS_ERROR
    error_message = "Failed to fetch videos, please try again"
    in_progress_status = JobStatus.FETCHING_VIDEOS

    def __init__(self, store, bus, channel_client):
        super().__init__(store, bus)
        self.channel_client = channel_client

    def validate(self, context: StageContext):
        if not context.lookup('channelId', 'channel_id'):
            raise InvalidEventError("Channel id is missing", job_id=context.job_id)

    async def execute(self, context: StageContext) -> Dict[str, Any]:
        channel_id = context.lookup('channelId', 'channel_id')
        channel_name = context.lookup('channelName', 'channel_name')

        raw_videos = await self.channel_client.fetch_videos(channel_id)
        if not raw_videos:
            logger.error(f"No video found for channel {channel_id}", extra={'job_id': context.job_id})
            raise NoVideosFoundError(channel_id, job_id=context.job_id)

        videos = [Video.model_validate(v) for v in raw_videos]
        logger.info(f"🎬 Fetched {len(videos)} videos for {channel_name} ({channel_id})")

        context.job = context.job.advance(
            JobStatus.VIDEOS_FETCHED,
            channel_id=channel_id,
            channel_name=channel_name,
            videos=videos,
        )
        self.store.set(context.job_id, context.job)

        await self.bus.emit(Topic.VIDEOS_FETCHED, {
            'jobId': context.job_id,
            'email': context.email,
            'channelId': channel_id,
            'channelName': channel_name,
            'videos': [v.to_payload() for v in videos],
        })
        return {'video_count': len(videos)}

    def error_payload(self, context: StageContext, exc: Exception) -> Dict[str, Any]:
        payload = super().error_payload(context, exc)
        if isinstance(exc, NoVideosFoundError):
            payload.update({
                'channelId': context.lookup('channelId', 'channel_id'),
                'channelName': context.lookup('channelName', 'channel_name'),
            })
        return payload
