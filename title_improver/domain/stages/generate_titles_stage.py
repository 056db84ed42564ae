"""
Stage 3: Ask the AI collaborator for improved titles
"""

from typing import Any, Dict, List
import logging

from ..job_stage import JobStage, StageContext
from ...core.models import ImprovedTitle, JobStatus, Video
from ...shared.events import Topic
from ...shared.exceptions import ConfigurationError, InvalidEventError, TitleMappingError

logger = logging.getLogger(__name__)


class GenerateTitlesStage(JobStage):
    """``yt.videos.fetched`` -> ``yt.titles.ready``"""

    name = "generate_titles"
    subscribes = Topic.VIDEOS_FETCHED
    error_topic = Topic.TITLES_ERROR
    error_message = "Failed to generate titles, please try again"
    in_progress_status = JobStatus.GENERATING_TITLES

    def __init__(self, store, bus, title_client):
        super().__init__(store, bus)
        self.title_client = title_client

    def _videos(self, context: StageContext) -> List[Video]:
        raw = context.payload.get('videos')
        if raw:
            return [Video.model_validate(v) for v in raw]
        return list(context.job.videos or []) if context.job else []

    def validate(self, context: StageContext):
        if not context.lookup('channelName', 'channel_name'):
            raise InvalidEventError("Generation failed: Channel name is missing", job_id=context.job_id)
        if not self._videos(context):
            raise InvalidEventError("Videos are missing", job_id=context.job_id)
        if not self.title_client.configured:
            raise ConfigurationError("Gemini API key is not configured", job_id=context.job_id)

    async def execute(self, context: StageContext) -> Dict[str, Any]:
        channel_name = context.lookup('channelName', 'channel_name')
        videos = self._videos(context)

        titles = await self.title_client.generate(channel_name, videos)
        if len(titles) != len(videos):
            raise TitleMappingError(len(titles), len(videos), job_id=context.job_id)

        improved_titles = [
            ImprovedTitle(
                original=str(title.get('original') or video.title),
                improved=str(title.get('improved') or ''),
                rationale=str(title.get('rationale') or ''),
                url=video.watch_url,
            )
            for title, video in zip(titles, videos)
        ]
        logger.info(
            f"✨ Title generated successfully! {len(improved_titles)} titles",
            extra={'job_id': context.job_id}
        )

        context.job = context.job.advance(
            JobStatus.TITLES_READY,
            improved_titles=improved_titles,
        )
        self.store.set(context.job_id, context.job)

        await self.bus.emit(Topic.TITLES_READY, {
            'jobId': context.job_id,
            'email': context.email,
            'channelName': channel_name,
            'improvedTitles': [t.to_payload() for t in improved_titles],
        })
        return {'title_count': len(improved_titles)}
