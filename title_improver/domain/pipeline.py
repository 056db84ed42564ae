"""
Pipeline wiring: build the stages and subscribe them to their topics.

The API process and the Celery worker both call ``build_pipeline``; the API
uses ``submit`` and, with the in-memory bus, runs the whole chain locally.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from .stages import FetchVideosStage, GenerateTitlesStage, ResolveChannelStage, SubmitStage
from ..services.channel_lookup import ChannelLookupClient
from ..services.title_generator import GeminiTitleClient
from ..shared.events import EventBus

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    store: object
    bus: EventBus
    submit: SubmitStage
    resolve_channel: ResolveChannelStage
    fetch_videos: FetchVideosStage
    generate_titles: GenerateTitlesStage


def build_pipeline(
    settings,
    store,
    bus: EventBus,
    channel_client: Optional[ChannelLookupClient] = None,
    title_client: Optional[GeminiTitleClient] = None,
) -> Pipeline:
    """Create the stages and register them on ``bus``"""
    if channel_client is None:
        channel_client = ChannelLookupClient(settings.youtube_api_base, timeout=settings.youtube_timeout)
    if title_client is None:
        title_client = GeminiTitleClient.from_settings(settings)

    pipeline = Pipeline(
        store=store,
        bus=bus,
        submit=SubmitStage(store, bus),
        resolve_channel=ResolveChannelStage(store, bus, channel_client),
        fetch_videos=FetchVideosStage(store, bus, channel_client),
        generate_titles=GenerateTitlesStage(store, bus, title_client),
    )

    for stage in (pipeline.resolve_channel, pipeline.fetch_videos, pipeline.generate_titles):
        bus.subscribe(stage.subscribes, stage.handle)

    if not title_client.configured:
        logger.warning("⚠️ AI_API_KEY not set, title generation will fail jobs")

    logger.info("✅ Pipeline wired")
    return pipeline
