"""
Test configuration: in-memory store and bus, fake collaborators
"""
import pytest

from title_improver.core.config import Settings
from title_improver.core.models import ChannelDescriptor
from title_improver.domain.pipeline import build_pipeline
from title_improver.infrastructure.redis_store import InMemoryJobStore
from title_improver.shared.events import InMemoryEventBus

CHANNEL_ID = "UCBJycsmduvYEL83R_U4JriQ"
CHANNEL_NAME = "Marques Brownlee"


def make_videos(count: int, channel_id: str = CHANNEL_ID):
    """Video descriptors shaped like the lookup API's"""
    return [
        {
            "id": f"vid{i:03d}",
            "type": "video",
            "title": f"Video number {i}",
            "thumbnail": {"url": f"https://i.ytimg.com/vi/vid{i:03d}/hq.jpg", "width": 480, "height": 360},
            "publishedAt": "2 days ago",
            "views": "1.2M",
            "channel": {"id": channel_id, "url": "", "verified": True, "artist": False},
            "isLive": False,
        }
        for i in range(1, count + 1)
    ]


class FakeChannelClient:
    """Stands in for ChannelLookupClient"""

    def __init__(self, channels=None, videos=None, error=None):
        self.channels = channels or {}
        self.videos = videos or {}
        self.error = error
        self.resolved = []
        self.fetched = []

    async def resolve(self, channel):
        self.resolved.append(channel)
        if self.error:
            raise self.error
        key = channel[1:] if channel.startswith("@") else channel
        return ChannelDescriptor.model_validate(self.channels.get(key, {}))

    async def fetch_videos(self, channel_id):
        self.fetched.append(channel_id)
        if self.error:
            raise self.error
        return list(self.videos.get(channel_id, []))


class FakeTitleClient:
    """Stands in for GeminiTitleClient"""

    def __init__(self, configured=True, titles=None, error=None):
        self.configured = configured
        self.titles = titles
        self.error = error
        self.calls = []

    async def generate(self, channel_name, videos):
        self.calls.append((channel_name, [v.title for v in videos]))
        if self.error:
            raise self.error
        if self.titles is not None:
            return self.titles
        return [
            {"original": v.title, "improved": f"{v.title} (You Won't Believe It)", "rationale": "Adds curiosity"}
            for v in videos
        ]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        job_store_backend="memory",
        event_bus_backend="memory",
        ai_api_key="test-key",
        log_dir=str(tmp_path / "logs"),
        log_format="text",
    )


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def channel_client():
    return FakeChannelClient(
        channels={
            "mkbhd": {"id": CHANNEL_ID, "title": CHANNEL_NAME, "subscriber": "19M", "videos": "1.6K"},
            CHANNEL_ID: {"id": CHANNEL_ID, "title": CHANNEL_NAME},
        },
        videos={CHANNEL_ID: make_videos(5)},
    )


@pytest.fixture
def title_client():
    return FakeTitleClient()


@pytest.fixture
def pipeline(settings, store, bus, channel_client, title_client):
    return build_pipeline(settings, store, bus, channel_client=channel_client, title_client=title_client)
