"""
Unit tests for the fetch-videos stage
"""
import pytest

from title_improver.core.models import Job, JobStatus
from title_improver.domain.job_stage import StageStatus
from title_improver.domain.stages import FetchVideosStage
from title_improver.shared.events import Topic

from conftest import CHANNEL_ID, CHANNEL_NAME, FakeChannelClient


@pytest.fixture
def stage(store, bus, channel_client):
    return FetchVideosStage(store, bus, channel_client)


def _resolved(store, **overrides):
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")
    job = job.advance(JobStatus.RESOLVING_CHANNEL, channel_id=CHANNEL_ID, channel_name=CHANNEL_NAME)
    store.set("Job_1", job.model_copy(update=overrides))
    return {"jobId": "Job_1", "email": "user@example.com", "channelId": CHANNEL_ID, "channelName": CHANNEL_NAME}


async def test_fetches_and_persists_videos(stage, store, bus, channel_client):
    payload = _resolved(store)

    result = await stage.handle(payload)

    assert result.status == StageStatus.COMPLETED
    assert channel_client.fetched == [CHANNEL_ID]
    job = store.get("Job_1")
    assert job.status == JobStatus.VIDEOS_FETCHED
    assert [v.id for v in job.videos] == ["vid001", "vid002", "vid003", "vid004", "vid005"]
    [event] = bus.emitted()
    assert event.topic == Topic.VIDEOS_FETCHED
    assert event.data["email"] == "user@example.com"
    assert event.data["channelName"] == CHANNEL_NAME
    assert len(event.data["videos"]) == 5
    assert event.data["videos"][0]["publishedAt"] == "2 days ago"


async def test_addressing_fields_fall_back_to_record(stage, store, bus):
    _resolved(store)

    await stage.handle({"jobId": "Job_1"})

    [event] = bus.emitted(Topic.VIDEOS_FETCHED)
    assert event.data["channelId"] == CHANNEL_ID
    assert event.data["email"] == "user@example.com"


async def test_no_videos_emits_error_with_channel(store, bus):
    stage = FetchVideosStage(store, bus, FakeChannelClient(videos={}))
    payload = _resolved(store)

    await stage.handle(payload)

    job = store.get("Job_1")
    assert job.status == JobStatus.FAILED
    assert job.error == "No videos found!"
    [event] = bus.emitted()
    assert event.topic == Topic.VIDEOS_ERROR
    assert event.data == {
        "jobId": "Job_1",
        "email": "user@example.com",
        "channelId": CHANNEL_ID,
        "channelName": CHANNEL_NAME,
        "message": "Failed to fetch videos, please try again",
    }


async def test_lookup_exception_emits_generic_error(store, bus):
    stage = FetchVideosStage(store, bus, FakeChannelClient(error=TimeoutError("read timed out")))
    payload = _resolved(store)

    await stage.handle(payload)

    job = store.get("Job_1")
    assert job.status == JobStatus.FAILED
    assert job.error == "read timed out"
    [event] = bus.emitted()
    assert event.data == {
        "jobId": "Job_1",
        "email": "user@example.com",
        "message": "Failed to fetch videos, please try again",
    }


async def test_missing_channel_id_fails_job(stage, store, bus):
    _resolved(store, channel_id=None)

    await stage.handle({"jobId": "Job_1", "email": "user@example.com"})

    assert store.get("Job_1").error == "Channel id is missing"
    assert bus.emitted()[0].topic == Topic.VIDEOS_ERROR


async def test_redelivery_after_titles_ready_keeps_videos(stage, store, bus, channel_client):
    payload = _resolved(store)
    await stage.handle(payload)
    done = store.get("Job_1").advance(JobStatus.TITLES_READY)
    store.set("Job_1", done)

    result = await stage.handle(payload)

    assert result.status == StageStatus.SKIPPED
    assert store.get("Job_1") == done
    assert channel_client.fetched == [CHANNEL_ID]
