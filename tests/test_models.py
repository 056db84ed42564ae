"""
Unit tests for models
"""
import pytest

from title_improver.core.models import (
    ChannelDescriptor,
    InvalidStatusTransition,
    Job,
    JobStatus,
    SubmitRequest,
    Video,
)


def test_status_values_are_exact():
    assert [s.value for s in JobStatus] == [
        "queued",
        "resolving channel",
        "Fetching videos",
        "videos fetched",
        "Generating titles",
        "titles ready",
        "failed",
    ]


def test_status_moves_forward_only():
    assert JobStatus.QUEUED.can_advance_to(JobStatus.RESOLVING_CHANNEL)
    assert JobStatus.FETCHING_VIDEOS.can_advance_to(JobStatus.VIDEOS_FETCHED)
    assert not JobStatus.VIDEOS_FETCHED.can_advance_to(JobStatus.FETCHING_VIDEOS)
    assert not JobStatus.TITLES_READY.can_advance_to(JobStatus.GENERATING_TITLES)


def test_same_status_is_allowed_for_redelivery():
    assert JobStatus.GENERATING_TITLES.can_advance_to(JobStatus.GENERATING_TITLES)


def test_failed_is_absorbing():
    for status in JobStatus:
        assert not JobStatus.FAILED.can_advance_to(status)
    assert JobStatus.QUEUED.can_advance_to(JobStatus.FAILED)
    assert JobStatus.GENERATING_TITLES.can_advance_to(JobStatus.FAILED)


def test_titles_ready_cannot_fail():
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")
    for status in (
        JobStatus.RESOLVING_CHANNEL,
        JobStatus.FETCHING_VIDEOS,
        JobStatus.VIDEOS_FETCHED,
        JobStatus.GENERATING_TITLES,
        JobStatus.TITLES_READY,
    ):
        job = job.advance(status)

    assert not JobStatus.TITLES_READY.can_advance_to(JobStatus.FAILED)
    with pytest.raises(InvalidStatusTransition):
        job.fail("boom")
    assert job.status == JobStatus.TITLES_READY


def test_terminal_statuses():
    assert JobStatus.TITLES_READY.is_terminal
    assert JobStatus.FAILED.is_terminal
    assert not JobStatus.VIDEOS_FETCHED.is_terminal


def test_job_create_new():
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")

    assert job.status == JobStatus.QUEUED
    assert job.error is None
    assert job.created_at.tzinfo is not None
    assert job.updated_at == job.created_at


def test_job_dumps_camel_case():
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")
    job = job.advance(JobStatus.RESOLVING_CHANNEL, channel_id="UC1", channel_name="Chan")

    data = job.model_dump(mode="json", by_alias=True)

    assert data["jobId"] == "Job_1"
    assert data["channelId"] == "UC1"
    assert data["channelName"] == "Chan"
    assert data["status"] == "resolving channel"
    assert "createdAt" in data
    assert Job.model_validate(data) == job


def test_advance_returns_copy():
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")
    moved = job.advance(JobStatus.RESOLVING_CHANNEL)

    assert job.status == JobStatus.QUEUED
    assert moved.status == JobStatus.RESOLVING_CHANNEL


def test_fail_sets_error_and_blocks_further_moves():
    job = Job.create_new(job_id="Job_1", email="user@example.com", channel="@mkbhd")
    failed = job.fail("Channel not found!")

    assert failed.status == JobStatus.FAILED
    assert failed.error == "Channel not found!"
    with pytest.raises(InvalidStatusTransition):
        failed.advance(JobStatus.RESOLVING_CHANNEL)
    with pytest.raises(InvalidStatusTransition):
        failed.fail("again")


def test_backwards_move_raises():
    job = Job(job_id="Job_1", status=JobStatus.VIDEOS_FETCHED)

    with pytest.raises(InvalidStatusTransition):
        job.advance(JobStatus.RESOLVING_CHANNEL)


def test_submit_request_unwraps_email_object():
    request = SubmitRequest.model_validate({
        "channel": "@mkbhd",
        "email": {"email": "user@example.com"},
    })

    assert request.email == "user@example.com"
    assert request.job_id is None


def test_submit_request_accepts_plain_email_and_job_id():
    request = SubmitRequest.model_validate({
        "channel": "UC123",
        "email": "user@example.com",
        "jobId": "custom-id",
    })

    assert request.email == "user@example.com"
    assert request.job_id == "custom-id"


def test_submit_request_blank_fields_are_missing():
    request = SubmitRequest.model_validate({"channel": "   ", "email": {}})

    assert request.channel is None
    assert request.email is None


def test_video_keeps_unknown_fields():
    video = Video.model_validate({"id": "abc", "title": "T", "badge": "4K"})
    payload = video.to_payload()

    assert payload["badge"] == "4K"
    assert video.watch_url == "https://www.youtube.com/watch?v=abc"


def test_video_section_is_case_insensitive():
    descriptor = ChannelDescriptor.model_validate({
        "id": "UC1",
        "results": [
            {"title": "Shorts", "videos": [{"id": "s1"}]},
            {"title": "VIDEOS", "videos": [{"id": "v1"}, {"id": "v2"}]},
        ],
    })

    assert [v["id"] for v in descriptor.video_section()] == ["v1", "v2"]


@pytest.mark.parametrize("results", [None, "oops", [], [{"title": "Videos"}], [{"title": "Videos", "videos": "x"}]])
def test_video_section_missing_or_malformed(results):
    descriptor = ChannelDescriptor.model_validate({"id": "UC1", "results": results})

    assert descriptor.video_section() == []


def test_descriptor_without_id_is_not_found():
    assert not ChannelDescriptor.model_validate({"title": "Ghost"}).found
    assert ChannelDescriptor.model_validate({"id": "UC1"}).found
