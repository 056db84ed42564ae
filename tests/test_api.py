"""
HTTP API tests (FastAPI TestClient)
"""
import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from title_improver.core.models import JobStatus
from title_improver.main import create_app
from title_improver.shared.events import Topic
from title_improver.shared.exceptions import JobStoreError


@pytest.fixture
def client(settings, store, bus, channel_client, title_client):
    app = create_app(
        settings=settings,
        store=store,
        bus=bus,
        channel_client=channel_client,
        title_client=title_client,
    )
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def test_submit_queues_job(client, store, bus):
    response = client.post("/submit", json={"channel": "@mkbhd", "email": {"email": "user@example.com"}})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["jobId"].startswith("Job_")
    assert "queued" in body["message"]

    job = store.get(body["jobId"])
    assert job.status == JobStatus.QUEUED
    assert job.email == "user@example.com"
    [event] = bus.emitted()
    assert event.topic == Topic.SUBMIT
    assert event.data == {"jobId": body["jobId"], "channel": "@mkbhd", "email": "user@example.com"}


def test_submit_keeps_supplied_job_id(client, store):
    response = client.post("/jobs", json={"channel": "UC1", "email": "user@example.com", "jobId": "my-job"})

    assert response.status_code == 201
    assert response.json()["jobId"] == "my-job"
    assert store.get("my-job") is not None


def test_resubmitting_existing_job_id_is_rejected(client, store, bus):
    client.post("/submit", json={"channel": "@mkbhd", "email": "user@example.com", "jobId": "j1"})
    asyncio.run(bus.drain())
    finished = store.get("j1")
    emitted = len(bus.emitted())

    response = client.post("/submit", json={"channel": "@other", "email": "someone@example.com", "jobId": "j1"})

    assert response.status_code == 409
    assert response.json()["error"] == "RESOURCE_CONFLICT"
    assert finished.status == JobStatus.TITLES_READY
    assert store.get("j1") == finished
    assert len(bus.emitted()) == emitted


@pytest.mark.parametrize("body", [
    {"email": "user@example.com"},
    {"channel": "@mkbhd"},
    {"channel": "", "email": {"email": ""}},
])
def test_submit_missing_fields(client, store, bus, body):
    response = client.post("/submit", json=body)

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields: channel and email"
    assert store.list_ids() == []
    assert bus.emitted() == []


def test_submit_store_failure_is_500(settings, bus, channel_client, title_client):
    store = MagicMock()
    store.set.side_effect = JobStoreError("Failed to persist job")
    app = create_app(settings=settings, store=store, bus=bus,
                     channel_client=channel_client, title_client=title_client)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.post("/submit", json={"channel": "@mkbhd", "email": "user@example.com"})

    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error"
    assert bus.emitted() == []


def test_job_status_after_pipeline_run(client, bus):
    job_id = client.post("/submit", json={"channel": "@mkbhd", "email": "user@example.com"}).json()["jobId"]
    asyncio.run(bus.drain())

    response = client.get(f"/jobs/{job_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["jobId"] == job_id
    assert body["status"] == "titles ready"
    assert body["channelName"] == "Marques Brownlee"
    assert len(body["improvedTitles"]) == 5


def test_unknown_job_is_404(client):
    response = client.get("/jobs/Job_missing")

    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"


def test_list_jobs(client):
    client.post("/submit", json={"channel": "@a", "email": "user@example.com", "jobId": "j1"})
    client.post("/submit", json={"channel": "@b", "email": "user@example.com", "jobId": "j2"})

    body = client.get("/jobs").json()

    assert body == {"jobs": ["j1", "j2"], "total": 2}


def test_health_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_degraded_when_store_down(client, store, monkeypatch):
    monkeypatch.setattr(store, "ping", lambda: False)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["checks"]["job_store"]["healthy"] is False


def test_root_lists_endpoints(client):
    body = client.get("/").json()

    assert body["endpoints"]["submit"] == "POST /submit"
