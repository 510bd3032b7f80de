"""
Tests for the HTTP API

Tests request/response shapes and error mapping of the FastAPI application
using the test client with an in-memory store and a scripted coordinator.
"""

import asyncio
import time
from unittest.mock import MagicMock

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

from link_validator.api import create_app
from link_validator.config.pydantic_config import ValidationSettings
from link_validator.core.batch_validator import BatchValidationEngine
from link_validator.core.data_models import JobStatus, LinkStatus, Verdict
from link_validator.core.job_registry import ValidationJobRegistry
from link_validator.core.record_store import MongoRecordStore
from link_validator.utils.error_handler import StoreOperationError
from tests.fixtures.test_data import (
    SAMPLE_URLS,
    ScriptedCoordinator,
    add_broken,
    add_pending,
)

SCRIPTED_VERDICTS = {
    SAMPLE_URLS[1]: Verdict(False, "HTTP 404"),
    SAMPLE_URLS[2]: Verdict(False, "Network error: Name or service not known"),
}


@pytest.fixture
def store():
    return MongoRecordStore(mongomock.MongoClient()["LinksDb"]["links"])


@pytest.fixture
def registry():
    return ValidationJobRegistry()


@pytest.fixture
def engine(store, registry):
    return BatchValidationEngine(
        store,
        ScriptedCoordinator(SCRIPTED_VERDICTS),
        ValidationSettings(batch_size=2, max_parallelism=2),
        registry,
    )


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


def wait_for_job(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"/api/links/jobs/{job_id}").json()
        if job["status"] in ("completed", "failed", "cancelled"):
            return job
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


class TestAddLinks:
    """Tests for POST /api/links."""

    def test_add_links(self, client, store):
        response = client.post("/api/links", json={"links": SAMPLE_URLS})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Links added successfully"
        assert body["count"] == 3
        assert [link["link"] for link in body["links"]] == SAMPLE_URLS
        assert all(link["status"] == "pending" for link in body["links"])
        assert all(link["id"] for link in body["links"])
        assert store.count_by_status(LinkStatus.PENDING) == 3

    def test_empty_links_rejected(self, client, store):
        response = client.post("/api/links", json={"links": []})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Links array cannot be empty"
        assert body["statusCode"] == 400
        assert "timestamp" in body
        assert store.count_by_status(LinkStatus.PENDING) == 0

    def test_missing_links_rejected(self, client):
        response = client.post("/api/links", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Links array cannot be empty"

    def test_malformed_body_rejected(self, client):
        response = client.post("/api/links", json={"links": "https://example.com"})

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")


class TestValidate:
    """Tests for POST /api/links/validate."""

    def test_validate_sample_links(self, client):
        client.post("/api/links", json={"links": SAMPLE_URLS})

        response = client.post("/api/links/validate")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Validation completed successfully"
        assert body["totalProcessed"] == 3
        assert body["validLinks"] == 1
        assert body["brokenLinks"] == 2
        assert body["durationMs"] >= 0
        assert "durationSeconds" in body
        assert body["jobId"]

        job = client.get(f"/api/links/jobs/{body['jobId']}").json()
        assert job["status"] == "completed"
        assert job["processedLinks"] == 3

    def test_validate_empty_backlog(self, client):
        body = client.post("/api/links/validate").json()

        assert body["totalProcessed"] == 0
        assert body["validLinks"] == 0
        assert body["brokenLinks"] == 0

    def test_run_in_progress_conflict(self, engine):
        engine._run_lock = MagicMock()
        engine._run_lock.locked.return_value = True
        client = TestClient(create_app(engine=engine))

        response = client.post("/api/links/validate")

        assert response.status_code == 409
        assert response.json()["statusCode"] == 409

    def test_store_failure_is_500(self, registry):
        store = MagicMock()
        store.count_by_status.side_effect = StoreOperationError("count_by_status", "down")
        engine = BatchValidationEngine(store, ScriptedCoordinator(), job_registry=registry)
        client = TestClient(create_app(engine=engine))

        response = client.post("/api/links/validate")

        assert response.status_code == 500
        assert "down" in response.json()["error"]


class TestBrokenLinks:
    """Tests for GET /api/links/broken."""

    def test_broken_links_after_validation(self, client):
        client.post("/api/links", json={"links": SAMPLE_URLS})
        client.post("/api/links/validate")

        body = client.get("/api/links/broken").json()

        assert body["pagination"]["totalCount"] == 2
        assert body["pagination"]["pageSize"] == 500
        reasons = {link["link"]: link["reason"] for link in body["brokenLinks"]}
        assert reasons[SAMPLE_URLS[1]] == "HTTP 404"
        assert reasons[SAMPLE_URLS[2]].startswith("Network error:")

    def test_pagination(self, client, store):
        add_broken(store, 3)

        first = client.get("/api/links/broken", params={"page": 1, "pageSize": 2}).json()
        second = client.get("/api/links/broken", params={"page": 2, "pageSize": 2}).json()

        assert first["pagination"]["totalPages"] == 2
        assert first["pagination"]["hasNextPage"] is True
        assert first["pagination"]["hasPreviousPage"] is False
        assert len(first["brokenLinks"]) == 2
        assert second["pagination"]["hasNextPage"] is False
        assert second["pagination"]["hasPreviousPage"] is True
        assert len(second["brokenLinks"]) == 1

    @pytest.mark.parametrize(
        "params,message",
        [
            ({"page": 0}, "Page must be greater than 0"),
            ({"pageSize": 0}, "PageSize must be between 1 and 10000"),
            ({"pageSize": 10001}, "PageSize must be between 1 and 10000"),
        ],
    )
    def test_out_of_range(self, client, params, message):
        response = client.get("/api/links/broken", params=params)

        assert response.status_code == 400
        assert response.json()["error"] == message


class TestJobs:
    """Tests for background validation jobs."""

    def test_background_job_completes(self, engine):
        with TestClient(create_app(engine=engine)) as client:
            client.post("/api/links", json={"links": SAMPLE_URLS})

            response = client.post("/api/links/validate/jobs")
            assert response.status_code == 202
            job_id = response.json()["jobId"]

            job = wait_for_job(client, job_id)

        assert job["status"] == "completed"
        assert job["processedLinks"] == 3
        assert job["validLinks"] == 1
        assert job["brokenLinks"] == 2
        assert job["progressPercentage"] == 100.0

    def test_cancel_background_job(self, store, registry):
        engine = BatchValidationEngine(
            store,
            ScriptedCoordinator(delay=0.2),
            ValidationSettings(batch_size=1, max_parallelism=1),
            registry,
        )
        with TestClient(create_app(engine=engine)) as client:
            client.post(
                "/api/links",
                json={"links": [f"https://example.com/{i}" for i in range(20)]},
            )
            job_id = client.post("/api/links/validate/jobs").json()["jobId"]

            response = client.post(f"/api/links/jobs/{job_id}/cancel")
            assert response.status_code == 202

            job = wait_for_job(client, job_id)

        assert job["status"] == "cancelled"
        assert job["processedLinks"] < 20
        assert store.count_by_status(LinkStatus.PENDING) > 0

    @pytest.mark.asyncio
    async def test_concurrent_job_submissions_conflict(self, store, registry):
        add_pending(store, SAMPLE_URLS)
        engine = BatchValidationEngine(
            store,
            ScriptedCoordinator(delay=0.05),
            ValidationSettings(batch_size=1, max_parallelism=1),
            registry,
        )
        app = create_app(engine=engine)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(
            transport=transport, base_url="http://test"
        ) as client:
            first, second = await asyncio.gather(
                client.post("/api/links/validate/jobs"),
                client.post("/api/links/validate/jobs"),
            )
            await asyncio.gather(
                *(task for task, _ in list(app.state.background_jobs.values()))
            )

        assert sorted([first.status_code, second.status_code]) == [202, 409]
        jobs = registry.list_jobs()
        assert len(jobs) == 1
        assert jobs[0].status == JobStatus.COMPLETED
        assert store.count_by_status(LinkStatus.PENDING) == 0

    def test_sync_validate_refused_while_job_pending(self, store, registry):
        add_pending(store, SAMPLE_URLS)
        engine = BatchValidationEngine(
            store,
            ScriptedCoordinator(delay=0.2),
            ValidationSettings(batch_size=1, max_parallelism=1),
            registry,
        )
        with TestClient(create_app(engine=engine)) as client:
            job_id = client.post("/api/links/validate/jobs").json()["jobId"]

            response = client.post("/api/links/validate")

            assert response.status_code == 409
            client.post(f"/api/links/jobs/{job_id}/cancel")
            wait_for_job(client, job_id)

    def test_list_jobs(self, client):
        client.post("/api/links/validate")
        client.post("/api/links/validate")

        jobs = client.get("/api/links/jobs").json()["jobs"]

        assert len(jobs) == 2

    def test_unknown_job(self, client):
        response = client.get("/api/links/jobs/does-not-exist")

        assert response.status_code == 404
        assert "does-not-exist" in response.json()["error"]

    def test_cancel_unknown_job(self, client):
        assert client.post("/api/links/jobs/nope/cancel").status_code == 404


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_unexpected_error_is_generic_500(self, engine):
        engine.store = MagicMock()
        app = create_app(engine=engine)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("secret detail")

        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "An internal server error occurred"
        assert "secret" not in response.text
