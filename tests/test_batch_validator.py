"""
Tests for the Batch Validation Engine

Tests backlog draining, commit behaviour, the parallelism bound, run-level
exclusion and cancellation against both record store backends.
"""

import asyncio
from unittest.mock import MagicMock, patch

import httpx
import pytest

from link_validator.config.pydantic_config import ValidationSettings
from link_validator.core.batch_validator import BatchValidationEngine
from link_validator.core.data_models import JobStatus, LinkStatus, Verdict
from link_validator.core.url_validator.prober import URLProber
from link_validator.core.url_validator.retry import RetryCoordinator
from link_validator.utils.error_handler import (
    StoreOperationError,
    ValidationCancelledError,
    ValidationRunInProgressError,
)
from tests.fixtures.test_data import (
    SAMPLE_URLS,
    ScriptedCoordinator,
    add_pending,
    pending_count,
)


def probe_handler(request):
    """Mock transport for the three sample URLs."""
    if request.url.host == "unresolvable.invalid":
        raise httpx.ConnectError("Name or service not known", request=request)
    if request.url.path == "/missing":
        return httpx.Response(404)
    return httpx.Response(200)


class TestBatchValidationEngine:
    """Tests for BatchValidationEngine.validate_all."""

    @pytest.mark.asyncio
    async def test_sample_scenario(self, record_store, validation_settings):
        """A reachable URL, a 404 and an unresolvable host."""
        add_pending(record_store, SAMPLE_URLS)
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(probe_handler), follow_redirects=True
        )
        prober = URLProber(timeout=1, client=client)
        coordinator = RetryCoordinator(prober, max_retries=2, timeout=1, backoff_seconds=0)
        engine = BatchValidationEngine(record_store, coordinator, validation_settings)

        summary = await engine.validate_all()
        await client.aclose()

        assert summary.total_processed == 3
        assert summary.valid_count == 1
        assert summary.broken_count == 2
        assert summary.duration > 0

        records = {
            record.url: record
            for record in record_store.fetch_broken_page(0, 10)
        }
        assert set(records) == {SAMPLE_URLS[1], SAMPLE_URLS[2]}
        assert records[SAMPLE_URLS[1]].reason == "HTTP 404"
        assert records[SAMPLE_URLS[2]].reason.startswith("Network error:")
        assert pending_count(record_store) == 0
        assert record_store.count_by_status(LinkStatus.VALID) == 1

    @pytest.mark.asyncio
    async def test_verdicts_are_committed(self, record_store, validation_settings):
        records = add_pending(record_store, ["https://a.example.com", "https://b.example.com"])
        coordinator = ScriptedCoordinator(
            {"https://b.example.com": Verdict(False, "HTTP 500")}
        )
        engine = BatchValidationEngine(record_store, coordinator, validation_settings)

        await engine.validate_all()

        broken = record_store.fetch_broken_page(0, 10)
        assert len(broken) == 1
        assert broken[0].id == records[1].id
        assert broken[0].reason == "HTTP 500"
        assert broken[0].created_at == records[1].created_at
        assert broken[0].updated_at >= records[1].created_at

    @pytest.mark.asyncio
    async def test_empty_backlog(self, record_store, validation_settings):
        coordinator = ScriptedCoordinator()
        engine = BatchValidationEngine(record_store, coordinator, validation_settings)

        summary = await engine.validate_all()

        assert summary.total_processed == 0
        assert summary.valid_count == 0
        assert summary.broken_count == 0
        assert coordinator.calls == []

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, record_store, validation_settings):
        add_pending(record_store, SAMPLE_URLS)
        coordinator = ScriptedCoordinator(
            {url: Verdict(False, "HTTP 404") for url in SAMPLE_URLS}
        )
        engine = BatchValidationEngine(record_store, coordinator, validation_settings)

        await engine.validate_all()
        committed = {
            (record.id, record.status, record.reason, record.updated_at)
            for record in record_store.fetch_broken_page(0, 10)
        }
        assert len(committed) == 3

        second = await engine.validate_all()

        assert second.total_processed == 0
        assert len(coordinator.calls) == 3
        assert {
            (record.id, record.status, record.reason, record.updated_at)
            for record in record_store.fetch_broken_page(0, 10)
        } == committed

    @pytest.mark.asyncio
    async def test_backlog_larger_than_batch_is_drained(self, record_store):
        urls = [f"https://example.com/{i}" for i in range(7)]
        add_pending(record_store, urls)
        coordinator = ScriptedCoordinator()
        settings = ValidationSettings(batch_size=3, max_parallelism=2)
        engine = BatchValidationEngine(record_store, coordinator, settings)

        summary = await engine.validate_all()

        assert summary.total_processed == 7
        assert sorted(coordinator.calls) == sorted(urls)
        assert len(coordinator.calls) == 7
        assert pending_count(record_store) == 0

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, mongo_store):
        add_pending(mongo_store, [f"https://example.com/{i}" for i in range(10)])
        coordinator = ScriptedCoordinator(delay=0.01)
        settings = ValidationSettings(batch_size=10, max_parallelism=3)
        engine = BatchValidationEngine(mongo_store, coordinator, settings)

        await engine.validate_all()

        assert coordinator.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_records_ordered_by_id(self, sqlite_store):
        urls = [f"https://example.com/{i}" for i in range(4)]
        add_pending(sqlite_store, urls)
        coordinator = ScriptedCoordinator()
        settings = ValidationSettings(batch_size=2, max_parallelism=1)
        engine = BatchValidationEngine(sqlite_store, coordinator, settings)

        await engine.validate_all()

        assert coordinator.calls == urls


class TestBatchValidationEngineFailures:
    """Tests for store failures and run control."""

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_earlier_batches(
        self, mongo_store, validation_settings
    ):
        add_pending(mongo_store, [f"https://example.com/{i}" for i in range(4)])
        engine = BatchValidationEngine(
            mongo_store, ScriptedCoordinator(), validation_settings
        )

        original_update = mongo_store.bulk_update
        calls = {"count": 0}

        def failing_update(records):
            calls["count"] += 1
            if calls["count"] == 2:
                raise StoreOperationError("bulk_update", "connection lost")
            return original_update(records)

        with patch.object(mongo_store, "bulk_update", side_effect=failing_update):
            with pytest.raises(StoreOperationError):
                await engine.validate_all()

        assert mongo_store.count_by_status(LinkStatus.VALID) == 2
        assert pending_count(mongo_store) == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, validation_settings):
        store = MagicMock()
        store.count_by_status.return_value = 3
        store.fetch_batch_by_status.side_effect = StoreOperationError(
            "fetch_batch_by_status", "timeout"
        )
        engine = BatchValidationEngine(store, ScriptedCoordinator(), validation_settings)

        with pytest.raises(StoreOperationError):
            await engine.validate_all()

    @pytest.mark.asyncio
    async def test_zero_modified_commit_is_a_failure(self, mongo_store, validation_settings):
        add_pending(mongo_store, ["https://example.com"])
        engine = BatchValidationEngine(
            mongo_store, ScriptedCoordinator(), validation_settings
        )

        with patch.object(mongo_store, "bulk_update", return_value=0):
            with pytest.raises(StoreOperationError, match="no records modified"):
                await engine.validate_all()

    @pytest.mark.asyncio
    async def test_overlapping_run_is_rejected(self, mongo_store, validation_settings):
        add_pending(mongo_store, ["https://example.com"])
        engine = BatchValidationEngine(
            mongo_store, ScriptedCoordinator(delay=0.05), validation_settings
        )

        first = asyncio.create_task(engine.validate_all())
        await asyncio.sleep(0)
        assert engine.is_running

        with pytest.raises(ValidationRunInProgressError):
            await engine.validate_all()

        summary = await first
        assert summary.total_processed == 1
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_cancellation_keeps_committed_batches(self, mongo_store):
        add_pending(mongo_store, [f"https://example.com/{i}" for i in range(6)])
        settings = ValidationSettings(batch_size=2, max_parallelism=2)
        cancel_event = asyncio.Event()

        class CancellingCoordinator(ScriptedCoordinator):
            async def validate(self, url):
                # Cancel while the second batch is in flight
                if len(self.calls) >= 2:
                    cancel_event.set()
                    self.calls.append(url)
                    await asyncio.sleep(10)
                return await super().validate(url)

        engine = BatchValidationEngine(mongo_store, CancellingCoordinator(), settings)

        with pytest.raises(ValidationCancelledError) as exc_info:
            await engine.validate_all(cancel_event=cancel_event)

        assert exc_info.value.summary.total_processed == 2
        assert mongo_store.count_by_status(LinkStatus.VALID) == 2
        assert pending_count(mongo_store) == 4
        assert not engine.is_running


class TestBatchValidationEngineJobs:
    """Tests for job registry integration."""

    @pytest.mark.asyncio
    async def test_job_progress_is_recorded(
        self, mongo_store, validation_settings, job_registry
    ):
        add_pending(mongo_store, SAMPLE_URLS)
        coordinator = ScriptedCoordinator({SAMPLE_URLS[1]: Verdict(False, "HTTP 404")})
        engine = BatchValidationEngine(
            mongo_store, coordinator, validation_settings, job_registry
        )
        job = job_registry.create_job()

        await engine.validate_all(job_id=job.job_id)

        finished = job_registry.get_job(job.job_id)
        assert finished.status == JobStatus.COMPLETED
        assert finished.total_links == 3
        assert finished.total_batches == 2
        assert finished.processed_links == 3
        assert finished.valid_links == 2
        assert finished.broken_links == 1
        assert finished.current_batch == 2
        assert finished.completed_at is not None

    @pytest.mark.asyncio
    async def test_job_created_when_not_given(
        self, mongo_store, validation_settings, job_registry
    ):
        engine = BatchValidationEngine(
            mongo_store, ScriptedCoordinator(), validation_settings, job_registry
        )

        await engine.validate_all()

        jobs = job_registry.list_jobs()
        assert len(jobs) == 1
        assert jobs[0].status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_run_marks_job_failed(self, validation_settings, job_registry):
        store = MagicMock()
        store.count_by_status.side_effect = StoreOperationError("count_by_status", "down")
        engine = BatchValidationEngine(
            store, ScriptedCoordinator(), validation_settings, job_registry
        )
        job = job_registry.create_job()

        with pytest.raises(StoreOperationError):
            await engine.validate_all(job_id=job.job_id)

        failed = job_registry.get_job(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert "down" in failed.error_message
