"""
Batch Validation Engine

Drains the backlog of pending link records in fixed-size batches. Within a
batch, URLs are validated concurrently up to ``max_parallelism``; each batch
is committed to the record store as one bulk update before the next batch is
fetched.

Batches are always fetched from the front of the pending set. Committed
records leave that set, so the next fetch naturally returns the next batch.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import math
import time
from typing import Any, Callable, List, Optional, Tuple

from ..config.pydantic_config import ValidationSettings
from ..utils.error_handler import (
    StoreOperationError,
    ValidationCancelledError,
    ValidationRunInProgressError,
)
from .data_models import (
    JobStatus,
    LinkRecord,
    LinkStatus,
    ValidationSummary,
    Verdict,
    utc_now,
)
from .job_registry import ValidationJobRegistry
from .record_store.protocol import RecordStore
from .url_validator.prober import URLProber
from .url_validator.retry import RetryCoordinator

logger = logging.getLogger(__name__)


class BatchValidationEngine:
    """
    Validate every pending link record and persist the verdicts.

    Only one run may be active per engine. A second call to
    :meth:`validate_all` while a run is in flight fails fast.

    Example:
        >>> engine = BatchValidationEngine(store, coordinator, settings)
        >>> summary = await engine.validate_all()
        >>> summary.total_processed
        3
    """

    def __init__(
        self,
        store: RecordStore,
        coordinator: RetryCoordinator,
        settings: Optional[ValidationSettings] = None,
        job_registry: Optional[ValidationJobRegistry] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Record store gateway
            coordinator: Per-URL retry coordinator
            settings: Batch size and parallelism settings
            job_registry: Optional registry that receives run progress
        """
        self.store = store
        self.coordinator = coordinator
        self.settings = settings or ValidationSettings()
        self.job_registry = job_registry
        self._run_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        store: RecordStore,
        settings: ValidationSettings,
        job_registry: Optional[ValidationJobRegistry] = None,
    ) -> "BatchValidationEngine":
        """Build an engine with its own prober and retry coordinator."""
        prober = URLProber.from_settings(settings)
        coordinator = RetryCoordinator.from_settings(prober, settings)
        return cls(store, coordinator, settings, job_registry)

    async def close(self) -> None:
        """Release the prober's HTTP client"""
        prober = getattr(self.coordinator, "prober", None)
        if prober is not None:
            await prober.close()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def validate_all(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        job_id: Optional[str] = None,
    ) -> ValidationSummary:
        """
        Validate all pending records.

        Args:
            cancel_event: Set to stop the run; the in-flight batch is dropped
            job_id: Registry job to report progress to (created if unknown)

        Returns:
            Summary of the run

        Raises:
            ValidationRunInProgressError: If another run is active
            ValidationCancelledError: If ``cancel_event`` was set
            StoreOperationError: If a fetch or commit fails
        """
        if self._run_lock.locked():
            raise ValidationRunInProgressError()

        async with self._run_lock:
            job_id = self._start_job(job_id)
            try:
                summary = await self._run(cancel_event, job_id)
            except ValidationCancelledError:
                self._finish_job(job_id, JobStatus.CANCELLED)
                raise
            except asyncio.CancelledError:
                self._finish_job(job_id, JobStatus.CANCELLED)
                raise
            except Exception as e:
                logger.error(f"Validation run failed: {e}")
                self._finish_job(job_id, JobStatus.FAILED, str(e))
                raise

            self._finish_job(job_id, JobStatus.COMPLETED)
            return summary

    async def _run(
        self, cancel_event: Optional[asyncio.Event], job_id: Optional[str]
    ) -> ValidationSummary:
        batch_size = self.settings.batch_size
        summary = ValidationSummary()
        start_time = time.perf_counter()

        pending = await self._call_store(self.store.count_by_status, LinkStatus.PENDING)
        if pending == 0:
            logger.info("No pending links to validate")
            return summary

        expected_batches = math.ceil(pending / batch_size)
        if self.job_registry is not None and job_id is not None:
            self.job_registry.set_totals(job_id, pending, expected_batches)

        logger.info(
            f"Starting validation of {pending} links in {expected_batches} batches "
            f"(batch size {batch_size}, parallelism {self.settings.max_parallelism})"
        )

        batch_number = 0
        while True:
            self._raise_if_cancelled(cancel_event, summary, start_time)

            batch = await self._call_store(
                self.store.fetch_batch_by_status, LinkStatus.PENDING, batch_size
            )
            if not batch:
                break

            batch_number += 1
            batch_start = time.perf_counter()
            logger.info(
                f"Processing batch {batch_number}/{expected_batches} "
                f"({len(batch)} links)"
            )

            verdicts = await self._validate_batch(batch, cancel_event)
            if verdicts is None:
                logger.info(
                    f"Batch {batch_number} abandoned on cancellation, nothing committed"
                )
                self._raise_if_cancelled(cancel_event, summary, start_time)

            valid, broken = await self._commit_batch(batch, verdicts)

            summary.total_processed += len(batch)
            summary.valid_count += valid
            summary.broken_count += broken

            logger.info(
                f"Batch {batch_number} completed in "
                f"{time.perf_counter() - batch_start:.2f}s: "
                f"{valid} valid, {broken} broken"
            )

            if self.job_registry is not None and job_id is not None:
                self.job_registry.update_progress(
                    job_id,
                    processed=summary.total_processed,
                    valid=summary.valid_count,
                    broken=summary.broken_count,
                    current_batch=batch_number,
                )

        summary.duration = time.perf_counter() - start_time
        logger.info(
            f"Validation completed: {summary.total_processed} processed, "
            f"{summary.valid_count} valid, {summary.broken_count} broken "
            f"in {summary.duration:.2f}s"
        )
        return summary

    async def _validate_batch(
        self, batch: List[LinkRecord], cancel_event: Optional[asyncio.Event]
    ) -> Optional[List[Verdict]]:
        """
        Validate every record of a batch under the parallelism bound.

        Returns:
            Verdicts in batch order, or None if the run was cancelled
        """
        semaphore = asyncio.Semaphore(self.settings.max_parallelism)

        async def validate_one(record: LinkRecord) -> Verdict:
            async with semaphore:
                return await self.coordinator.validate(record.url)

        gathered = asyncio.gather(*(validate_one(record) for record in batch))

        if cancel_event is None:
            return list(await gathered)

        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {gathered, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            if gathered in done:
                return list(gathered.result())
            return None
        finally:
            cancel_waiter.cancel()
            if not gathered.done():
                gathered.cancel()
                await asyncio.wait({gathered})

    async def _commit_batch(
        self, batch: List[LinkRecord], verdicts: List[Verdict]
    ) -> Tuple[int, int]:
        """Apply verdicts to the batch and write it as one bulk update."""
        now = utc_now()
        updated = [
            record.with_verdict(verdict, now)
            for record, verdict in zip(batch, verdicts)
        ]

        modified = await self._call_store(self.store.bulk_update, updated)
        if modified == 0:
            # The same records would be fetched again forever
            raise StoreOperationError(
                "bulk_update", f"no records modified for a batch of {len(updated)}"
            )
        if modified < len(updated):
            logger.warning(
                f"Bulk update modified {modified} of {len(updated)} records"
            )

        valid = sum(1 for verdict in verdicts if verdict.is_valid)
        return valid, len(verdicts) - valid

    async def _call_store(self, method: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking store call in the default executor"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(method, *args))

    def _raise_if_cancelled(
        self,
        cancel_event: Optional[asyncio.Event],
        summary: ValidationSummary,
        start_time: float,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            summary.duration = time.perf_counter() - start_time
            logger.info(
                f"Validation cancelled after {summary.total_processed} links"
            )
            raise ValidationCancelledError(summary)

    def _start_job(self, job_id: Optional[str]) -> Optional[str]:
        if self.job_registry is None:
            return job_id
        if job_id is None or not self.job_registry.has_job(job_id):
            job_id = self.job_registry.create_job(job_id=job_id).job_id
        self.job_registry.update_status(job_id, JobStatus.RUNNING)
        return job_id

    def _finish_job(
        self,
        job_id: Optional[str],
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> None:
        if self.job_registry is not None and job_id is not None:
            self.job_registry.update_status(job_id, status, error_message)


__all__ = ["BatchValidationEngine"]
