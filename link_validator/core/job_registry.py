"""
Validation Job Registry

Tracks the progress of validation runs so that background runs can be
polled and cancelled. The registry is an explicit object created at process
start and handed to the engine and the HTTP app.
"""

import logging
import threading
import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from ..utils.error_handler import JobNotFoundError
from .data_models import JobStatus, ValidationJob, utc_now

logger = logging.getLogger(__name__)


class ValidationJobRegistry:
    """Thread-safe in-memory store of validation jobs"""

    def __init__(self):
        self._jobs: Dict[str, ValidationJob] = {}
        self._lock = threading.Lock()

    def create_job(
        self,
        total_links: int = 0,
        total_batches: int = 0,
        job_id: Optional[str] = None,
    ) -> ValidationJob:
        """
        Register a new queued job.

        Args:
            total_links: Pending links known at creation time
            total_batches: Expected number of batches
            job_id: Explicit id; a random one is generated when omitted

        Returns:
            Copy of the created job
        """
        job = ValidationJob(
            job_id=job_id or uuid.uuid4().hex,
            status=JobStatus.QUEUED,
            total_links=total_links,
            total_batches=total_batches,
        )
        with self._lock:
            self._jobs[job.job_id] = job
        logger.debug(f"Created validation job {job.job_id}")
        return replace(job)

    def _require(self, job_id: str) -> ValidationJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def has_job(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def get_job(self, job_id: str) -> ValidationJob:
        """
        Get a snapshot of a job.

        Raises:
            JobNotFoundError: If the id is unknown
        """
        with self._lock:
            return replace(self._require(job_id))

    def set_totals(self, job_id: str, total_links: int, total_batches: int) -> None:
        with self._lock:
            job = self._require(job_id)
            job.total_links = total_links
            job.total_batches = total_batches

    def update_progress(
        self,
        job_id: str,
        processed: int,
        valid: int,
        broken: int,
        current_batch: int,
    ) -> None:
        """Record the counters after a committed batch."""
        with self._lock:
            job = self._require(job_id)
            job.processed_links = processed
            job.valid_links = valid
            job.broken_links = broken
            job.current_batch = current_batch

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> None:
        """Move a job to a new status; terminal statuses stamp ``completed_at``."""
        status = JobStatus(status)
        with self._lock:
            job = self._require(job_id)
            job.status = status
            if error_message is not None:
                job.error_message = error_message
            if status.is_terminal:
                job.completed_at = utc_now()
        logger.info(f"Validation job {job_id} is {status.value}")

    def list_jobs(self) -> List[ValidationJob]:
        """All jobs, newest first"""
        with self._lock:
            jobs = [replace(job) for job in self._jobs.values()]
        # Insertion order breaks ties between jobs started in the same ms
        ordered = list(reversed(jobs))
        return sorted(ordered, key=lambda job: job.started_at, reverse=True)


__all__ = ["ValidationJobRegistry"]
