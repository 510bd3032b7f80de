"""
Data models for the Link Validator.

This module defines the internal data structures used to represent link
records, verdicts, run summaries and validation jobs.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    """Current UTC time, truncated to milliseconds (store precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000, tzinfo=None)


class LinkStatus(str, Enum):
    """Lifecycle states of a link record."""

    PENDING = "pending"
    VALID = "valid"
    BROKEN = "broken"


@dataclass(frozen=True)
class Verdict:
    """Final outcome for one URL after all retries."""

    is_valid: bool
    reason: str
    attempts: int = 0

    @property
    def status(self) -> LinkStatus:
        return LinkStatus.VALID if self.is_valid else LinkStatus.BROKEN


@dataclass
class LinkRecord:
    """
    A persisted link.

    ``id``, ``url`` and ``created_at`` never change after insertion; only
    ``status``, ``reason`` and ``updated_at`` are mutated by validation.
    """

    url: str
    id: Optional[str] = None
    status: LinkStatus = LinkStatus.PENDING
    reason: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.status, LinkStatus):
            self.status = LinkStatus(self.status)
        if self.updated_at is None:
            self.updated_at = self.created_at

    @classmethod
    def new_pending(cls, url: str, now: Optional[datetime] = None) -> "LinkRecord":
        """Create a fresh pending record with identical timestamps."""
        timestamp = now or utc_now()
        return cls(
            url=url,
            status=LinkStatus.PENDING,
            reason=None,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def with_verdict(
        self, verdict: Verdict, now: Optional[datetime] = None
    ) -> "LinkRecord":
        """Return a copy carrying the verdict's status and reason."""
        return replace(
            self,
            status=verdict.status,
            reason=verdict.reason,
            updated_at=now or utc_now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "status": self.status.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ValidationSummary:
    """Ephemeral result of one full engine run."""

    total_processed: int = 0
    valid_count: int = 0
    broken_count: int = 0
    duration: float = 0.0  # seconds

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape returned to API callers"""
        return {
            "totalProcessed": self.total_processed,
            "validLinks": self.valid_count,
            "brokenLinks": self.broken_count,
            "durationMs": round(self.duration_ms, 3),
            "durationSeconds": round(self.duration, 6),
        }


@dataclass
class BrokenLinksPage:
    """One page of the broken-links report."""

    records: List[LinkRecord]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pagination": {
                "currentPage": self.page,
                "pageSize": self.page_size,
                "totalCount": self.total_count,
                "totalPages": self.total_pages,
                "hasNextPage": self.has_next,
                "hasPreviousPage": self.has_previous,
            },
            "brokenLinks": [
                {
                    "id": record.id or "",
                    "link": record.url,
                    "reason": record.reason or "Unknown",
                    "lastValidated": record.updated_at.isoformat()
                    if record.updated_at
                    else None,
                }
                for record in self.records
            ],
        }


class JobStatus(str, Enum):
    """Lifecycle states of a validation job"""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass
class ValidationJob:
    """Progress of one validation run, as tracked by the job registry."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    total_links: int = 0
    processed_links: int = 0
    valid_links: int = 0
    broken_links: int = 0
    current_batch: int = 0
    total_batches: int = 0
    error_message: Optional[str] = None

    @property
    def progress_percentage(self) -> float:
        if self.total_links <= 0:
            return 0.0
        return self.processed_links * 100.0 / self.total_links

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "totalLinks": self.total_links,
            "processedLinks": self.processed_links,
            "validLinks": self.valid_links,
            "brokenLinks": self.broken_links,
            "currentBatch": self.current_batch,
            "totalBatches": self.total_batches,
            "progressPercentage": round(self.progress_percentage, 2),
            "errorMessage": self.error_message,
        }
