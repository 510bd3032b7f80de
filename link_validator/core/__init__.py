"""
Core link validation modules.

This package contains the data models, record stores, per-URL validation,
the batch engine, ingestion, reporting and job tracking.
"""

from .batch_validator import BatchValidationEngine
from .data_models import (
    BrokenLinksPage,
    JobStatus,
    LinkRecord,
    LinkStatus,
    ValidationJob,
    ValidationSummary,
    Verdict,
)
from .ingestion import LinkIngestor
from .job_registry import ValidationJobRegistry
from .reporting import BrokenLinkReporter

__all__ = [
    "BatchValidationEngine",
    "BrokenLinkReporter",
    "BrokenLinksPage",
    "JobStatus",
    "LinkIngestor",
    "LinkRecord",
    "LinkStatus",
    "ValidationJob",
    "ValidationJobRegistry",
    "ValidationSummary",
    "Verdict",
]
