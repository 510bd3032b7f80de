"""
URL Validator Package

This package provides per-URL validation:
- prober: one HEAD/GET reachability probe, classified into a ProbeOutcome
- retry: bounded retries with linear backoff, producing a Verdict
- helpers: URL format checks, status classification and reason strings

Usage:
    from link_validator.core.url_validator import RetryCoordinator, URLProber

    async with URLProber(timeout=5) as prober:
        coordinator = RetryCoordinator(prober, max_retries=2, timeout=5)
        verdict = await coordinator.validate("https://example.com")
"""

from .helpers import (
    TIMEOUT_REASON,
    VALID_REASON,
    is_valid_url_format,
)
from .prober import ProbeOutcome, ProbeOutcomeKind, URLProber
from .retry import RetryCoordinator

__all__ = [
    "TIMEOUT_REASON",
    "VALID_REASON",
    "is_valid_url_format",
    "ProbeOutcome",
    "ProbeOutcomeKind",
    "URLProber",
    "RetryCoordinator",
]
