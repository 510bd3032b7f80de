"""
Retry Coordinator

Wraps the URLProber with bounded retries and linear backoff and produces a
final Verdict per URL. Every failure mode of a single URL ends in a verdict;
nothing but cancellation escapes this layer.
"""

import asyncio
import logging
from typing import Optional

from ...utils.error_handler import (
    TerminalHttpError,
    TransientNetworkError,
    UnexpectedProbeError,
)
from ..data_models import Verdict
from .helpers import TIMEOUT_REASON, VALID_REASON, is_valid_url_format
from .prober import URLProber

logger = logging.getLogger(__name__)


class RetryCoordinator:
    """Turn probes into verdicts with bounded retries"""

    def __init__(
        self,
        prober: URLProber,
        max_retries: int = 2,
        timeout: float = 5.0,
        backoff_seconds: float = 0.1,
    ):
        """
        Initialize the coordinator.

        Args:
            prober: Single-attempt prober
            max_retries: Retries after the first attempt (R)
            timeout: Deadline for each attempt in seconds (T)
            backoff_seconds: Linear backoff step; attempt n waits n * step
        """
        self.prober = prober
        self.max_retries = max_retries
        self.timeout = timeout
        self.backoff_seconds = backoff_seconds

    @classmethod
    def from_settings(cls, prober: URLProber, settings) -> "RetryCoordinator":
        return cls(
            prober=prober,
            max_retries=settings.max_retries,
            timeout=settings.timeout_seconds,
            backoff_seconds=settings.retry_backoff_seconds,
        )

    async def validate(self, url: str) -> Verdict:
        """
        Validate one URL.

        Malformed URLs are broken without probing. Success and redirects are
        valid. HTTP errors and unreachable hosts are broken at once. Timeouts and other network failures are retried
        up to ``max_retries`` times before the URL is declared broken.

        Args:
            url: URL to validate

        Returns:
            Verdict with the number of probes made
        """
        if not is_valid_url_format(url):
            return Verdict(False, "Error: Invalid URL format", 0)

        attempts = 0
        last_error: Optional[TransientNetworkError] = None

        try:
            while attempts <= self.max_retries:
                outcome = await self.prober.probe(url, timeout=self.timeout)
                attempts += 1

                if outcome.is_success:
                    return Verdict(True, VALID_REASON, attempts)

                error = outcome.as_error()
                if isinstance(error, TerminalHttpError):
                    return Verdict(False, str(error), attempts)

                if error.unreachable:
                    return Verdict(False, f"Network error: {error.detail}", attempts)

                last_error = error
                if attempts <= self.max_retries:
                    delay = self.backoff_seconds * attempts
                    logger.debug(
                        f"Retrying {url} in {delay:.2f}s "
                        f"(attempt {attempts}/{self.max_retries + 1}): {error}"
                    )
                    await asyncio.sleep(delay)

        except Exception as e:
            failure = UnexpectedProbeError(url, e)
            logger.warning(str(failure), exc_info=True)
            return Verdict(False, f"Error: {e}", attempts)

        if last_error is not None and last_error.is_timeout:
            return Verdict(False, TIMEOUT_REASON, attempts)

        detail = last_error.detail if last_error is not None else "Unknown error"
        return Verdict(
            False, f"Failed after {self.max_retries} retries: {detail}", attempts
        )


__all__ = ["RetryCoordinator"]
