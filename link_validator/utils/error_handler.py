"""
Error Hierarchy for the Link Validator

All custom exceptions for the link validator are defined here. Per-URL
failures (network, HTTP, unexpected probe errors) are contained by the retry
coordinator and turned into verdicts; store, configuration, concurrency and
cancellation errors escalate to the caller.
"""

from typing import Any, Optional


# ============================================================================
# Base
# ============================================================================


class LinkValidatorError(Exception):
    """Base exception for all link validator errors."""

    pass


# ============================================================================
# Input Errors
# ============================================================================


class ValidationInputError(LinkValidatorError):
    """Empty or malformed caller input (HTTP 400)."""

    pass


class ConfigurationError(LinkValidatorError):
    """Configuration-related errors."""

    pass


# ============================================================================
# Probe Errors
# ============================================================================


class TransientNetworkError(LinkValidatorError):
    """Timeout or connection-level failure of a single probe."""

    def __init__(
        self, detail: str, is_timeout: bool = False, unreachable: bool = False
    ):
        super().__init__(detail)
        self.detail = detail
        self.is_timeout = is_timeout
        self.unreachable = unreachable


class TerminalHttpError(LinkValidatorError):
    """Final non-2xx/3xx status; recorded, never retried."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class UnexpectedProbeError(LinkValidatorError):
    """Wraps any uncaught exception raised while validating one URL."""

    def __init__(self, url: str, cause: BaseException):
        super().__init__(f"Unexpected error validating {url}: {cause}")
        self.url = url
        self.cause = cause


# ============================================================================
# Store Errors
# ============================================================================


class StoreOperationError(LinkValidatorError):
    """Fetch or commit failure against the record store; fatal for a run."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"Store operation '{operation}' failed: {message}")
        self.operation = operation


# ============================================================================
# Run Control Errors
# ============================================================================


class ValidationRunInProgressError(LinkValidatorError):
    """Raised when a validation run is requested while another is active."""

    def __init__(self, message: str = "A validation run is already in progress"):
        super().__init__(message)


class ValidationCancelledError(LinkValidatorError):
    """Raised when a run is cancelled; carries the committed progress."""

    def __init__(self, summary: Optional[Any] = None):
        super().__init__("Validation run was cancelled")
        self.summary = summary


class JobNotFoundError(LinkValidatorError):
    """Raised when a validation job id is unknown."""

    def __init__(self, job_id: str):
        super().__init__(f"Validation job not found: {job_id}")
        self.job_id = job_id


__all__ = [
    "LinkValidatorError",
    "ValidationInputError",
    "ConfigurationError",
    "TransientNetworkError",
    "TerminalHttpError",
    "UnexpectedProbeError",
    "StoreOperationError",
    "ValidationRunInProgressError",
    "ValidationCancelledError",
    "JobNotFoundError",
]
