"""
Utility modules for the Link Validator.

This package contains the error hierarchy and logging setup.
"""

from .error_handler import (
    ConfigurationError,
    JobNotFoundError,
    LinkValidatorError,
    StoreOperationError,
    TerminalHttpError,
    TransientNetworkError,
    UnexpectedProbeError,
    ValidationCancelledError,
    ValidationInputError,
    ValidationRunInProgressError,
)
from .logging_setup import setup_logging

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
    "setup_logging",
]
