"""
Helper functions for URL validation.

Contains utility functions for URL format checking and status-code
classification shared by the prober and the retry coordinator.
"""

from typing import Optional
from urllib.parse import urlparse

# Reason recorded for every URL judged reachable
VALID_REASON = "valid"

# Reason recorded when every attempt timed out
TIMEOUT_REASON = "Timeout - Request exceeded timeout limit"

# Status returned when a resource does not accept HEAD
METHOD_NOT_ALLOWED = 405

SUPPORTED_SCHEMES = ("http", "https")


def is_valid_url_format(url: str) -> bool:
    """
    Check if URL has valid format.

    Args:
        url: URL to validate

    Returns:
        True if URL has an http(s) scheme and a host, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    url = url.strip()
    if not url:
        return False

    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    return parsed.scheme.lower() in SUPPORTED_SCHEMES and bool(parsed.netloc)


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def is_redirect_status(status_code: int) -> bool:
    return 300 <= status_code < 400


def describe_os_error(error: Optional[BaseException]) -> Optional[str]:
    """
    Walk an exception's cause chain and describe the first OS-level error.

    Transport libraries wrap socket failures (``socket.gaierror``,
    ``ConnectionRefusedError``) in their own exception types; the OS
    message is the useful part for a human-readable reason.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, OSError):
            return error.strerror or str(error)
        error = error.__cause__ or error.__context__
    return None


__all__ = [
    "VALID_REASON",
    "TIMEOUT_REASON",
    "METHOD_NOT_ALLOWED",
    "SUPPORTED_SCHEMES",
    "is_valid_url_format",
    "is_success_status",
    "is_redirect_status",
    "describe_os_error",
]
