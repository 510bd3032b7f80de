"""
URL Prober

Performs exactly one reachability probe for a URL and classifies the raw
outcome. Retrying is left to the RetryCoordinator.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

import httpx

from ...utils.error_handler import TerminalHttpError, TransientNetworkError
from .helpers import (
    METHOD_NOT_ALLOWED,
    describe_os_error,
    is_redirect_status,
    is_success_status,
)

logger = logging.getLogger(__name__)


class ProbeOutcomeKind(Enum):
    """Classification of a single probe"""

    SUCCESS = "success"
    REDIRECT = "redirect"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe attempt."""

    url: str
    kind: ProbeOutcomeKind
    status_code: Optional[int] = None
    detail: Optional[str] = None
    unreachable: bool = False

    @classmethod
    def from_status(cls, url: str, status_code: int) -> "ProbeOutcome":
        if is_success_status(status_code):
            kind = ProbeOutcomeKind.SUCCESS
        elif is_redirect_status(status_code):
            kind = ProbeOutcomeKind.REDIRECT
        else:
            kind = ProbeOutcomeKind.HTTP_ERROR
        return cls(url=url, kind=kind, status_code=status_code)

    @classmethod
    def timeout(cls, url: str, detail: str) -> "ProbeOutcome":
        return cls(url=url, kind=ProbeOutcomeKind.TIMEOUT, detail=detail)

    @classmethod
    def network_failure(
        cls, url: str, detail: str, unreachable: bool = False
    ) -> "ProbeOutcome":
        return cls(
            url=url,
            kind=ProbeOutcomeKind.NETWORK_FAILURE,
            detail=detail,
            unreachable=unreachable,
        )

    @property
    def is_success(self) -> bool:
        return self.kind in (ProbeOutcomeKind.SUCCESS, ProbeOutcomeKind.REDIRECT)

    def as_error(self) -> Optional[Union[TerminalHttpError, TransientNetworkError]]:
        """Express a failed outcome in the error taxonomy; None on success."""
        if self.kind == ProbeOutcomeKind.HTTP_ERROR:
            return TerminalHttpError(self.status_code)
        if self.kind == ProbeOutcomeKind.TIMEOUT:
            return TransientNetworkError(self.detail or "timeout", is_timeout=True)
        if self.kind == ProbeOutcomeKind.NETWORK_FAILURE:
            return TransientNetworkError(
                self.detail or "network failure", unreachable=self.unreachable
            )
        return None


class URLProber:
    """
    Single-attempt HTTP reachability probe built on httpx.

    HEAD is tried first; a 405 answer is followed by a GET within the same
    attempt. Only headers are read. Redirects are followed by the transport
    up to ``max_redirects`` hops.

    Certificate verification is off by default so self-signed endpoints are
    not reported as broken. This relaxation applies to reachability checks
    only.

    Example:
        >>> async with URLProber(timeout=5) as prober:
        ...     outcome = await prober.probe("https://example.com")
        >>> outcome.is_success
        True
    """

    DEFAULT_HEADERS = {
        "User-Agent": "LinkValidator/1.0",
        "Accept": "*/*",
    }

    def __init__(
        self,
        timeout: float = 5.0,
        max_redirects: int = 5,
        verify_ssl: bool = False,
        max_connections: int = 100,
        user_agent: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the prober.

        Args:
            timeout: Default deadline for one attempt in seconds
            max_redirects: Redirect hops followed before a 3xx is final
            verify_ssl: Whether to verify TLS certificates
            max_connections: Connection pool size
            user_agent: Override for the User-Agent header
            client: Pre-built client (used as-is and not closed by us)
        """
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.verify_ssl = verify_ssl
        self.max_connections = max_connections
        self.headers: Dict[str, str] = dict(self.DEFAULT_HEADERS)
        if user_agent:
            self.headers["User-Agent"] = user_agent

        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings, client: Optional[httpx.AsyncClient] = None) -> "URLProber":
        """Build a prober from :class:`ValidationSettings`."""
        return cls(
            timeout=settings.timeout_seconds,
            max_redirects=settings.max_redirects,
            verify_ssl=settings.verify_ssl,
            max_connections=max(settings.max_parallelism * 2, 10),
            user_agent=settings.user_agent,
            client=client,
        )

    async def __aenter__(self) -> "URLProber":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=min(self.max_connections, 20),
                ),
                follow_redirects=True,
                max_redirects=self.max_redirects,
                verify=self.verify_ssl,
                headers=self.headers,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this prober created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _send(self, client: httpx.AsyncClient, method: str, url: str) -> int:
        """Send one request, read headers only, and return the final status."""
        request = client.build_request(method, url)
        response = await client.send(request, stream=True)
        try:
            return response.status_code
        finally:
            await response.aclose()

    async def _attempt(self, url: str) -> int:
        client = self._get_client()
        status_code = await self._send(client, "HEAD", url)
        if status_code == METHOD_NOT_ALLOWED:
            logger.debug(f"HEAD not allowed for {url}, retrying with GET")
            status_code = await self._send(client, "GET", url)
        return status_code

    async def probe(self, url: str, timeout: Optional[float] = None) -> ProbeOutcome:
        """
        Probe a URL once.

        Args:
            url: URL to probe
            timeout: Deadline for the whole attempt (defaults to ``self.timeout``)

        Returns:
            Classified ProbeOutcome

        Raises:
            httpx.UnsupportedProtocol, httpx.InvalidURL: for URLs that cannot
                be requested at all; these are not network outcomes
        """
        deadline = self.timeout if timeout is None else timeout

        try:
            status_code = await asyncio.wait_for(self._attempt(url), timeout=deadline)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return ProbeOutcome.timeout(
                url, f"Request timeout after {deadline} seconds"
            )
        except httpx.TooManyRedirects:
            # Hop limit reached while still being redirected
            return ProbeOutcome(url=url, kind=ProbeOutcomeKind.REDIRECT)
        except httpx.UnsupportedProtocol:
            raise
        except httpx.ConnectError as e:
            detail = describe_os_error(e) or str(e) or type(e).__name__
            return ProbeOutcome.network_failure(url, detail, unreachable=True)
        except httpx.TransportError as e:
            return ProbeOutcome.network_failure(url, str(e) or type(e).__name__)

        return ProbeOutcome.from_status(url, status_code)


__all__ = ["ProbeOutcomeKind", "ProbeOutcome", "URLProber"]
