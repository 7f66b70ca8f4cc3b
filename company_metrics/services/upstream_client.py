"""
Async HTTP transport for LinkedIn endpoints.

Wraps httpx.AsyncClient and maps LinkedIn's failure signals onto the
resolver's exception hierarchy:
- 429 -> UpstreamThrottledError
- 403 / 999 -> UpstreamBlockedError (999 is LinkedIn's bot-wall status)
- 401 or a redirect onto a login/authwall/checkpoint path -> AuthRequiredError
- any other non-2xx -> UpstreamHTTPError
Timeouts honour both the per-call timeout and the caller's overall Deadline.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from company_metrics.common.config import Config
from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import (
    AuthRequiredError,
    ParseFailure,
    UpstreamBlockedError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamThrottledError,
    UpstreamTimeoutError,
)
from company_metrics.common.retry import RetryPolicy

logger = logging.getLogger(__name__)

LINKEDIN_ORIGIN = "https://www.linkedin.com"

# Paths LinkedIn bounces unauthenticated or suspicious sessions to
AUTH_WALL_MARKERS = ("/login", "/authwall", "/checkpoint", "/uas/login", "/signup")

BLOCKED_STATUSES = (403, 999)


def is_auth_wall(url: str) -> bool:
    """True when url points at a login or challenge page."""
    path = urlparse(str(url)).path.lower()
    return any(path.startswith(marker) for marker in AUTH_WALL_MARKERS)


def is_transient(exc: BaseException) -> bool:
    """Retry predicate: timeouts, network errors and 5xx only."""
    if isinstance(exc, UpstreamHTTPError):
        return exc.status_code >= 500 and exc.status_code not in BLOCKED_STATUSES
    return isinstance(exc, UpstreamError)


def check_response(response: httpx.Response, url: str) -> None:
    """Raise the matching resolver error for a failed response."""
    final_url = str(response.url)
    if is_auth_wall(final_url):
        raise AuthRequiredError(f"Redirected to login/challenge page ({final_url}) for {url}")

    status = response.status_code
    if status == 429:
        retry_after = response.headers.get("Retry-After", "unknown")
        raise UpstreamThrottledError(
            status, url, f"HTTP 429 for {url} (rate limited, retry after {retry_after}s)"
        )
    if status in BLOCKED_STATUSES:
        raise UpstreamBlockedError(status, url, f"HTTP {status} for {url} (access denied)")
    if status == 401:
        raise AuthRequiredError(f"HTTP 401 for {url} (session rejected)")
    if not 200 <= status < 300:
        raise UpstreamHTTPError(status, url)


class UpstreamClient:
    """
    Thin async client shared by the resolver components.

    Owns its httpx.AsyncClient unless one is injected (tests inject a client
    built on httpx.MockTransport).
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT_SECONDS
        policy = retry_policy or RetryPolicy(
            max_attempts=Config.HTTP_MAX_ATTEMPTS,
            backoff_seconds=Config.RETRY_BACKOFF_SECONDS,
        )
        self.retry_policy = policy.with_predicate(is_transient)
        self.calls = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> httpx.Response:
        """
        Send one request under the retry policy.

        Raises:
            UpstreamTimeoutError: Per-call timeout or overall deadline hit
            UpstreamError: Network failure
            UpstreamHTTPError (and subclasses) / AuthRequiredError: see module doc
        """
        deadline = deadline or Deadline.none()

        async def _send() -> httpx.Response:
            effective = deadline.call_timeout(timeout or self.timeout, f"{method} {url}")
            self.calls += 1
            try:
                response = await self._get_client().request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    timeout=effective,
                )
            except httpx.TimeoutException as e:
                raise UpstreamTimeoutError(f"Timeout after {effective:.1f}s for {url}") from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"Network error for {url}: {e}") from e
            check_response(response, url)
            return response

        # An exhausted deadline is final
        policy = self.retry_policy.with_predicate(
            lambda exc: is_transient(exc) and not deadline.expired
        )
        return await policy.run(_send)

    async def fetch_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> Any:
        response = await self.request("GET", url, headers=headers, timeout=timeout, deadline=deadline)
        return self._decode_json(response, url)

    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> Any:
        response = await self.request(
            "POST", url, headers=headers, json_body=payload, timeout=timeout, deadline=deadline
        )
        return self._decode_json(response, url)

    async def fetch_text(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        response = await self.request("GET", url, headers=headers, timeout=timeout, deadline=deadline)
        return response.text

    @staticmethod
    def _decode_json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseFailure(f"Invalid JSON from {url}: {e}") from e
