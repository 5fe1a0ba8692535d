"""
Outbound HTTP client factory.

Every client built here refuses to send a request, redirect hops included,
to a host that fails the admission-control host predicate.
"""

from __future__ import annotations

import httpx
import structlog

from app.core.url_security import is_url_safe_for_fetch

logger = structlog.get_logger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,*/*;q=0.8"


class DisallowedTargetError(Exception):
    """An outbound request (usually a redirect hop) pointed at a private or internal host."""

    def __init__(self, url: str):
        super().__init__("Request target is not allowed")
        self.url = url


class ResponseTooLargeError(Exception):
    """A response body crossed the configured byte cap."""

    def __init__(self, limit: int):
        super().__init__(f"Response body exceeds {limit} bytes")
        self.limit = limit


async def guard_request(request: httpx.Request) -> None:
    """httpx request hook: block private/internal targets before any bytes are sent."""
    url = str(request.url)
    if not is_url_safe_for_fetch(url):
        logger.warning("Blocked outbound request to disallowed host", host=request.url.host)
        raise DisallowedTargetError(url)


def build_client(
    user_agent: str,
    timeout: float,
    max_redirects: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
    accept: str = HTML_ACCEPT,
) -> httpx.AsyncClient:
    headers = {
        "User-Agent": user_agent,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.9",
    }
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        max_redirects=max_redirects,
        timeout=httpx.Timeout(timeout),
        transport=transport,
        event_hooks={"request": [guard_request]},
    )


async def read_capped(response: httpx.Response, max_bytes: int, truncate: bool = False) -> bytes:
    """
    Read a streamed response body without holding more than max_bytes.

    With truncate=False a body over the cap raises ResponseTooLargeError;
    with truncate=True the first max_bytes are returned.
    """
    declared = response.headers.get("content-length")
    if not truncate and declared and declared.isdigit() and int(declared) > max_bytes:
        raise ResponseTooLargeError(max_bytes)

    chunks: list[bytes] = []
    received = 0
    async for chunk in response.aiter_bytes():
        received += len(chunk)
        if received > max_bytes:
            if not truncate:
                raise ResponseTooLargeError(max_bytes)
            chunks.append(chunk[: max_bytes - (received - len(chunk))])
            break
        chunks.append(chunk)
    return b"".join(chunks)
