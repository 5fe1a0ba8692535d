"""
Fetch Orchestrator - guarded retrieval of the page under analysis.

Enforces:
- a hard wall-clock deadline around the whole exchange
- redirect following, with every hop and the landed URL checked against
  the private/internal host predicate
- 2xx final status and an HTML-family content type
- a streamed byte cap on the body

Transport errors are normalized into FetchFailure; callers never see raw
httpx exceptions.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum

import httpx
import structlog

from app.core.config import get_settings
from app.core.http import (
    DisallowedTargetError,
    ResponseTooLargeError,
    build_client,
    read_capped,
)
from app.core.url_security import TargetDescriptor, is_url_safe_for_fetch
from app.engines.base import FetchedDocument

logger = structlog.get_logger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class FetchFailure(str, Enum):
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    DISALLOWED_TARGET = "disallowed_target"
    UPSTREAM_STATUS = "upstream_status"
    WRONG_CONTENT_TYPE = "wrong_content_type"
    OVERSIZED = "oversized"


class FetchError(Exception):
    """Typed fetch failure. `message` is safe to return to the caller."""

    def __init__(self, reason: FetchFailure, message: str, status_code: int | None = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.status_code = status_code


def is_html_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in HTML_CONTENT_TYPES


def charset_from_content_type(content_type: str) -> str | None:
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'")
    return None


class PageFetcher:
    """Fetches a single page over plain HTTP. No JavaScript rendering."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = get_settings()
        self.transport = transport

    async def fetch(self, target: TargetDescriptor) -> FetchedDocument:
        start = time.perf_counter()
        try:
            document = await asyncio.wait_for(
                self._fetch(target.url),
                timeout=self.settings.FETCH_TIMEOUT_SECONDS,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.info("Fetch timed out", url=target.url)
            raise FetchError(
                FetchFailure.TIMEOUT,
                "The request timed out. The site may be too slow to respond.",
            ) from None
        except DisallowedTargetError:
            logger.warning("Fetch redirected to disallowed target", url=target.url)
            raise FetchError(
                FetchFailure.DISALLOWED_TARGET,
                "The URL redirects to a destination that is not allowed.",
            ) from None
        except ResponseTooLargeError as exc:
            raise FetchError(
                FetchFailure.OVERSIZED,
                f"The page is too large to analyze (limit {exc.limit:,} bytes).",
            ) from None
        except (httpx.TooManyRedirects, httpx.TransportError, httpx.InvalidURL) as exc:
            logger.info("Fetch failed", url=target.url, error_type=type(exc).__name__)
            raise FetchError(FetchFailure.UNREACHABLE, "Unable to reach the site.") from None

        document.elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "Page fetched",
            url=target.url,
            final_url=document.final_url,
            status_code=document.status_code,
            bytes=document.byte_length,
            elapsed_ms=document.elapsed_ms,
        )
        return document

    async def _fetch(self, url: str) -> FetchedDocument:
        async with build_client(
            user_agent=self.settings.FETCH_USER_AGENT,
            timeout=self.settings.FETCH_TIMEOUT_SECONDS,
            max_redirects=self.settings.FETCH_MAX_REDIRECTS,
            transport=self.transport,
        ) as client:
            async with client.stream("GET", url) as response:
                final_url = str(response.url)
                if not is_url_safe_for_fetch(final_url):
                    raise DisallowedTargetError(final_url)

                if not response.is_success:
                    raise FetchError(
                        FetchFailure.UPSTREAM_STATUS,
                        f"Unable to access the site (HTTP {response.status_code}).",
                        status_code=response.status_code,
                    )

                content_type = response.headers.get("content-type", "")
                if not is_html_content_type(content_type):
                    media_type = content_type.split(";", 1)[0].strip()[:100] or "unknown"
                    raise FetchError(
                        FetchFailure.WRONG_CONTENT_TYPE,
                        f"The URL does not return an HTML page (content type: {media_type}).",
                    )

                content = await read_capped(response, self.settings.FETCH_MAX_BYTES)

        return FetchedDocument(
            content=content,
            final_url=final_url,
            content_type=content_type,
            encoding=charset_from_content_type(content_type),
            status_code=response.status_code,
            byte_length=len(content),
        )
