"""
Analyze API Route

No business logic lives here.
The route gates on the rate limiter, validates the body and URL, calls the
analysis service and maps failures to status codes.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.config import get_settings
from app.core.rate_limit import RateLimiter, client_key
from app.core.url_security import UnsafeURLError, validate_target_url
from app.engines.base import AnalysisResult
from app.engines.fetcher.engine import FetchError, FetchFailure
from app.services.analysis import AnalysisService

logger = structlog.get_logger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────

def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_analysis_service() -> AnalysisService:
    return AnalysisService()


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    key = client_key(request, get_settings().TRUST_PROXY_HEADERS)
    decision = await limiter.check(key)
    if not decision.allowed:
        logger.info("Rate limit exceeded", client=key, retry_after=decision.retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please wait before analyzing another URL.",
            headers={"Retry-After": str(decision.retry_after)},
        )


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────

@router.post(
    "",
    response_model=AnalysisResult,
    summary="Analyze how readable a page is to AI agents",
    description="Fetches the page, scores it and returns the structured preview an AI crawler would extract.",
    dependencies=[Depends(enforce_rate_limit)],
)
async def analyze_url(
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
) -> AnalysisResult:
    if not _is_json(request.headers.get("content-type", "")):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Content-Type must be application/json.",
        )

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body.") from None

    if not isinstance(body, dict) or not isinstance(body.get("url"), str):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Body must be a JSON object with a string "url" field.',
        )

    try:
        target = validate_target_url(body["url"])
    except UnsafeURLError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None

    try:
        return await service.analyze(target)
    except FetchError as exc:
        logger.info("Analysis rejected", url=target.url, reason=exc.reason.value)
        if exc.reason is FetchFailure.TIMEOUT:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="The request timed out. The site may be too slow to respond.",
            ) from None
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message) from None
