"""Health check endpoints for load balancer and monitoring."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.rate_limit import RateLimiter

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    checks: dict[str, str]
    rate_limit: dict[str, int | str]


async def _store_healthy(limiter: RateLimiter) -> tuple[bool, str]:
    try:
        healthy = await limiter.store.ping()
    except Exception as e:
        return False, f"unhealthy: {type(e).__name__}"
    return healthy, "healthy" if healthy else "unhealthy"


@router.get("", response_model=HealthResponse, include_in_schema=False)
async def health_check(request: Request) -> HealthResponse:
    settings = get_settings()
    limiter: RateLimiter = request.app.state.rate_limiter

    _, store_check = await _store_healthy(limiter)
    checks = {"rate_limit_store": store_check}
    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "degraded"

    return HealthResponse(
        status=overall,
        version=settings.APP_VERSION,
        checks=checks,
        rate_limit={
            "backend": settings.RATE_LIMIT_BACKEND,
            "max_requests": limiter.max_requests,
            "window_seconds": limiter.window_seconds,
        },
    )


@router.get("/ready", include_in_schema=False)
async def readiness(request: Request, response: Response) -> dict:
    """Kubernetes readiness probe. Not ready while the rate-limit store is unreachable."""
    ready, _ = await _store_healthy(request.app.state.rate_limiter)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"ready": ready}


@router.get("/live", include_in_schema=False)
async def liveness() -> dict:
    """Kubernetes liveness probe."""
    return {"alive": True}
