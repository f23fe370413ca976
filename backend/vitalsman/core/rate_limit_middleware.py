"""
Rate Limiting Middleware

Limits anonymous metric submissions per client IP. Authenticated read
endpoints are not limited here.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from vitalsman.config import settings
from vitalsman.services.rate_limiter import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware for rate limiting metric ingestion.

    Adds rate limit headers to limited responses.
    """

    def __init__(self, app, rate_limiter: RateLimiter = None, limit_per_minute: int = None):
        super().__init__(app)
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.limit_per_minute = limit_per_minute or settings.CWV_RATE_LIMIT_PER_MINUTE
        self.ingest_path = f"{settings.API_V1_STR}/cwv"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.RATE_LIMIT_ENABLED or not self._is_ingest(request):
            return await call_next(request)

        client_ip = self._client_ip(request)
        result = await self.rate_limiter.check_rate_limit(
            client_id=f"ip:{client_ip}",
            limit_per_minute=self.limit_per_minute,
            endpoint="cwv",
        )

        if not result.allowed:
            logger.warning(f"[RATELIMIT] CWV ingestion limit exceeded for {client_ip}")
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Rate limit exceeded",
                },
                headers={
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(result.reset_at),
                    "Retry-After": str(result.retry_after or 60),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_at)

        return response

    def _is_ingest(self, request: Request) -> bool:
        return request.method == "POST" and request.url.path.rstrip("/") == self.ingest_path

    @staticmethod
    def _client_ip(request: Request) -> str:
        # Forwarded headers count only when uvicorn runs with --proxy-headers
        return request.client.host if request.client else "unknown"
