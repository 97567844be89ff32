"""Request middleware: view rate limiting and audit trail."""
from __future__ import annotations

import json
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from viewcounter.models import CLIENT_ID_LENGTH
from viewcounter.security.rate_limit import RateLimiter


def client_identifier(request: Request) -> str:
    """Return the requesting origin: first ``X-Forwarded-For`` hop or the peer host.

    Forwarded values are cut to the width of the receipt column.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop[:CLIENT_ID_LENGTH]
    if request.client is None or not request.client.host:
        return "anonymous"
    return request.client.host


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle view submissions per client; other routes pass through."""

    def __init__(  # type: ignore[override]
        self, app, rate_limiter: RateLimiter, path_suffix: str = "/view"
    ) -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.path_suffix = path_suffix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or not request.url.path.endswith(self.path_suffix):
            return await call_next(request)

        remaining = self.rate_limiter.hit(client_identifier(request))
        window = str(self.rate_limiter.window_seconds)
        if remaining is None:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests from this client, please try again later"},
                headers={
                    "Retry-After": window,
                    "X-RateLimit-Limit": str(self.rate_limiter.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers.setdefault(
            "X-RateLimit-Limit", str(self.rate_limiter.max_requests)
        )
        response.headers.setdefault("X-RateLimit-Remaining", str(remaining))
        return response


class AuditMiddleware(BaseHTTPMiddleware):
    """Write one structured audit line per request."""

    def __init__(self, app, audit_logger) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = audit_logger

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        payload = {
            "event": "request",
            "path": request.url.path,
            "method": request.method,
            "client": client_identifier(request),
        }
        try:
            response = await call_next(request)
        except Exception as exc:
            payload.update(status_code=500, error=repr(exc))
            raise
        else:
            payload["status_code"] = response.status_code
            return response
        finally:
            payload["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            self._logger.info(json.dumps(payload, sort_keys=True))
