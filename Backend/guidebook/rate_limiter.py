"""
Per-outfitter rate limiting.

Requests are counted per tenant, not per IP, so one busy outfitter cannot
exhaust another's budget. Limits come from TENANT_RATE_LIMIT and
TENANT_RATE_WINDOW_SECONDS.

Usage:
    from .rate_limiter import tenant_rate_limit

    router = APIRouter(
        dependencies=[Depends(get_tenant_context), Depends(tenant_rate_limit)],
    )
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, Request
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import get_settings
from .core.errors import RateLimitExceededError
from .tenancy.context import TenantContext, get_tenant_context

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────
# In-Memory Rate Limiter (Simple Implementation)
# ────────────────────────────────────────────────────────────────

class TenantRateLimiter:
    """
    In-memory sliding-window limiter keyed by outfitter id.

    For production with multiple servers, consider Redis-based rate limiting.
    """

    def __init__(self, cleanup_interval: int = 300):
        # Structure: {outfitter_id: [timestamp, ...]}
        self.requests: Dict[int, List[float]] = defaultdict(list)
        self.cleanup_interval = cleanup_interval
        self.last_cleanup = time.time()

    def _cleanup_old_requests(self, window_seconds: int) -> None:
        """Drop timestamps outside the window to prevent memory bloat."""
        current_time = time.time()
        if current_time - self.last_cleanup < self.cleanup_interval:
            return

        cutoff = current_time - window_seconds
        for outfitter_id in list(self.requests.keys()):
            self.requests[outfitter_id] = [ts for ts in self.requests[outfitter_id] if ts > cutoff]
            if not self.requests[outfitter_id]:
                del self.requests[outfitter_id]

        self.last_cleanup = current_time
        logger.debug(f"Rate limiter cleanup: {len(self.requests)} outfitters tracked")

    def check(
        self,
        outfitter_id: int,
        max_requests: int,
        window_seconds: int = 60,
        now: Optional[float] = None,
    ) -> Tuple[bool, dict]:
        """
        Count a request against an outfitter's budget.

        Returns:
            (is_allowed, metadata) tuple
            metadata contains: remaining, reset_time, total_requests, limit, window_seconds
        """
        self._cleanup_old_requests(window_seconds)

        current_time = now if now is not None else time.time()
        window_start = current_time - window_seconds

        recent_requests = [ts for ts in self.requests[outfitter_id] if ts > window_start]
        self.requests[outfitter_id] = recent_requests

        request_count = len(recent_requests)
        is_allowed = request_count < max_requests
        if is_allowed:
            recent_requests.append(current_time)
            request_count += 1

        # Reset when the oldest request in the window expires
        if recent_requests:
            reset_time = min(recent_requests) + window_seconds
        else:
            reset_time = current_time + window_seconds

        metadata = {
            "remaining": max(0, max_requests - request_count),
            "reset_time": int(reset_time),
            "total_requests": request_count,
            "limit": max_requests,
            "window_seconds": window_seconds,
        }
        return is_allowed, metadata

    def clear(self, outfitter_id: Optional[int] = None) -> None:
        """Clear the budget of one outfitter, or of all outfitters."""
        if outfitter_id is None:
            self.requests.clear()
            logger.info("Cleared all rate limits")
        else:
            self.requests.pop(outfitter_id, None)
            logger.info(f"Cleared rate limits for outfitter {outfitter_id}")


# Process-wide limiter; its state is partitioned per outfitter
_rate_limiter = TenantRateLimiter()


def get_rate_limiter() -> TenantRateLimiter:
    return _rate_limiter


# ────────────────────────────────────────────────────────────────
# FastAPI Dependency
# ────────────────────────────────────────────────────────────────

async def tenant_rate_limit(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    limiter: TenantRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Reject the request with 429 once the outfitter's budget is spent."""
    settings = get_settings()
    is_allowed, metadata = limiter.check(
        ctx.outfitter_id,
        max_requests=settings.tenant_rate_limit,
        window_seconds=settings.tenant_rate_window_seconds,
    )

    headers = {
        "X-RateLimit-Limit": str(metadata["limit"]),
        "X-RateLimit-Remaining": str(metadata["remaining"]),
        "X-RateLimit-Reset": str(metadata["reset_time"]),
    }

    if not is_allowed:
        retry_after = max(1, metadata["reset_time"] - int(time.time()))
        logger.warning(
            f"[RATE_LIMIT] Blocked request from outfitter {ctx.outfitter_id} "
            f"to {request.url.path}: {metadata['total_requests']}/{metadata['limit']} "
            f"in {metadata['window_seconds']}s window"
        )
        raise RateLimitExceededError(
            f"Too many requests. Limit: {metadata['limit']} per {metadata['window_seconds']}s",
            headers={**headers, "Retry-After": str(retry_after)},
        )

    # Copied onto the response by SecurityHeadersMiddleware
    request.state.rate_limit_headers = headers


# ────────────────────────────────────────────────────────────────
# Middleware
# ────────────────────────────────────────────────────────────────

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to every response.

    Responses to tenant requests also carry the rate limit headers and an
    X-Tenant-Isolated marker naming the outfitter the data was scoped to.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Cache-Control"] = "no-store"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        tenant = getattr(request.state, "tenant", None)
        if tenant is not None:
            response.headers["X-Tenant-Isolated"] = f"outfitter-{tenant.outfitter_id}"

        for header, value in getattr(request.state, "rate_limit_headers", {}).items():
            response.headers[header] = value

        return response
