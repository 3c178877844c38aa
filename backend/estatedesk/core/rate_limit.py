"""
Request throttling for login and money-moving routes

Only writes are counted. Each route group has its own budget per client,
where a client is the caller's address plus a fingerprint of its token.
Counters live in process memory.
"""
from collections import deque
from typing import Deque, Dict, NamedTuple, Optional
import hashlib
import logging
import threading
import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from estatedesk.core.config import settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


class Budget(NamedTuple):
    requests: int
    seconds: int


# Longest prefix wins
BUDGETS: Dict[str, Budget] = {
    "/login": Budget(5, 60),
    "/register": Budget(10, 300),
    "/change-password": Budget(3, 300),
    "/transactions": Budget(30, 60),
    "/emis": Budget(30, 60),
    "/sell-emis": Budget(30, 60),
    "/sell-properties": Budget(20, 60),
    "/properties": Budget(20, 60),
    "/property-docs": Budget(20, 60),
    "/customers": Budget(30, 60),
}
DEFAULT_BUDGET = Budget(100, 60)


class Verdict(NamedTuple):
    allowed: bool
    budget: Budget
    remaining: int
    retry_after: int


def route_group(path: str) -> str:
    relative = path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path
    best = ""
    for prefix in BUDGETS:
        if (relative == prefix or relative.startswith(prefix + "/")) and len(prefix) > len(best):
            best = prefix
    return best


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    address = forwarded.split(",")[0].strip() or request.headers.get("X-Real-IP", "")
    if not address and request.client:
        address = request.client.host

    token = request.headers.get("Authorization", "")
    fingerprint = hashlib.sha1(token.encode()).hexdigest()[:12] if token else "anonymous"
    return f"{address or 'unknown'}:{fingerprint}"


class WriteThrottle:
    """Sliding window counters, one per (route group, client)"""

    def __init__(self, budgets: Optional[Dict[str, Budget]] = None, default: Budget = DEFAULT_BUDGET):
        self.budgets = BUDGETS if budgets is None else budgets
        self.default = default
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, group: str, client: str, now: Optional[float] = None) -> Verdict:
        budget = self.budgets.get(group, self.default)
        now = time.monotonic() if now is None else now
        key = f"{group or '*'}|{client}"

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - budget.seconds:
                hits.popleft()

            if len(hits) >= budget.requests:
                wait = int(hits[0] + budget.seconds - now) + 1
                return Verdict(False, budget, 0, max(1, wait))

            hits.append(now)
            return Verdict(True, budget, budget.requests - len(hits), budget.seconds)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, throttle: Optional[WriteThrottle] = None):
        super().__init__(app)
        self.throttle = throttle or WriteThrottle()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not settings.RATE_LIMIT_ENABLED or request.method in SAFE_METHODS or not path.startswith(API_PREFIX):
            return await call_next(request)

        verdict = self.throttle.check(route_group(path), client_key(request))
        headers = {
            "X-RateLimit-Limit": str(verdict.budget.requests),
            "X-RateLimit-Remaining": str(verdict.remaining),
        }

        if not verdict.allowed:
            logger.warning(f"Throttled {request.method} {path} for {client_key(request)}")
            headers["Retry-After"] = str(verdict.retry_after)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"status": False, "message": "Too many requests. Please try again later."},
                headers=headers
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
