"""Rate limiting middleware: fixed per-minute window in Redis.

Each client address gets a counter key like "foxboard:rl:{ip}:{bucket}:{minute}".
POST /login gets its own, stricter bucket to slow down password guessing.

Rate limiting is skipped entirely while Redis is unavailable (including in
tests); a Redis error mid-request lets the request through.
"""

import time

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from foxboard.redis_client import get_redis

logger = structlog.get_logger()

LOGIN_PATH = "/login"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, login_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.login_rpm = login_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_login = request.url.path == LOGIN_PATH
        rpm = self.login_rpm if is_login else self.default_rpm

        window = int(time.time() // 60)
        bucket = "login" if is_login else "api"
        key = f"foxboard:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
