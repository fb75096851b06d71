"""Redis-backed rate limiting middleware."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.dependencies import extract_identity_hint
from app.auth.jwt import AuthError, read_claims
from app.config import get_settings

logger = structlog.get_logger("farmlink.ratelimit")

BYPASS_PREFIXES = ("/docs", "/redoc", "/openapi", "/health", "/ws")


def request_identity(request: Request) -> str:
	"""Bucket key for a caller: the token subject when it verifies, else the client host."""
	if extract_identity_hint(request) == "jwt":
		token = request.headers.get("authorization", "")[len("bearer ") :].strip()
		try:
			return f"user:{read_claims(token).subject_id}"
		except AuthError:
			pass
	host = request.client.host if request.client is not None else "unknown"
	return f"ip:{host}"


class RateLimitMiddleware(BaseHTTPMiddleware):
	"""Per-identity per-minute quota backed by Redis atomic counters."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		if request.url.path.startswith(BYPASS_PREFIXES):
			return await call_next(request)

		redis_client = getattr(request.app.state, "redis", None)
		if redis_client is None:
			return await call_next(request)

		quota = get_settings().rate_limit_user_per_minute
		identity = request_identity(request)
		minute_bucket = datetime.now(UTC).strftime("%Y%m%d%H%M")
		key = f"ratelimit:{identity}:{minute_bucket}"
		try:
			current = await redis_client.incr(key)
			if current == 1:
				await redis_client.expire(key, 65)
		except RedisError as exc:
			logger.warning("rate_limit_unavailable", error=str(exc))
			return await call_next(request)

		if current > quota:
			return JSONResponse(
				status_code=429,
				content={
					"detail": {
						"error": "rate_limited",
						"message": "Request quota exceeded",
						"quota": quota,
					}
				},
			)

		return await call_next(request)
