"""JWT validation.

Tokens are issued elsewhere; this service only checks signature and expiry
and reads the ``sub`` (numeric user id, as a string) and ``role`` claims.
``create_access_token`` exists for operators and tests that need a token
signed with the configured secret.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import get_settings
from app.models.enums import UserRoleEnum


@dataclass(slots=True)
class AuthError(Exception):
	"""Structured authentication error for consistent mapping at the edge."""

	code: str
	detail: str
	status_code: int = 401


@dataclass(frozen=True, slots=True)
class TokenClaims:
	subject_id: int
	role: UserRoleEnum


def create_access_token(
	subject_id: int,
	role: UserRoleEnum | str,
	expires_minutes: int | None = None,
) -> str:
	settings = get_settings()
	ttl = expires_minutes or settings.jwt_access_token_expire_minutes
	now = datetime.now(UTC)
	claims: dict[str, Any] = {
		"sub": str(subject_id),
		"role": str(role),
		"typ": "access",
		"iat": int(now.timestamp()),
		"exp": int((now + timedelta(minutes=ttl)).timestamp()),
	}
	return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
	settings = get_settings()
	try:
		payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
	except JWTError as exc:
		raise AuthError(code="token_invalid", detail="Invalid authentication token") from exc

	subject = payload.get("sub")
	if not isinstance(subject, str) or not subject:
		raise AuthError(code="token_invalid", detail="Token subject is missing")

	exp_raw = payload.get("exp")
	if not isinstance(exp_raw, int):
		raise AuthError(code="token_invalid", detail="Token expiration is missing")
	if datetime.now(UTC).timestamp() >= exp_raw:
		raise AuthError(code="token_expired", detail="Authentication token has expired")

	return payload


def read_claims(token: str) -> TokenClaims:
	payload = decode_token(token)
	try:
		subject_id = int(payload["sub"])
	except ValueError as exc:
		raise AuthError(code="token_invalid", detail="Token subject is invalid") from exc
	try:
		role = UserRoleEnum(str(payload.get("role", "")))
	except ValueError as exc:
		raise AuthError(code="role_invalid", detail="Token role is not recognised") from exc
	return TokenClaims(subject_id=subject_id, role=role)
