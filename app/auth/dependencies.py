"""Authentication dependencies: get_auth_principal and the bearer principal."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.jwt import AuthError, read_claims
from app.models.enums import UserRoleEnum

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class AuthPrincipal:
	subject_id: int
	role: UserRoleEnum


def _raise_auth(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


def extract_identity_hint(request: Request) -> str:
	auth_header = request.headers.get("authorization", "")
	if auth_header.lower().startswith("bearer "):
		return "jwt"
	return "anonymous"


def principal_from_token(token: str | None) -> AuthPrincipal:
	if not token:
		raise AuthError(code="auth_required", detail="Bearer token is required")
	claims = read_claims(token)
	return AuthPrincipal(subject_id=claims.subject_id, role=claims.role)


def _resolve_principal(credentials: HTTPAuthorizationCredentials | None) -> AuthPrincipal:
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise _raise_auth(AuthError(code="auth_required", detail="Bearer token is required"))
	try:
		return principal_from_token(credentials.credentials)
	except AuthError as exc:
		raise _raise_auth(exc) from exc


async def get_auth_principal(request: Request) -> AuthPrincipal:
	credentials = await bearer_scheme(request)
	return _resolve_principal(credentials)
