from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from jose import jwt

from app.auth.jwt import AuthError, create_access_token, decode_token, read_claims
from app.config import get_settings
from app.main import app
from app.models.enums import UserRoleEnum


class FakeRedis:
    def __init__(self) -> None:
        self._counter: dict[str, int] = {}
        self.incr = AsyncMock(side_effect=self._incr)
        self.expire = AsyncMock(return_value=True)

    async def _incr(self, key: str) -> int:
        value = self._counter.get(key, 0) + 1
        self._counter[key] = value
        return value


@pytest.mark.asyncio
async def test_missing_jwt_rejected_on_protected_endpoint(auth_client: AsyncClient) -> None:
    response = await auth_client.get("/api/v1/farmers")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "auth_required"


@pytest.mark.asyncio
async def test_valid_jwt_reaches_protected_endpoint(auth_client: AsyncClient, access_token: str) -> None:
    response = await auth_client.get("/api/v1/farmers", headers={"Authorization": f"Bearer {access_token}"})
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_dashboard_follows_token_role(auth_client: AsyncClient, access_token: str) -> None:
    headers = {"Authorization": f"Bearer {access_token}"}

    own = await auth_client.get("/api/v1/dashboard", headers=headers)
    other = await auth_client.get("/api/v1/dashboard/admin", headers=headers)

    assert own.json()["role"] == "procurement"
    assert other.status_code == 403


def test_jwt_create_decode_roundtrip() -> None:
    token = create_access_token(42, UserRoleEnum.agronomist, expires_minutes=5)
    payload = decode_token(token)
    assert payload["sub"] == "42"
    assert payload["role"] == "agronomist"

    claims = read_claims(token)
    assert claims.subject_id == 42
    assert claims.role == UserRoleEnum.agronomist


def test_decode_invalid_token_raises_auth_error() -> None:
    with pytest.raises(AuthError):
        decode_token("invalid.token.payload")


def test_unknown_role_claim_is_rejected() -> None:
    token = create_access_token(3, "janitor", expires_minutes=5)
    with pytest.raises(AuthError) as excinfo:
        read_claims(token)
    assert excinfo.value.code == "role_invalid"


def test_non_numeric_subject_is_rejected() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"sub": "someone", "role": "admin", "exp": 4102444800},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthError):
        read_claims(token)


def test_expired_token_is_rejected() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"sub": "1", "role": "admin", "exp": 1},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthError):
        decode_token(token)


@pytest.mark.asyncio
async def test_health_echoes_request_id(auth_client: AsyncClient) -> None:
    response = await auth_client.get("/health", headers={"x-request-id": "req-123"})
    assert response.status_code == 200
    assert response.json()["service"] == "farmlink"
    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
async def test_request_id_generated_when_absent(auth_client: AsyncClient) -> None:
    response = await auth_client.get("/health")
    assert response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_rate_limit_returns_429_after_quota(
    auth_client: AsyncClient,
    admin_token: str,
    monkeypatch: Any,
) -> None:
    settings = get_settings()
    monkeypatch.setattr(settings, "rate_limit_user_per_minute", 2)
    app.state.redis = FakeRedis()
    headers = {"Authorization": f"Bearer {admin_token}"}

    statuses = [(await auth_client.get("/api/v1/crops", headers=headers)).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    assert (await auth_client.get("/health")).status_code == 200
