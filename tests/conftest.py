"""Shared pytest fixtures: fresh store per test, async test client, principals."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.auth.dependencies import AuthPrincipal, get_auth_principal
from app.auth.jwt import create_access_token
from app.main import app
from app.models.enums import UserRoleEnum
from app.services.entity_store import EntityStore
from app.services.errors import UpstreamUnavailable
from app.services.notifier import ChangeNotifier
from app.services.record_backends import MemoryRecordBackend


class FakeClock:
	"""Deterministic clock; does not move unless told to."""

	def __init__(self, start: datetime) -> None:
		self.now = start

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **delta: float) -> None:
		self.now += timedelta(**delta)


class FailingBackend(MemoryRecordBackend):
	"""Memory backend whose writes fail once ``failing`` is switched on."""

	def __init__(self) -> None:
		self.failing = False

	async def _check(self) -> None:
		if self.failing:
			raise UpstreamUnavailable("record backend unavailable: connection refused")

	async def insert(self, kind: Any, record: Any, last_id: int) -> None:
		await self._check()

	async def replace(self, kind: Any, records: Any) -> None:
		await self._check()

	async def remove(self, kind: Any, record_id: int) -> None:
		await self._check()


@asynccontextmanager
async def _noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
	yield


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock(datetime(2026, 3, 10, 9, 0, tzinfo=UTC))


@pytest.fixture
def today(clock: FakeClock):
	return clock.now.date()


@pytest.fixture
def notifier() -> ChangeNotifier:
	return ChangeNotifier(queue_size=8)


@pytest.fixture
def store(notifier: ChangeNotifier, clock: FakeClock) -> EntityStore:
	return EntityStore(notifier=notifier, clock=clock)


@pytest.fixture
def failing_backend() -> FailingBackend:
	return FailingBackend()


@pytest.fixture
def act_as() -> Callable[..., AuthPrincipal]:
	"""Switch the principal every protected route sees."""

	def _act_as(role: UserRoleEnum = UserRoleEnum.admin, subject_id: int = 1) -> AuthPrincipal:
		principal = AuthPrincipal(subject_id=subject_id, role=role)

		async def override_auth_principal() -> AuthPrincipal:
			return principal

		app.dependency_overrides[get_auth_principal] = override_auth_principal
		return principal

	return _act_as


@pytest.fixture
async def client(store: EntityStore, act_as: Callable[..., AuthPrincipal]) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled, a fresh store and an admin principal."""
	act_as(UserRoleEnum.admin, 1)
	app.state.store = store
	app.state.redis = None
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(store: EntityStore) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with real auth dependencies active."""
	app.state.store = store
	app.state.redis = None
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
def access_token() -> str:
	return create_access_token(7, UserRoleEnum.procurement, expires_minutes=30)


@pytest.fixture
def admin_token() -> str:
	return create_access_token(1, UserRoleEnum.admin, expires_minutes=30)
