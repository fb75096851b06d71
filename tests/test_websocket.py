from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.models.enums import EntityKind, UserRoleEnum
from app.services.entity_store import EntityStore
from tests.conftest import _noop_lifespan


@pytest.fixture
def ws_client(store: EntityStore, act_as: Callable[..., Any]) -> Iterator[TestClient]:
	act_as(UserRoleEnum.admin, 1)
	app.state.store = store
	app.state.redis = None
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	with TestClient(app) as client:
		yield client
	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


def test_missing_token_is_rejected(ws_client: TestClient) -> None:
	with ws_client.websocket_connect("/ws/live") as websocket:
		payload = websocket.receive_json()
		assert payload["event"] == "error"
		assert payload["payload"]["error"] == "auth_required"
		with pytest.raises(WebSocketDisconnect) as excinfo:
			websocket.receive_json()
	assert excinfo.value.code == 1008


def test_invalid_token_is_rejected(ws_client: TestClient) -> None:
	with ws_client.websocket_connect("/ws/live?token=not-a-jwt") as websocket:
		payload = websocket.receive_json()
		assert payload["payload"]["error"] == "token_invalid"


def test_welcome_then_forwarded_event(ws_client: TestClient, access_token: str) -> None:
	ws_client.post("/api/v1/farmers", json={"name": "Wanjiru"})

	with ws_client.websocket_connect(f"/ws/live?token={access_token}") as websocket:
		welcome = websocket.receive_json()
		assert welcome["event"] == "welcome"
		assert welcome["payload"]["counts"]["farmer"] == 1
		assert welcome["payload"]["role"] == "procurement"

		created = ws_client.post("/api/v1/allocations", json={"farmerId": 1, "quantity": 50})
		assert created.status_code == 201

		event = websocket.receive_json()
		assert event["event"] == "allocation_created"
		assert event["recordId"] == created.json()["id"]
		assert event["record"]["quantity"] == 50


def test_channel_filter_and_subscribe_message(ws_client: TestClient, access_token: str) -> None:
	with ws_client.websocket_connect(f"/ws/live?token={access_token}&channels=contract_updated") as websocket:
		welcome = websocket.receive_json()
		assert welcome["payload"]["channels"] == ["contract_updated"]

		websocket.send_json({"event": "subscribe", "payload": {"channels": ["crop_created"]}})
		assert websocket.receive_json() == {"event": "subscribed", "payload": {"channels": ["crop_created"]}}

		ws_client.post("/api/v1/farmers", json={"name": "ignored"})
		ws_client.post("/api/v1/crops", json={"name": "Maize"})

		event = websocket.receive_json()
		assert event["event"] == "crop_created"
		assert event["kind"] == EntityKind.crop.value


def test_unknown_channel_in_subscribe_message(ws_client: TestClient, access_token: str) -> None:
	with ws_client.websocket_connect(f"/ws/live?token={access_token}") as websocket:
		websocket.receive_json()
		websocket.send_json({"event": "subscribe", "payload": {"channels": ["weather_changed"]}})

		reply = websocket.receive_json()
		assert reply["payload"] == {"error": "unknown_channels", "channels": ["weather_changed"]}


def test_connection_registers_one_subscriber(ws_client: TestClient, store: EntityStore, access_token: str) -> None:
	with ws_client.websocket_connect(f"/ws/live?token={access_token}") as websocket:
		websocket.receive_json()
		assert store.notifier.subscriber_count == 1
