"""WebSocket live feed route."""

from __future__ import annotations

import asyncio
import contextlib

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.auth.dependencies import principal_from_token
from app.auth.jwt import AuthError
from app.schemas.events import ALL_CHANNELS, SubscribeMessage
from app.services.entity_store import EntityStore
from app.services.notifier import Subscription

router = APIRouter(tags=["websocket"])
logger = structlog.get_logger("farmlink.ws")


def _parse_channels(raw: str | None) -> set[str]:
	if raw is None:
		return set()
	return {item.strip() for item in raw.split(",") if item.strip()}


async def _send_error(websocket: WebSocket, error: str, **details: object) -> None:
	await websocket.send_json({"event": "error", "payload": {"error": error, **details}})


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
	while True:
		event = await subscription.get()
		if event is not None:
			await websocket.send_json(event.to_wire())


async def _apply_subscription(websocket: WebSocket, subscription: Subscription, text: str) -> None:
	try:
		message = SubscribeMessage.model_validate_json(text)
		requested = message.requested_channels() if message.event == "subscribe" else None
	except (ValidationError, ValueError) as exc:
		await _send_error(websocket, "invalid_message", message=str(exc))
		return
	if requested is None:
		await _send_error(websocket, "unsupported_event", event=message.event)
		return

	unknown = sorted(requested - ALL_CHANNELS)
	if unknown:
		await _send_error(websocket, "unknown_channels", channels=unknown)
		return
	subscription.set_channels(requested)
	await websocket.send_json({"event": "subscribed", "payload": {"channels": sorted(requested)}})


@router.websocket("/ws/live")
async def ws_live_feed(websocket: WebSocket) -> None:
	await websocket.accept()

	token = websocket.query_params.get("token")
	try:
		principal = principal_from_token(token.strip() if token else None)
	except AuthError as exc:
		await _send_error(websocket, exc.code, message=exc.detail)
		await websocket.close(code=1008)
		return

	channels = _parse_channels(websocket.query_params.get("channels"))
	unknown = sorted(channels - ALL_CHANNELS)
	if unknown:
		await _send_error(websocket, "unknown_channels", channels=unknown)
		await websocket.close(code=1008)
		return

	store: EntityStore = websocket.app.state.store
	subscription = store.notifier.subscribe(channels or None)
	forwarder: asyncio.Task[None] | None = None
	try:
		await websocket.send_json(
			{
				"event": "welcome",
				"payload": {
					"subjectId": principal.subject_id,
					"role": principal.role.value,
					"channels": sorted(subscription.channels) if subscription.channels else None,
					"counts": store.counts(),
				},
			}
		)
		forwarder = asyncio.create_task(_forward_events(websocket, subscription))
		while True:
			text = await websocket.receive_text()
			await _apply_subscription(websocket, subscription, text)
	except WebSocketDisconnect:
		logger.info("ws_disconnected", subject_id=principal.subject_id)
	finally:
		if forwarder is not None:
			forwarder.cancel()
			with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
				await forwarder
		store.notifier.unsubscribe(subscription)
