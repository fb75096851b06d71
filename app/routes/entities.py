"""CRUD routes for every entity collection, plus single-field transitions."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.auth.dependencies import get_auth_principal
from app.models.enums import EntityKind
from app.routes.deps import get_store, map_service_error
from app.schemas.entities import dump_record
from app.services.entity_store import EntityStore

COLLECTION_PATHS: dict[EntityKind, str] = {
	EntityKind.farmer: "farmers",
	EntityKind.aggregator: "aggregators",
	EntityKind.crop: "crops",
	EntityKind.order: "orders",
	EntityKind.contract: "contracts",
	EntityKind.allocation: "allocations",
	EntityKind.notification: "notifications",
	EntityKind.supply_plan: "supply-plans",
	EntityKind.farm_visit: "farm-visits",
	EntityKind.advisory: "advisories",
}


def _require_body(payload: Any) -> dict[str, Any]:
	if not isinstance(payload, dict):
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body must be a JSON object")
	return payload


def _read_value(payload: dict[str, Any], *keys: str) -> Any:
	for key in keys:
		if key in payload:
			return payload[key]
	raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing field: {keys[0]}")


def build_collection_router(kind: EntityKind, path: str) -> APIRouter:
	router = APIRouter(
		prefix=f"/{path}",
		tags=[path],
		dependencies=[Depends(get_auth_principal)],
	)

	@router.get("", name=f"list_{kind.value}")
	async def list_records(store: EntityStore = Depends(get_store)) -> list[dict[str, Any]]:
		return [dump_record(record) for record in store.list_records(kind)]

	@router.post("", status_code=status.HTTP_201_CREATED, name=f"create_{kind.value}")
	async def create_record(
		payload: Any = Body(...),
		store: EntityStore = Depends(get_store),
	) -> dict[str, Any]:
		fields = _require_body(payload)
		try:
			record = await store.create(kind, fields)
		except Exception as exc:
			raise map_service_error(exc) from exc
		return dump_record(record)

	@router.get("/{record_id}", name=f"get_{kind.value}")
	async def get_record(record_id: int, store: EntityStore = Depends(get_store)) -> dict[str, Any]:
		try:
			return dump_record(store.get(kind, record_id))
		except Exception as exc:
			raise map_service_error(exc) from exc

	@router.put("/{record_id}", name=f"update_{kind.value}")
	async def update_record(
		record_id: int,
		payload: Any = Body(default=None),
		store: EntityStore = Depends(get_store),
	) -> dict[str, Any]:
		fields = _require_body(payload if payload is not None else {})
		try:
			record = await store.update(kind, record_id, fields)
		except Exception as exc:
			raise map_service_error(exc) from exc
		return dump_record(record)

	@router.delete("/{record_id}", name=f"delete_{kind.value}")
	async def delete_record(record_id: int, store: EntityStore = Depends(get_store)) -> dict[str, Any]:
		try:
			removed = await store.delete(kind, record_id)
		except Exception as exc:
			raise map_service_error(exc) from exc
		return {"deleted": True, "record": dump_record(removed)}

	return router


# Transition routes are registered ahead of the generic collections.
transitions = APIRouter(tags=["transitions"], dependencies=[Depends(get_auth_principal)])


@transitions.patch("/notifications/read-all")
async def mark_all_notifications_read(store: EntityStore = Depends(get_store)) -> dict[str, Any]:
	try:
		changed = await store.mark_all(EntityKind.notification, "read", True)
	except Exception as exc:
		raise map_service_error(exc) from exc
	return {"updated": len(changed)}


@transitions.patch("/notifications/{record_id}/read")
async def mark_notification_read(record_id: int, store: EntityStore = Depends(get_store)) -> dict[str, Any]:
	try:
		record = await store.patch_field(EntityKind.notification, record_id, "read", True)
	except Exception as exc:
		raise map_service_error(exc) from exc
	return dump_record(record)


@transitions.patch("/contracts/{record_id}/fulfillment")
async def update_contract_fulfillment(
	record_id: int,
	payload: Any = Body(...),
	store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
	value = _read_value(_require_body(payload), "fulfillmentPercentage", "fulfillment_percentage")
	try:
		record = await store.patch_field(EntityKind.contract, record_id, "fulfillment_percentage", value)
	except Exception as exc:
		raise map_service_error(exc) from exc
	return dump_record(record)


routers: list[APIRouter] = [
	transitions,
	*(build_collection_router(kind, path) for kind, path in COLLECTION_PATHS.items()),
]
