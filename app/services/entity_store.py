"""Entity store: canonical in-memory collections with write-through persistence.

Single writer, many readers:

* every mutation runs under one ``asyncio.Lock``; the backend write is awaited
  first, then the new collection mapping is swapped in with no await in
  between, then the change event is published;
* readers never lock.  Collections are replaced, never mutated in place, so
  whatever mapping a reader picks up is a complete, consistent state.

Identifiers come from a per-kind counter that only moves forward, so an id
freed by a delete is never handed out again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.models.enums import ChangeOperation, EntityKind
from app.schemas.entities import (
	AdvisoryRecord,
	AggregatorRecord,
	CLOCK_DATE_FIELDS,
	ContractRecord,
	CropRecord,
	FarmerRecord,
	FarmVisitRecord,
	NotificationRecord,
	OrderRecord,
	RecordModel,
	RESERVED_FIELDS,
	SupplyAllocationRecord,
	dump_record,
	model_for,
	normalize_fields,
	resolve_field_name,
	wire_field_names,
)
from app.schemas.events import ChangeEvent, channel_name
from app.services.errors import EntityValidationError, NotFoundError, UpstreamUnavailable
from app.services.notifier import ChangeNotifier
from app.services.record_backends import MemoryRecordBackend, RecordBackend

logger = structlog.get_logger("farmlink.store")

Collections = Mapping[EntityKind, Mapping[int, RecordModel]]


def _utcnow() -> datetime:
	return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
	"""Every collection as it stood at one instant."""

	collections: Mapping[EntityKind, tuple[RecordModel, ...]]
	taken_at: datetime

	def records(self, kind: EntityKind) -> tuple[RecordModel, ...]:
		return self.collections.get(kind, ())

	def count(self, kind: EntityKind) -> int:
		return len(self.records(kind))

	@property
	def farmers(self) -> tuple[FarmerRecord, ...]:
		return self.records(EntityKind.farmer)  # type: ignore[return-value]

	@property
	def aggregators(self) -> tuple[AggregatorRecord, ...]:
		return self.records(EntityKind.aggregator)  # type: ignore[return-value]

	@property
	def crops(self) -> tuple[CropRecord, ...]:
		return self.records(EntityKind.crop)  # type: ignore[return-value]

	@property
	def orders(self) -> tuple[OrderRecord, ...]:
		return self.records(EntityKind.order)  # type: ignore[return-value]

	@property
	def contracts(self) -> tuple[ContractRecord, ...]:
		return self.records(EntityKind.contract)  # type: ignore[return-value]

	@property
	def allocations(self) -> tuple[SupplyAllocationRecord, ...]:
		return self.records(EntityKind.allocation)  # type: ignore[return-value]

	@property
	def notifications(self) -> tuple[NotificationRecord, ...]:
		return self.records(EntityKind.notification)  # type: ignore[return-value]

	@property
	def farm_visits(self) -> tuple[FarmVisitRecord, ...]:
		return self.records(EntityKind.farm_visit)  # type: ignore[return-value]

	@property
	def advisories(self) -> tuple[AdvisoryRecord, ...]:
		return self.records(EntityKind.advisory)  # type: ignore[return-value]


class EntityStore:
	"""CRUD over every entity kind plus change publication."""

	def __init__(
		self,
		backend: RecordBackend | None = None,
		notifier: ChangeNotifier | None = None,
		clock: Callable[[], datetime] | None = None,
	):
		self.backend: RecordBackend = backend or MemoryRecordBackend()
		self.notifier = notifier or ChangeNotifier()
		self._clock = clock or _utcnow
		self._write_lock = asyncio.Lock()
		self._collections: Collections = MappingProxyType({kind: MappingProxyType({}) for kind in EntityKind})
		self._last_ids: dict[EntityKind, int] = {kind: 0 for kind in EntityKind}

	# ── Reads ───────────────────────────────────────────────────────────────

	def list_records(self, kind: EntityKind) -> list[RecordModel]:
		return list(self._collections[kind].values())

	def get(self, kind: EntityKind, record_id: int) -> RecordModel:
		record = self._collections[kind].get(record_id)
		if record is None:
			raise NotFoundError(kind, record_id)
		return record

	def snapshot(self) -> StoreSnapshot:
		collections = self._collections
		return StoreSnapshot(
			collections=MappingProxyType({kind: tuple(items.values()) for kind, items in collections.items()}),
			taken_at=self._clock(),
		)

	def counts(self) -> dict[str, int]:
		return {kind.value: len(items) for kind, items in self._collections.items()}

	# ── Writes ──────────────────────────────────────────────────────────────

	async def hydrate(self) -> int:
		"""Load persisted records and counters from the backend; return the record count."""
		state = await self.backend.load()
		async with self._write_lock:
			collections: dict[EntityKind, Mapping[int, RecordModel]] = {}
			total = 0
			for kind in EntityKind:
				model = model_for(kind)
				items: dict[int, RecordModel] = {}
				for payload in state.records.get(kind, []):
					record = self._validate(kind, model, payload)
					items[record.id] = record
				collections[kind] = MappingProxyType(items)
				self._last_ids[kind] = max([state.last_ids.get(kind, 0), *items.keys()])
				total += len(items)
			self._collections = MappingProxyType(collections)
		logger.info("store_hydrated", records=total)
		return total

	async def create(self, kind: EntityKind, fields: Mapping[str, Any]) -> RecordModel:
		model = model_for(kind)
		values = normalize_fields(model, dict(fields))
		async with self._write_lock:
			record_id = self._last_ids[kind] + 1
			stamp = self._stamp(None)
			data = {**values, "id": record_id, "created_at": stamp, "updated_at": stamp}
			date_field = CLOCK_DATE_FIELDS.get(kind)
			if date_field is not None and date_field not in values:
				data[date_field] = stamp.date()
			record = self._validate(kind, model, data)
			await self._persist(kind, self.backend.insert(kind, record, record_id))
			self._last_ids[kind] = record_id
			self._swap(kind, upserts=[record])
			self._emit(kind, ChangeOperation.created, record, sorted(values))
		return record

	async def update(self, kind: EntityKind, record_id: int, fields: Mapping[str, Any]) -> RecordModel:
		model = model_for(kind)
		values = normalize_fields(model, dict(fields))
		async with self._write_lock:
			current = self.get(kind, record_id)
			record = self._merge(kind, current, values)
			await self._persist(kind, self.backend.replace(kind, [record]))
			self._swap(kind, upserts=[record])
			self._emit(kind, ChangeOperation.updated, record, sorted(values))
		return record

	async def patch_field(self, kind: EntityKind, record_id: int, field_name: str, value: Any) -> RecordModel:
		name = resolve_field_name(model_for(kind), field_name)
		if name is None or name in RESERVED_FIELDS:
			raise EntityValidationError(kind, [{"field": field_name, "message": "unknown or read-only field"}])
		async with self._write_lock:
			current = self.get(kind, record_id)
			record = self._merge(kind, current, {name: value})
			await self._persist(kind, self.backend.replace(kind, [record]))
			self._swap(kind, upserts=[record])
			self._emit(kind, ChangeOperation.updated, record, [name])
		return record

	async def mark_all(self, kind: EntityKind, field_name: str, value: Any) -> list[RecordModel]:
		"""Set one field on every record of ``kind`` that does not already hold ``value``."""
		name = resolve_field_name(model_for(kind), field_name)
		if name is None or name in RESERVED_FIELDS:
			raise EntityValidationError(kind, [{"field": field_name, "message": "unknown or read-only field"}])
		async with self._write_lock:
			changed = [
				self._merge(kind, current, {name: value})
				for current in self._collections[kind].values()
				if getattr(current, name) != value
			]
			if not changed:
				return []
			await self._persist(kind, self.backend.replace(kind, changed))
			self._swap(kind, upserts=changed)
			for record in changed:
				self._emit(kind, ChangeOperation.updated, record, [name])
		return changed

	async def delete(self, kind: EntityKind, record_id: int) -> RecordModel:
		async with self._write_lock:
			current = self.get(kind, record_id)
			await self._persist(kind, self.backend.remove(kind, record_id))
			self._swap(kind, removals=[record_id])
			self._emit(kind, ChangeOperation.deleted, current, [])
		return current

	# ── Internals ───────────────────────────────────────────────────────────

	def _stamp(self, previous: datetime | None) -> datetime:
		now = self._clock()
		if now.tzinfo is None:
			now = now.replace(tzinfo=UTC)
		else:
			now = now.astimezone(UTC)
		if previous is not None and now <= previous:
			now = previous + timedelta(microseconds=1)
		return now

	def _merge(self, kind: EntityKind, current: RecordModel, values: Mapping[str, Any]) -> RecordModel:
		data = current.model_dump()
		data.update(values)
		data["updated_at"] = self._stamp(current.updated_at)
		return self._validate(kind, type(current), data)

	@staticmethod
	def _validate(kind: EntityKind, model: type[RecordModel], data: Mapping[str, Any]) -> RecordModel:
		try:
			return model.model_validate(data)
		except PydanticValidationError as exc:
			errors = [
				{
					"field": ".".join(str(part) for part in error["loc"]),
					"message": error["msg"],
					"type": error["type"],
				}
				for error in exc.errors()
			]
			raise EntityValidationError(kind, errors) from exc

	async def _persist(self, kind: EntityKind, operation: Awaitable[None]) -> None:
		try:
			await operation
		except UpstreamUnavailable as exc:
			logger.error("store_write_failed", kind=kind.value, error=str(exc))
			raise

	def _swap(
		self,
		kind: EntityKind,
		upserts: list[RecordModel] | None = None,
		removals: list[int] | None = None,
	) -> None:
		items = dict(self._collections[kind])
		for record in upserts or []:
			items[record.id] = record
		for record_id in removals or []:
			items.pop(record_id, None)
		collections = dict(self._collections)
		collections[kind] = MappingProxyType(items)
		self._collections = MappingProxyType(collections)

	def _emit(
		self,
		kind: EntityKind,
		operation: ChangeOperation,
		record: RecordModel,
		changed_fields: list[str],
	) -> None:
		event = ChangeEvent(
			event=channel_name(kind, operation),
			kind=kind,
			operation=operation,
			record_id=record.id,
			record=dump_record(record),
			changed_fields=wire_field_names(type(record), changed_fields),
			emitted_at=self._clock(),
		)
		delivered = self.notifier.publish(event)
		logger.info(
			"entity_changed",
			kind=kind.value,
			operation=operation.value,
			record_id=record.id,
			delivered=delivered,
		)
