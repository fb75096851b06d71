"""Persistence adapters behind the entity store.

The store keeps the authoritative collections in memory and writes through
to a backend before publishing a change.  ``MemoryRecordBackend`` performs no
I/O; ``SqlRecordBackend`` persists into the ``entity_records`` and
``entity_sequences`` tables.  Driver and connection failures surface as
``UpstreamUnavailable`` so the store can refuse the write without touching
its in-memory state.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import EntityKind
from app.models.records import EntityRecordRow, EntitySequenceRow
from app.schemas.entities import RecordModel, dump_record
from app.services.errors import UpstreamUnavailable

logger = structlog.get_logger("farmlink.store.backend")


@dataclass(slots=True)
class LoadedState:
	"""Everything a backend knows at startup: record payloads and counters."""

	records: dict[EntityKind, list[dict[str, Any]]] = field(default_factory=dict)
	last_ids: dict[EntityKind, int] = field(default_factory=dict)


class RecordBackend(Protocol):
	async def load(self) -> LoadedState: ...

	async def insert(self, kind: EntityKind, record: RecordModel, last_id: int) -> None: ...

	async def replace(self, kind: EntityKind, records: Sequence[RecordModel]) -> None: ...

	async def remove(self, kind: EntityKind, record_id: int) -> None: ...

	async def close(self) -> None: ...


class MemoryRecordBackend:
	"""Memory-resident store: nothing to persist, nothing to load."""

	async def load(self) -> LoadedState:
		return LoadedState()

	async def insert(self, kind: EntityKind, record: RecordModel, last_id: int) -> None:
		return None

	async def replace(self, kind: EntityKind, records: Sequence[RecordModel]) -> None:
		return None

	async def remove(self, kind: EntityKind, record_id: int) -> None:
		return None

	async def close(self) -> None:
		return None


class SqlRecordBackend:
	"""Table-backed persistence using one async session per write."""

	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	async def load(self) -> LoadedState:
		state = LoadedState()
		try:
			async with self.session_factory() as session:
				rows = await session.execute(
					select(EntityRecordRow).order_by(
						EntityRecordRow.kind,
						EntityRecordRow.created_at.asc(),
						EntityRecordRow.id.asc(),
					)
				)
				for row in rows.scalars().all():
					state.records.setdefault(EntityKind(row.kind), []).append(dict(row.payload))

				sequences = await session.execute(select(EntitySequenceRow))
				for sequence in sequences.scalars().all():
					state.last_ids[EntityKind(sequence.kind)] = int(sequence.last_id)
		except (DBAPIError, OSError) as exc:
			raise UpstreamUnavailable(f"record backend unavailable: {exc}") from exc
		return state

	async def insert(self, kind: EntityKind, record: RecordModel, last_id: int) -> None:
		try:
			async with self.session_factory() as session:
				async with session.begin():
					session.add(self._to_row(kind, record))
					sequence = await session.get(EntitySequenceRow, kind.value)
					if sequence is None:
						session.add(EntitySequenceRow(kind=kind.value, last_id=last_id))
					else:
						sequence.last_id = max(int(sequence.last_id), last_id)
		except (DBAPIError, OSError) as exc:
			raise UpstreamUnavailable(f"record backend unavailable: {exc}") from exc

	async def replace(self, kind: EntityKind, records: Sequence[RecordModel]) -> None:
		if not records:
			return
		try:
			async with self.session_factory() as session:
				async with session.begin():
					for record in records:
						row = await session.get(EntityRecordRow, (kind.value, record.id))
						if row is None:
							session.add(self._to_row(kind, record))
							continue
						row.payload = dump_record(record)
						row.updated_at = record.updated_at
		except (DBAPIError, OSError) as exc:
			raise UpstreamUnavailable(f"record backend unavailable: {exc}") from exc

	async def remove(self, kind: EntityKind, record_id: int) -> None:
		try:
			async with self.session_factory() as session:
				async with session.begin():
					await session.execute(
						delete(EntityRecordRow).where(
							EntityRecordRow.kind == kind.value,
							EntityRecordRow.id == record_id,
						)
					)
		except (DBAPIError, OSError) as exc:
			raise UpstreamUnavailable(f"record backend unavailable: {exc}") from exc

	async def close(self) -> None:
		logger.info("record_backend_closed")

	@staticmethod
	def _to_row(kind: EntityKind, record: RecordModel) -> EntityRecordRow:
		return EntityRecordRow(
			kind=kind.value,
			id=record.id,
			payload=dump_record(record),
			created_at=record.created_at,
			updated_at=record.updated_at,
		)
