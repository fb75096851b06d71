"""Pydantic schemas for change events pushed to live subscribers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import ChangeOperation, EntityKind


def channel_name(kind: EntityKind, operation: ChangeOperation) -> str:
	return f"{kind.value}_{operation.value}"


ALL_CHANNELS: frozenset[str] = frozenset(
	channel_name(kind, operation) for kind in EntityKind for operation in ChangeOperation
)


class ChangeEvent(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	event: str
	kind: EntityKind
	operation: ChangeOperation
	record_id: int
	record: dict[str, Any] = Field(default_factory=dict)
	changed_fields: list[str] = Field(default_factory=list)
	emitted_at: datetime

	def to_wire(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True)


class SubscribeMessage(BaseModel):
	"""Client → server control frame on the live socket."""

	event: str
	payload: dict[str, Any] = Field(default_factory=dict)

	def requested_channels(self) -> set[str]:
		raw = self.payload.get("channels") or []
		if not isinstance(raw, list):
			raise ValueError("channels must be a list of channel names")
		return {str(item).strip() for item in raw if str(item).strip()}
