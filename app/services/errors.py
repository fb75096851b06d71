"""Domain errors raised by the entity store and mapped to HTTP at the edge."""

from __future__ import annotations

from typing import Any

from app.models.enums import EntityKind


class NotFoundError(LookupError):
	"""The addressed identifier does not exist in its collection."""

	def __init__(self, kind: EntityKind, record_id: int):
		super().__init__(f"{kind.value} {record_id} not found")
		self.kind = kind
		self.record_id = record_id


class EntityValidationError(ValueError):
	"""A required field is missing or a supplied field is malformed."""

	def __init__(self, kind: EntityKind, errors: list[dict[str, Any]]):
		fields = ", ".join(sorted({str(item.get("field")) for item in errors}))
		super().__init__(f"invalid {kind.value} fields: {fields}")
		self.kind = kind
		self.errors = errors


class UpstreamUnavailable(RuntimeError):
	"""The persistence backend could not be reached; nothing was applied."""
