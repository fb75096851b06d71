"""Pydantic record models for every entity kind held by the store.

Each model is the field whitelist for its collection: unknown keys are
dropped, absent keys take the defaults declared here, and fields without a
default are required on create.  Records are frozen so a stored instance can
be shared with readers without copying.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import (
	AggregatorTypeEnum,
	AllocationStatusEnum,
	ContractStatusEnum,
	EntityKind,
	OrderSourceEnum,
	OrderStatusEnum,
)


def _today() -> dt.date:
	return dt.datetime.now(dt.UTC).date()


class RecordModel(BaseModel):
	model_config = ConfigDict(
		alias_generator=to_camel,
		populate_by_name=True,
		extra="ignore",
		frozen=True,
	)

	id: int
	created_at: dt.datetime
	updated_at: dt.datetime


class FarmerRecord(RecordModel):
	name: str = Field(min_length=1, max_length=255)
	region: str | None = None
	county: str | None = None
	crop: str | None = None
	phone: str | None = None
	email: str | None = None
	plot_size: float = Field(default=0.0, ge=0)
	planting_date: dt.date | None = None
	harvest_date: dt.date | None = None
	risk_level: str = "low"
	health_score: int | None = Field(default=None, ge=0)
	gps: str | None = None
	user_id: int | None = None
	assigned_agronomist_id: int | None = None

	@property
	def location(self) -> str:
		return self.region or self.county or "Unknown"


class AggregatorRecord(RecordModel):
	name: str = Field(min_length=1, max_length=255)
	county: str | None = None
	type: AggregatorTypeEnum = AggregatorTypeEnum.external
	historical_volume: float = Field(default=0.0, ge=0)
	reliability_score: float = Field(default=0.0, ge=0)
	average_quality: float = Field(default=0.0, ge=0)
	contact_phone: str | None = None


class CropRecord(RecordModel):
	name: str = Field(min_length=1, max_length=100)
	variety: str | None = None
	season: str | None = None
	metadata: dict[str, Any] = Field(default_factory=dict)


class OrderRecord(RecordModel):
	supplier_name: str = Field(min_length=1, max_length=255)
	crop: str | None = None
	quantity: float = Field(ge=0)
	quantity_accepted: float = Field(default=0.0, ge=0)
	quantity_rejected: float = Field(default=0.0, ge=0)
	rejection_reason: str | None = None
	price: float = Field(default=0.0, ge=0)
	status: OrderStatusEnum = OrderStatusEnum.pending
	payment_status: str = "unpaid"
	source: OrderSourceEnum = OrderSourceEnum.farmer
	expected_delivery_date: dt.date | None = None
	delivery_date: dt.date | None = None
	quality_score: float | None = Field(default=None, ge=0)


class ContractRecord(RecordModel):
	supplier_name: str = Field(min_length=1, max_length=255)
	supplier_type: str = "farmer"
	crop: str | None = None
	contracted_quantity: float = Field(default=0.0, ge=0)
	fulfillment_percentage: float = Field(default=0.0, ge=0)
	start_date: dt.date | None = None
	end_date: dt.date | None = None
	status: ContractStatusEnum = ContractStatusEnum.draft
	price_per_unit: float = Field(default=0.0, ge=0)
	contract_value: float = Field(default=0.0, ge=0)
	amount_paid: float = Field(default=0.0, ge=0)
	payment_terms: str | None = None


class SupplyAllocationRecord(RecordModel):
	# Soft reference: farmer_id is never checked against the farmer collection.
	farmer_id: int
	quantity: float = Field(ge=0)
	date: dt.date = Field(default_factory=_today)
	status: AllocationStatusEnum = AllocationStatusEnum.scheduled
	crop: str | None = None
	notes: str | None = None


class NotificationRecord(RecordModel):
	title: str | None = None
	message: str = Field(min_length=1)
	type: str = "info"
	read: bool = False


class SupplyPlanRecord(RecordModel):
	period: str = "month"
	crop: str | None = None
	target_quantity: float = Field(default=0.0, ge=0)
	start_date: dt.date | None = None
	end_date: dt.date | None = None
	notes: str | None = None


class FarmVisitRecord(RecordModel):
	farmer_id: int
	agronomist_id: int | None = None
	visit_date: dt.date = Field(default_factory=_today)
	observations: str | None = None
	issues: str | None = None
	recommendations: str | None = None


class AdvisoryRecord(RecordModel):
	farmer_id: int | None = None
	region: str | None = None
	type: str = "general"
	message: str = Field(min_length=1)
	date: dt.date = Field(default_factory=_today)


ENTITY_MODELS: dict[EntityKind, type[RecordModel]] = {
	EntityKind.farmer: FarmerRecord,
	EntityKind.aggregator: AggregatorRecord,
	EntityKind.crop: CropRecord,
	EntityKind.order: OrderRecord,
	EntityKind.contract: ContractRecord,
	EntityKind.allocation: SupplyAllocationRecord,
	EntityKind.notification: NotificationRecord,
	EntityKind.supply_plan: SupplyPlanRecord,
	EntityKind.farm_visit: FarmVisitRecord,
	EntityKind.advisory: AdvisoryRecord,
}

RESERVED_FIELDS = frozenset({"id", "created_at", "updated_at"})

# Date fields that default to the store clock's current day on create.
CLOCK_DATE_FIELDS: dict[EntityKind, str] = {
	EntityKind.allocation: "date",
	EntityKind.farm_visit: "visit_date",
	EntityKind.advisory: "date",
}


def model_for(kind: EntityKind) -> type[RecordModel]:
	return ENTITY_MODELS[kind]


def resolve_field_name(model: type[RecordModel], key: str) -> str | None:
	"""Map a wire key (camelCase alias or snake_case name) to the model field name."""
	if key in model.model_fields:
		return key
	for name, info in model.model_fields.items():
		if info.alias == key:
			return name
	return None


def normalize_fields(model: type[RecordModel], fields: dict[str, Any]) -> dict[str, Any]:
	"""Keep whitelisted, non-reserved keys, renamed to model field names."""
	normalized: dict[str, Any] = {}
	for key, value in fields.items():
		name = resolve_field_name(model, key)
		if name is None or name in RESERVED_FIELDS:
			continue
		normalized[name] = value
	return normalized


def wire_field_names(model: type[RecordModel], names: list[str]) -> list[str]:
	"""Map model field names to the camelCase keys used in dumped records."""
	keys = []
	for name in names:
		info = model.model_fields.get(name)
		keys.append(info.alias if info is not None and info.alias else name)
	return keys


def dump_record(record: RecordModel) -> dict[str, Any]:
	return record.model_dump(mode="json", by_alias=True)
