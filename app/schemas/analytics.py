"""Pydantic schemas for analytics endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OverviewResponse(ApiModel):
	total_farmers: int
	active_crops: int
	pending_orders: int
	total_allocations: int
	total_allocated_qty: float
	completion_rate: float
	acceptance_rate: float
	aggregator_dependency: float
	is_fresh_system: bool
	generated_at: dt.datetime


class SupplyDemandPoint(ApiModel):
	date: dt.date
	supply: float
	demand: float
	gap: float
	surplus: float
	deficit: float


class SupplyDemandResponse(ApiModel):
	days: int
	total_supply: float
	total_demand: float
	total_gap: float
	points: list[SupplyDemandPoint] = Field(default_factory=list)


class VarietyShare(ApiModel):
	name: str
	value: int
	percentage: float


class VarietyDistributionResponse(ApiModel):
	total_farmers: int
	items: list[VarietyShare] = Field(default_factory=list)


class RiskAlert(ApiModel):
	id: int
	title: str
	message: str
	type: str
	priority: str
	count: int
	subjects: list[str] = Field(default_factory=list)
	timestamp: dt.datetime


class RiskAlertsResponse(ApiModel):
	generated_at: dt.datetime
	alerts: list[RiskAlert] = Field(default_factory=list)


class CostBreakdown(ApiModel):
	labor: float
	materials: float
	logistics: float
	other: float


class CostAnalysisResponse(ApiModel):
	total_allocated_qty: float
	total_cost: float
	cost_per_unit: float
	cost_breakdown: CostBreakdown
	is_fresh_system: bool


class ContractStatsResponse(ApiModel):
	total_contracts: int
	active_contracts: int
	by_status: dict[str, int] = Field(default_factory=dict)
	total_contracted_qty: float
	avg_fulfillment: int
	total_value: float
	amount_paid: float
	outstanding: float


class AggregatorStatsResponse(ApiModel):
	internal_count: int
	external_count: int
	total_volume: float
	avg_reliability: int
	avg_quality: int


class CropDiscrepancy(ApiModel):
	crop: str
	supply: float
	demand: float
	gap: float


class SupplyReconciliationResponse(ApiModel):
	total_supply: float
	total_demand: float
	reconciliation_rate: float
	discrepancies: list[CropDiscrepancy] = Field(default_factory=list)


class CropDemand(ApiModel):
	crop: str
	quantity: float
	orders: int


class DemandForecastResponse(ApiModel):
	days: int
	total_demand: float
	items: list[CropDemand] = Field(default_factory=list)


class HarvestCalendarDay(ApiModel):
	date: dt.date
	total_quantity: float
	farmer_count: int
	allocations: list[dict[str, Any]] = Field(default_factory=list)


class HarvestCalendarResponse(ApiModel):
	start_date: dt.date | None = None
	end_date: dt.date | None = None
	items: list[HarvestCalendarDay] = Field(default_factory=list)


class HarvestReadinessResponse(ApiModel):
	days: int
	total_quantity: float
	allocations: list[dict[str, Any]] = Field(default_factory=list)


class FarmerAvailability(ApiModel):
	farmer_id: int
	name: str
	county: str | None = None
	crop: str | None = None
	is_available: bool
	next_available_date: dt.date


class FarmerAvailabilityResponse(ApiModel):
	items: list[FarmerAvailability] = Field(default_factory=list)
