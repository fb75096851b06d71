"""Pydantic schemas for the role-scoped dashboards."""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Literal

from pydantic import Field

from app.schemas.analytics import (
	AggregatorStatsResponse,
	ApiModel,
	ContractStatsResponse,
	OverviewResponse,
	RiskAlert,
	VarietyDistributionResponse,
)


class RegionSummary(ApiModel):
	name: str
	farmer_count: int
	land_area: float
	production_estimate: float
	high_risk_farmers: int
	risk: Literal["low", "medium", "high"]


class AdminDashboard(ApiModel):
	role: Literal["admin"] = "admin"
	generated_at: dt.datetime
	overview: OverviewResponse
	regions: list[RegionSummary] = Field(default_factory=list)
	varieties: VarietyDistributionResponse
	contracts: ContractStatsResponse
	aggregators: AggregatorStatsResponse
	alerts: list[RiskAlert] = Field(default_factory=list)


class FarmerProgress(ApiModel):
	farmer_id: int
	name: str
	location: str
	crop: str | None = None
	progress: int
	stage: str
	health_score: int
	vulnerable: bool
	lagging: bool
	last_visit: dt.date | None = None


class AgronomistStats(ApiModel):
	total_farmers: int
	vulnerable_count: int
	lagging_count: int
	average_health: int
	visits_last_30_days: int


class AgronomistDashboard(ApiModel):
	role: Literal["agronomist"] = "agronomist"
	generated_at: dt.datetime
	agronomist_id: int
	placeholder: bool = False
	scope: Literal["assigned", "all"]
	farmers: list[FarmerProgress] = Field(default_factory=list)
	recent_visits: list[dict[str, Any]] = Field(default_factory=list)
	stats: AgronomistStats


class ProcurementReconciliation(ApiModel):
	active_contracts: int
	pending_contracts: int
	total_contract_value: float
	amount_paid: float
	outstanding: float
	reconciliation_rate: float


class SourcingEntry(ApiModel):
	order_id: int
	supplier_name: str
	crop: str | None = None
	status: str
	quantity: float
	quantity_accepted: float
	quantity_rejected: float
	rejection_reason: str | None = None
	updated_at: dt.datetime


class ForecastHorizon(ApiModel):
	monthly: float
	quarterly: float
	annual: float


class ProcurementForecasts(ApiModel):
	demand: ForecastHorizon
	supply: ForecastHorizon
	shortfall: ForecastHorizon


class ProcurementDashboard(ApiModel):
	role: Literal["procurement"] = "procurement"
	generated_at: dt.datetime
	overview: OverviewResponse
	reconciliation: ProcurementReconciliation
	sourcing_log: list[SourcingEntry] = Field(default_factory=list)
	forecasts: ProcurementForecasts


class FarmerProfile(ApiModel):
	id: int
	name: str
	region: str | None = None
	county: str | None = None
	crop: str | None = None
	plot_size: float = 0.0
	planting_date: dt.date | None = None
	harvest_date: dt.date | None = None
	placeholder: bool = False


class RegionPeers(ApiModel):
	name: str
	farmer_count: int
	total_acreage: float
	average_plot_size: float


class FarmerDashboard(ApiModel):
	role: Literal["farmer"] = "farmer"
	generated_at: dt.datetime
	farmer: FarmerProfile
	progress: int
	stage: str
	advisories: list[dict[str, Any]] = Field(default_factory=list)
	region: RegionPeers
	allocations: list[dict[str, Any]] = Field(default_factory=list)
	contracts: list[dict[str, Any]] = Field(default_factory=list)


DashboardResponse = Annotated[
	AdminDashboard | AgronomistDashboard | ProcurementDashboard | FarmerDashboard,
	Field(discriminator="role"),
]
