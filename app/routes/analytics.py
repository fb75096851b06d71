"""Analytics routes: every view recomputed from a fresh store snapshot."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth.dependencies import get_auth_principal
from app.routes.deps import get_store, map_service_error
from app.schemas.analytics import (
	AggregatorStatsResponse,
	ContractStatsResponse,
	CostAnalysisResponse,
	DemandForecastResponse,
	FarmerAvailabilityResponse,
	HarvestCalendarResponse,
	HarvestReadinessResponse,
	OverviewResponse,
	RiskAlertsResponse,
	SupplyDemandResponse,
	SupplyReconciliationResponse,
	VarietyDistributionResponse,
)
from app.services.analytics_service import AnalyticsService
from app.services.entity_store import EntityStore

router = APIRouter(prefix="/analytics", tags=["analytics"], dependencies=[Depends(get_auth_principal)])


def get_analytics(store: EntityStore = Depends(get_store)) -> AnalyticsService:
	return AnalyticsService(store)


def _map_error(exc: Exception) -> HTTPException:
	return map_service_error(exc, failure="analytics failure")


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(service: AnalyticsService = Depends(get_analytics)) -> OverviewResponse:
	return service.overview()


@router.get("/supply-demand", response_model=SupplyDemandResponse)
async def get_supply_demand(
	days: int = Query(default=30),
	service: AnalyticsService = Depends(get_analytics),
) -> SupplyDemandResponse:
	try:
		return service.supply_demand(days=days)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/variety-distribution", response_model=VarietyDistributionResponse)
async def get_variety_distribution(service: AnalyticsService = Depends(get_analytics)) -> VarietyDistributionResponse:
	return service.variety_distribution()


@router.get("/risk-alerts", response_model=RiskAlertsResponse)
async def get_risk_alerts(service: AnalyticsService = Depends(get_analytics)) -> RiskAlertsResponse:
	return service.risk_alerts()


@router.get("/cost-analysis", response_model=CostAnalysisResponse)
async def get_cost_analysis(service: AnalyticsService = Depends(get_analytics)) -> CostAnalysisResponse:
	return service.cost_analysis()


@router.get("/contract-stats", response_model=ContractStatsResponse)
async def get_contract_stats(service: AnalyticsService = Depends(get_analytics)) -> ContractStatsResponse:
	return service.contract_stats()


@router.get("/aggregator-stats", response_model=AggregatorStatsResponse)
async def get_aggregator_stats(service: AnalyticsService = Depends(get_analytics)) -> AggregatorStatsResponse:
	return service.aggregator_stats()


@router.get("/supply-reconciliation", response_model=SupplyReconciliationResponse)
async def get_supply_reconciliation(
	service: AnalyticsService = Depends(get_analytics),
) -> SupplyReconciliationResponse:
	return service.supply_reconciliation()


@router.get("/demand-forecast", response_model=DemandForecastResponse)
async def get_demand_forecast(
	days: int | None = Query(default=None, ge=1, le=365),
	service: AnalyticsService = Depends(get_analytics),
) -> DemandForecastResponse:
	try:
		return service.demand_forecast(days=days)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/harvest-calendar", response_model=HarvestCalendarResponse)
async def get_harvest_calendar(
	start_date: date | None = Query(default=None),
	end_date: date | None = Query(default=None),
	service: AnalyticsService = Depends(get_analytics),
) -> HarvestCalendarResponse:
	try:
		return service.harvest_calendar(start_date=start_date, end_date=end_date)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/harvest-readiness", response_model=HarvestReadinessResponse)
async def get_harvest_readiness(
	days: int = Query(default=7, ge=0, le=365),
	service: AnalyticsService = Depends(get_analytics),
) -> HarvestReadinessResponse:
	try:
		return service.harvest_readiness(days=days)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/farmer-availability", response_model=FarmerAvailabilityResponse)
async def get_farmer_availability(
	service: AnalyticsService = Depends(get_analytics),
) -> FarmerAvailabilityResponse:
	return service.farmer_availability()
