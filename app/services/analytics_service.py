"""Analytics aggregation service: folds over one consistent store snapshot.

Nothing is cached: every call takes a fresh snapshot (or uses the one it is
handed, so a dashboard can build several views from the same instant) and
recomputes from scratch.  No analytic raises for empty collections.
"""

from __future__ import annotations

import datetime as dt
import math
from collections import defaultdict
from collections.abc import Iterable

from app.config import Settings, get_settings
from app.models.enums import (
	AggregatorTypeEnum,
	AllocationStatusEnum,
	ContractStatusEnum,
	OrderSourceEnum,
	OrderStatusEnum,
)
from app.schemas.analytics import (
	AggregatorStatsResponse,
	ContractStatsResponse,
	CostAnalysisResponse,
	CostBreakdown,
	CropDemand,
	CropDiscrepancy,
	DemandForecastResponse,
	FarmerAvailability,
	FarmerAvailabilityResponse,
	HarvestCalendarDay,
	HarvestCalendarResponse,
	HarvestReadinessResponse,
	OverviewResponse,
	RiskAlert,
	RiskAlertsResponse,
	SupplyDemandPoint,
	SupplyDemandResponse,
	SupplyReconciliationResponse,
	VarietyDistributionResponse,
	VarietyShare,
)
from app.schemas.entities import SupplyAllocationRecord, dump_record
from app.services.entity_store import EntityStore, StoreSnapshot

SUPPLY_DEMAND_WINDOWS = (7, 30, 90)
SETTLED_ORDER_STATUSES = frozenset({OrderStatusEnum.received, OrderStatusEnum.completed})
PENDING_ORDER_STATUSES = frozenset({OrderStatusEnum.pending, OrderStatusEnum.ordered})
OPEN_ALLOCATION_STATUSES = frozenset({AllocationStatusEnum.scheduled, AllocationStatusEnum.allocated})


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


def percentage(part: float, whole: float) -> float:
	"""``part / whole × 100`` clamped to [0, 100], 2 decimals; 0 for an empty whole."""
	if whole <= 0:
		return 0.0
	return round(clamp(part / whole * 100, 0.0, 100.0), 2)


def mean(values: Iterable[float]) -> float:
	items = list(values)
	if not items:
		return 0.0
	return sum(items) / len(items)


def allocation_crop(allocation: SupplyAllocationRecord, farmer_crops: dict[int, str | None]) -> str:
	return allocation.crop or farmer_crops.get(allocation.farmer_id) or "Unspecified"


class AnalyticsService:
	def __init__(self, store: EntityStore, settings: Settings | None = None):
		self.store = store
		self.settings = settings or get_settings()

	def _snapshot(self, snapshot: StoreSnapshot | None) -> StoreSnapshot:
		return snapshot if snapshot is not None else self.store.snapshot()

	def overview(self, snapshot: StoreSnapshot | None = None) -> OverviewResponse:
		snap = self._snapshot(snapshot)
		allocations = snap.allocations
		orders = snap.orders

		completed = sum(1 for item in allocations if item.status == AllocationStatusEnum.completed)
		settled = [order for order in orders if order.status in SETTLED_ORDER_STATUSES]
		from_aggregators = sum(1 for order in orders if order.source == OrderSourceEnum.aggregator)

		return OverviewResponse(
			total_farmers=len(snap.farmers),
			active_crops=len(snap.crops),
			pending_orders=sum(1 for order in orders if order.status in PENDING_ORDER_STATUSES),
			total_allocations=len(allocations),
			total_allocated_qty=sum(item.quantity for item in allocations),
			completion_rate=percentage(completed, len(allocations)),
			acceptance_rate=percentage(
				sum(order.quantity_accepted for order in settled),
				sum(order.quantity for order in settled),
			),
			aggregator_dependency=percentage(from_aggregators, len(orders)),
			is_fresh_system=not snap.farmers,
			generated_at=snap.taken_at,
		)

	def supply_demand(self, days: int = 30, snapshot: StoreSnapshot | None = None) -> SupplyDemandResponse:
		if days not in SUPPLY_DEMAND_WINDOWS:
			raise ValueError(f"days must be one of {', '.join(str(item) for item in SUPPLY_DEMAND_WINDOWS)}")
		snap = self._snapshot(snapshot)
		today = snap.taken_at.date()
		start = today - dt.timedelta(days=days - 1)

		supply: dict[dt.date, float] = defaultdict(float)
		for allocation in snap.allocations:
			supply[allocation.date] += allocation.quantity
		demand: dict[dt.date, float] = defaultdict(float)
		for order in snap.orders:
			if order.expected_delivery_date is not None:
				demand[order.expected_delivery_date] += order.quantity

		points: list[SupplyDemandPoint] = []
		for offset in range(days):
			day = start + dt.timedelta(days=offset)
			day_supply = supply.get(day, 0.0)
			day_demand = demand.get(day, 0.0)
			gap = day_supply - day_demand
			points.append(
				SupplyDemandPoint(
					date=day,
					supply=day_supply,
					demand=day_demand,
					gap=gap,
					surplus=max(0.0, gap),
					deficit=max(0.0, -gap),
				)
			)

		total_supply = sum(point.supply for point in points)
		total_demand = sum(point.demand for point in points)
		return SupplyDemandResponse(
			days=days,
			total_supply=total_supply,
			total_demand=total_demand,
			total_gap=total_supply - total_demand,
			points=points,
		)

	def variety_distribution(self, snapshot: StoreSnapshot | None = None) -> VarietyDistributionResponse:
		snap = self._snapshot(snapshot)
		counts: dict[str, int] = {}
		for farmer in snap.farmers:
			crop = farmer.crop or "Unknown"
			counts[crop] = counts.get(crop, 0) + 1

		total = len(snap.farmers)
		items = [
			VarietyShare(name=name, value=value, percentage=percentage(value, total))
			for name, value in counts.items()
		]
		return VarietyDistributionResponse(total_farmers=total, items=items)

	def risk_alerts(self, snapshot: StoreSnapshot | None = None) -> RiskAlertsResponse:
		snap = self._snapshot(snapshot)
		now = snap.taken_at
		today = now.date()
		alerts: list[RiskAlert] = []

		allocated_farmer_ids = {item.farmer_id for item in snap.allocations}
		unallocated = [farmer for farmer in snap.farmers if farmer.id not in allocated_farmer_ids]
		if unallocated:
			names = [farmer.name for farmer in unallocated]
			alerts.append(
				RiskAlert(
					id=1,
					title="Unallocated Farmers",
					message=f"{len(unallocated)} farmers have no supply allocations: {', '.join(names)}",
					type="warning",
					priority="medium",
					count=len(unallocated),
					subjects=names,
					timestamp=now,
				)
			)

		farmer_ids = {farmer.id for farmer in snap.farmers}
		orphaned = [item for item in snap.allocations if item.farmer_id not in farmer_ids]
		if orphaned:
			alerts.append(
				RiskAlert(
					id=2,
					title="Orphaned Allocations",
					message=f"{len(orphaned)} allocations reference non-existent farmers",
					type="error",
					priority="high",
					count=len(orphaned),
					subjects=[str(item.id) for item in orphaned],
					timestamp=now,
				)
			)

		window = self.settings.contract_expiry_window_days
		expiring = [
			contract
			for contract in snap.contracts
			if contract.end_date is not None and 1 <= (contract.end_date - today).days <= window
		]
		if expiring:
			alerts.append(
				RiskAlert(
					id=3,
					title="Contracts Expiring Soon",
					message=f"{len(expiring)} contracts expire within {window} days",
					type="warning",
					priority="medium",
					count=len(expiring),
					subjects=[contract.supplier_name for contract in expiring],
					timestamp=now,
				)
			)

		return RiskAlertsResponse(generated_at=now, alerts=alerts)

	def cost_analysis(self, snapshot: StoreSnapshot | None = None) -> CostAnalysisResponse:
		snap = self._snapshot(snapshot)
		settings = self.settings
		total_qty = sum(item.quantity for item in snap.allocations)
		total_cost = total_qty * settings.cost_per_unit
		return CostAnalysisResponse(
			total_allocated_qty=total_qty,
			total_cost=total_cost,
			cost_per_unit=settings.cost_per_unit,
			cost_breakdown=CostBreakdown(
				labor=total_cost * settings.cost_share_labor,
				materials=total_cost * settings.cost_share_materials,
				logistics=total_cost * settings.cost_share_logistics,
				other=total_cost * settings.cost_share_other,
			),
			is_fresh_system=not snap.farmers,
		)

	def contract_stats(self, snapshot: StoreSnapshot | None = None) -> ContractStatsResponse:
		snap = self._snapshot(snapshot)
		contracts = snap.contracts
		by_status = {status.value: 0 for status in ContractStatusEnum}
		for contract in contracts:
			by_status[contract.status.value] += 1

		total_value = sum(contract.contract_value for contract in contracts)
		amount_paid = sum(contract.amount_paid for contract in contracts)
		return ContractStatsResponse(
			total_contracts=len(contracts),
			active_contracts=by_status[ContractStatusEnum.active.value],
			by_status=by_status,
			total_contracted_qty=sum(contract.contracted_quantity for contract in contracts),
			avg_fulfillment=round_half_up(
				mean(clamp(contract.fulfillment_percentage, 0.0, 100.0) for contract in contracts)
			),
			total_value=total_value,
			amount_paid=amount_paid,
			outstanding=max(0.0, total_value - amount_paid),
		)

	def aggregator_stats(self, snapshot: StoreSnapshot | None = None) -> AggregatorStatsResponse:
		snap = self._snapshot(snapshot)
		aggregators = snap.aggregators
		internal = sum(1 for item in aggregators if item.type == AggregatorTypeEnum.internal)
		return AggregatorStatsResponse(
			internal_count=internal,
			external_count=len(aggregators) - internal,
			total_volume=sum(item.historical_volume for item in aggregators),
			avg_reliability=round_half_up(mean(item.reliability_score for item in aggregators)),
			avg_quality=round_half_up(mean(item.average_quality for item in aggregators)),
		)

	def supply_reconciliation(self, snapshot: StoreSnapshot | None = None) -> SupplyReconciliationResponse:
		snap = self._snapshot(snapshot)
		farmer_crops = {farmer.id: farmer.crop for farmer in snap.farmers}

		supply: dict[str, float] = defaultdict(float)
		for allocation in snap.allocations:
			supply[allocation_crop(allocation, farmer_crops)] += allocation.quantity
		demand: dict[str, float] = defaultdict(float)
		for order in snap.orders:
			demand[order.crop or "Unspecified"] += order.quantity

		discrepancies = []
		for crop in sorted(set(supply) | set(demand)):
			gap = supply.get(crop, 0.0) - demand.get(crop, 0.0)
			if gap != 0:
				discrepancies.append(
					CropDiscrepancy(crop=crop, supply=supply.get(crop, 0.0), demand=demand.get(crop, 0.0), gap=gap)
				)

		total_supply = sum(supply.values())
		total_demand = sum(demand.values())
		rate = round(total_supply / total_demand * 100, 2) if total_demand > 0 else 0.0
		return SupplyReconciliationResponse(
			total_supply=total_supply,
			total_demand=total_demand,
			reconciliation_rate=rate,
			discrepancies=discrepancies,
		)

	def demand_forecast(self, days: int | None = None, snapshot: StoreSnapshot | None = None) -> DemandForecastResponse:
		horizon = days if days is not None else self.settings.demand_forecast_days
		if horizon < 1:
			raise ValueError("days must be positive")
		snap = self._snapshot(snapshot)
		today = snap.taken_at.date()
		until = today + dt.timedelta(days=horizon)

		quantities: dict[str, float] = defaultdict(float)
		order_counts: dict[str, int] = defaultdict(int)
		for order in snap.orders:
			if order.status not in PENDING_ORDER_STATUSES or order.expected_delivery_date is None:
				continue
			if today <= order.expected_delivery_date <= until:
				crop = order.crop or "Unspecified"
				quantities[crop] += order.quantity
				order_counts[crop] += 1

		items = [
			CropDemand(crop=crop, quantity=quantity, orders=order_counts[crop])
			for crop, quantity in sorted(quantities.items(), key=lambda pair: pair[1], reverse=True)
		]
		return DemandForecastResponse(days=horizon, total_demand=sum(quantities.values()), items=items)

	def harvest_calendar(
		self,
		start_date: dt.date | None = None,
		end_date: dt.date | None = None,
		snapshot: StoreSnapshot | None = None,
	) -> HarvestCalendarResponse:
		if start_date is not None and end_date is not None and start_date > end_date:
			raise ValueError("start_date must not be after end_date")
		snap = self._snapshot(snapshot)

		grouped: dict[dt.date, list[SupplyAllocationRecord]] = defaultdict(list)
		for allocation in snap.allocations:
			if start_date is not None and allocation.date < start_date:
				continue
			if end_date is not None and allocation.date > end_date:
				continue
			grouped[allocation.date].append(allocation)

		items = [
			HarvestCalendarDay(
				date=day,
				total_quantity=sum(item.quantity for item in allocations),
				farmer_count=len({item.farmer_id for item in allocations}),
				allocations=[dump_record(item) for item in allocations],
			)
			for day, allocations in sorted(grouped.items())
		]
		return HarvestCalendarResponse(start_date=start_date, end_date=end_date, items=items)

	def harvest_readiness(self, days: int = 7, snapshot: StoreSnapshot | None = None) -> HarvestReadinessResponse:
		if days < 0:
			raise ValueError("days must not be negative")
		snap = self._snapshot(snapshot)
		today = snap.taken_at.date()
		until = today + dt.timedelta(days=days)
		ready = sorted(
			(item for item in snap.allocations if today <= item.date <= until),
			key=lambda item: (item.date, item.id),
		)
		return HarvestReadinessResponse(
			days=days,
			total_quantity=sum(item.quantity for item in ready),
			allocations=[dump_record(item) for item in ready],
		)

	def farmer_availability(self, snapshot: StoreSnapshot | None = None) -> FarmerAvailabilityResponse:
		snap = self._snapshot(snapshot)
		today = snap.taken_at.date()
		latest_open: dict[int, dt.date] = {}
		for allocation in snap.allocations:
			if allocation.status not in OPEN_ALLOCATION_STATUSES:
				continue
			current = latest_open.get(allocation.farmer_id)
			if current is None or allocation.date > current:
				latest_open[allocation.farmer_id] = allocation.date

		items = []
		for farmer in snap.farmers:
			busy_until = latest_open.get(farmer.id)
			items.append(
				FarmerAvailability(
					farmer_id=farmer.id,
					name=farmer.name,
					county=farmer.county,
					crop=farmer.crop,
					is_available=busy_until is None,
					next_available_date=max(busy_until, today) if busy_until is not None else today,
				)
			)
		return FarmerAvailabilityResponse(items=items)
