"""Role-scoped dashboard composition.

Each role has one compose function; all of them read a single snapshot so the
numbers inside one dashboard agree with each other.  A principal with no
matching record still gets a dashboard, built around a placeholder.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Callable

from app.config import Settings, get_settings
from app.models.enums import ContractStatusEnum, OrderStatusEnum, UserRoleEnum
from app.schemas.dashboard import (
	AdminDashboard,
	AgronomistDashboard,
	AgronomistStats,
	FarmerDashboard,
	FarmerProfile,
	FarmerProgress,
	ForecastHorizon,
	ProcurementDashboard,
	ProcurementForecasts,
	ProcurementReconciliation,
	RegionPeers,
	RegionSummary,
	SourcingEntry,
)
from app.schemas.entities import FarmerRecord, dump_record
from app.services.analytics_service import (
	OPEN_ALLOCATION_STATUSES,
	PENDING_ORDER_STATUSES,
	AnalyticsService,
	clamp,
	mean,
	percentage,
	round_half_up,
)
from app.services.entity_store import EntityStore, StoreSnapshot

NEUTRAL_PROGRESS = 85
SOURCING_LOG_SIZE = 10
RECENT_VISITS_SIZE = 10
ADVISORY_FEED_SIZE = 5
VISIT_WINDOW_DAYS = 30
SOURCED_ORDER_STATUSES = frozenset({OrderStatusEnum.received, OrderStatusEnum.completed, OrderStatusEnum.rejected})


def crop_progress(planting: dt.date | None, harvest: dt.date | None, today: dt.date) -> int:
	"""Share of the growing season elapsed, kept within 5..95."""
	if planting is None or harvest is None:
		return NEUTRAL_PROGRESS
	total_days = (harvest - planting).days
	days_passed = (today - planting).days
	if total_days <= 0 or days_passed < 0:
		return NEUTRAL_PROGRESS
	return int(clamp(round_half_up(days_passed / total_days * 100), 5, 95))


def crop_stage(progress: int) -> str:
	if progress < 25:
		return "Germination"
	if progress < 50:
		return "Vegetative"
	if progress < 75:
		return "Flowering"
	return "Harvest Ready"


def region_risk(high_risk: int, total: int) -> str:
	share = high_risk / total if total else 0.0
	if share >= 0.5:
		return "high"
	if share >= 0.2:
		return "medium"
	return "low"


class DashboardService:
	def __init__(self, store: EntityStore, settings: Settings | None = None):
		self.store = store
		self.settings = settings or get_settings()
		self.analytics = AnalyticsService(store, self.settings)
		self._composers: dict[UserRoleEnum, Callable[[StoreSnapshot, int], object]] = {
			UserRoleEnum.admin: self.compose_admin,
			UserRoleEnum.agronomist: self.compose_agronomist,
			UserRoleEnum.procurement: self.compose_procurement,
			UserRoleEnum.farmer: self.compose_farmer,
		}

	def compose(self, role: UserRoleEnum, subject_id: int):
		composer = self._composers.get(role)
		if composer is None:
			raise ValueError(f"no dashboard for role {role}")
		return composer(self.store.snapshot(), subject_id)

	# ── admin ───────────────────────────────────────────────────────────────

	def compose_admin(self, snap: StoreSnapshot, subject_id: int) -> AdminDashboard:
		grouped: dict[str, list[FarmerRecord]] = defaultdict(list)
		for farmer in snap.farmers:
			grouped[farmer.location].append(farmer)

		regions = []
		for name, farmers in grouped.items():
			land_area = sum(farmer.plot_size for farmer in farmers)
			high_risk = sum(1 for farmer in farmers if farmer.risk_level.lower() == "high")
			regions.append(
				RegionSummary(
					name=name,
					farmer_count=len(farmers),
					land_area=land_area,
					production_estimate=round(land_area * self.settings.yield_per_area_unit, 2),
					high_risk_farmers=high_risk,
					risk=region_risk(high_risk, len(farmers)),
				)
			)

		return AdminDashboard(
			generated_at=snap.taken_at,
			overview=self.analytics.overview(snap),
			regions=regions,
			varieties=self.analytics.variety_distribution(snap),
			contracts=self.analytics.contract_stats(snap),
			aggregators=self.analytics.aggregator_stats(snap),
			alerts=self.analytics.risk_alerts(snap).alerts,
		)

	# ── agronomist ──────────────────────────────────────────────────────────

	def compose_agronomist(self, snap: StoreSnapshot, subject_id: int) -> AgronomistDashboard:
		today = snap.taken_at.date()
		if not snap.farmers:
			return AgronomistDashboard(
				generated_at=snap.taken_at,
				agronomist_id=subject_id,
				placeholder=True,
				scope="all",
				stats=AgronomistStats(
					total_farmers=0,
					vulnerable_count=0,
					lagging_count=0,
					average_health=0,
					visits_last_30_days=0,
				),
			)

		visited_ids = {visit.farmer_id for visit in snap.farm_visits if visit.agronomist_id == subject_id}
		assigned = [
			farmer
			for farmer in snap.farmers
			if farmer.assigned_agronomist_id == subject_id or farmer.id in visited_ids
		]
		scope = "assigned" if assigned else "all"
		farmers = assigned or list(snap.farmers)
		farmer_ids = {farmer.id for farmer in farmers}

		visits = sorted(
			(visit for visit in snap.farm_visits if visit.farmer_id in farmer_ids),
			key=lambda visit: (visit.visit_date, visit.id),
			reverse=True,
		)
		last_visit: dict[int, dt.date] = {}
		for visit in visits:
			last_visit.setdefault(visit.farmer_id, visit.visit_date)

		threshold = self.settings.vulnerability_health_threshold
		rows = []
		for farmer in farmers:
			progress = crop_progress(farmer.planting_date, farmer.harvest_date, today)
			health = farmer.health_score if farmer.health_score is not None else self.settings.default_health_score
			rows.append(
				FarmerProgress(
					farmer_id=farmer.id,
					name=farmer.name,
					location=farmer.location,
					crop=farmer.crop,
					progress=progress,
					stage=crop_stage(progress),
					health_score=health,
					vulnerable=health < threshold,
					lagging=progress < 50,
					last_visit=last_visit.get(farmer.id),
				)
			)

		window_start = today - dt.timedelta(days=VISIT_WINDOW_DAYS)
		return AgronomistDashboard(
			generated_at=snap.taken_at,
			agronomist_id=subject_id,
			scope=scope,
			farmers=rows,
			recent_visits=[dump_record(visit) for visit in visits[:RECENT_VISITS_SIZE]],
			stats=AgronomistStats(
				total_farmers=len(rows),
				vulnerable_count=sum(1 for row in rows if row.vulnerable),
				lagging_count=sum(1 for row in rows if row.lagging),
				average_health=round_half_up(mean(row.health_score for row in rows)),
				visits_last_30_days=sum(1 for visit in visits if visit.visit_date >= window_start),
			),
		)

	# ── procurement ─────────────────────────────────────────────────────────

	def compose_procurement(self, snap: StoreSnapshot, subject_id: int) -> ProcurementDashboard:
		contracts = snap.contracts
		total_value = sum(contract.contract_value for contract in contracts)
		amount_paid = sum(contract.amount_paid for contract in contracts)
		reconciliation = ProcurementReconciliation(
			active_contracts=sum(1 for contract in contracts if contract.status == ContractStatusEnum.active),
			pending_contracts=sum(1 for contract in contracts if contract.status == ContractStatusEnum.draft),
			total_contract_value=total_value,
			amount_paid=amount_paid,
			outstanding=max(0.0, total_value - amount_paid),
			reconciliation_rate=percentage(amount_paid, total_value),
		)

		sourced = sorted(
			(order for order in snap.orders if order.status in SOURCED_ORDER_STATUSES),
			key=lambda order: (order.updated_at, order.id),
			reverse=True,
		)
		sourcing_log = [
			SourcingEntry(
				order_id=order.id,
				supplier_name=order.supplier_name,
				crop=order.crop,
				status=order.status.value,
				quantity=order.quantity,
				quantity_accepted=order.quantity_accepted,
				quantity_rejected=order.quantity_rejected,
				rejection_reason=order.rejection_reason,
				updated_at=order.updated_at,
			)
			for order in sourced[:SOURCING_LOG_SIZE]
		]

		monthly_demand = sum(order.quantity for order in snap.orders if order.status in PENDING_ORDER_STATUSES)
		monthly_supply = sum(
			allocation.quantity for allocation in snap.allocations if allocation.status in OPEN_ALLOCATION_STATUSES
		)
		demand = self._horizon(monthly_demand)
		supply = self._horizon(monthly_supply)
		shortfall = ForecastHorizon(
			monthly=max(0.0, demand.monthly - supply.monthly),
			quarterly=max(0.0, demand.quarterly - supply.quarterly),
			annual=max(0.0, demand.annual - supply.annual),
		)

		return ProcurementDashboard(
			generated_at=snap.taken_at,
			overview=self.analytics.overview(snap),
			reconciliation=reconciliation,
			sourcing_log=sourcing_log,
			forecasts=ProcurementForecasts(demand=demand, supply=supply, shortfall=shortfall),
		)

	@staticmethod
	def _horizon(monthly: float) -> ForecastHorizon:
		return ForecastHorizon(monthly=monthly, quarterly=monthly * 3, annual=monthly * 12)

	# ── farmer ──────────────────────────────────────────────────────────────

	def compose_farmer(self, snap: StoreSnapshot, subject_id: int) -> FarmerDashboard:
		today = snap.taken_at.date()
		record = next((farmer for farmer in snap.farmers if farmer.user_id == subject_id), None)
		if record is None:
			record = next((farmer for farmer in snap.farmers if farmer.id == subject_id), None)

		if record is None:
			profile = FarmerProfile(id=subject_id, name="Farmer", placeholder=True)
		else:
			profile = FarmerProfile(
				id=record.id,
				name=record.name,
				region=record.region,
				county=record.county,
				crop=record.crop,
				plot_size=record.plot_size,
				planting_date=record.planting_date,
				harvest_date=record.harvest_date,
			)

		location = record.location if record is not None else "Unknown"
		progress = crop_progress(profile.planting_date, profile.harvest_date, today)

		advisories = sorted(
			(
				advisory
				for advisory in snap.advisories
				if (advisory.farmer_id is None and advisory.region is None)
				or (record is not None and advisory.farmer_id == record.id)
				or (advisory.region is not None and advisory.region == location)
			),
			key=lambda advisory: (advisory.date, advisory.id),
			reverse=True,
		)

		peers = [farmer for farmer in snap.farmers if farmer.location == location] if record is not None else []
		acreage = sum(farmer.plot_size for farmer in peers)

		allocations = [
			dump_record(allocation)
			for allocation in snap.allocations
			if record is not None and allocation.farmer_id == record.id
		]
		contracts = [
			dump_record(contract)
			for contract in snap.contracts
			if record is not None and contract.supplier_name == record.name
		]

		return FarmerDashboard(
			generated_at=snap.taken_at,
			farmer=profile,
			progress=progress,
			stage=crop_stage(progress),
			advisories=[dump_record(advisory) for advisory in advisories[:ADVISORY_FEED_SIZE]],
			region=RegionPeers(
				name=location,
				farmer_count=len(peers),
				total_acreage=acreage,
				average_plot_size=round(mean(farmer.plot_size for farmer in peers), 2),
			),
			allocations=allocations,
			contracts=contracts,
		)
