from __future__ import annotations

from collections.abc import Callable
from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from app.config import Settings
from app.models.enums import EntityKind, UserRoleEnum
from app.services.dashboard_service import DashboardService, crop_progress, crop_stage, region_risk
from app.services.entity_store import EntityStore


@pytest.fixture
def dashboards(store: EntityStore) -> DashboardService:
	return DashboardService(store, Settings())


def test_crop_progress_clamps_and_falls_back() -> None:
	today = date(2026, 3, 10)
	assert crop_progress(date(2026, 1, 9), date(2026, 5, 9), today) == 50
	assert crop_progress(today - timedelta(days=1), today + timedelta(days=200), today) == 5
	assert crop_progress(date(2025, 1, 1), date(2025, 6, 1), today) == 95
	assert crop_progress(None, date(2026, 6, 1), today) == 85
	assert crop_progress(date(2026, 6, 1), date(2026, 1, 1), today) == 85


def test_crop_stage_thresholds() -> None:
	assert crop_stage(5) == "Germination"
	assert crop_stage(25) == "Vegetative"
	assert crop_stage(50) == "Flowering"
	assert crop_stage(74) == "Flowering"
	assert crop_stage(75) == "Harvest Ready"


def test_region_risk_tags() -> None:
	assert region_risk(1, 2) == "high"
	assert region_risk(1, 5) == "medium"
	assert region_risk(1, 6) == "low"
	assert region_risk(0, 0) == "low"


@pytest.mark.asyncio
async def test_admin_dashboard_groups_regions(store: EntityStore, dashboards: DashboardService) -> None:
	await store.create(EntityKind.farmer, {"name": "a", "region": "Narok", "plotSize": 10, "riskLevel": "high"})
	await store.create(EntityKind.farmer, {"name": "b", "region": "Narok", "plotSize": 5})
	await store.create(EntityKind.farmer, {"name": "c", "county": "Bomet", "plotSize": 2})

	view = dashboards.compose(UserRoleEnum.admin, 1)

	regions = {region.name: region for region in view.regions}
	assert regions["Narok"].farmer_count == 2
	assert regions["Narok"].land_area == 15
	assert regions["Narok"].production_estimate == 42.0
	assert regions["Narok"].risk == "high"
	assert regions["Bomet"].risk == "low"
	assert view.overview.total_farmers == 3
	assert [alert.title for alert in view.alerts] == ["Unallocated Farmers"]


@pytest.mark.asyncio
async def test_agronomist_sees_assigned_and_visited_farmers(
	store: EntityStore,
	dashboards: DashboardService,
	today: date,
) -> None:
	await store.create(
		EntityKind.farmer,
		{"name": "assigned", "assignedAgronomistId": 4, "healthScore": 60, "plantingDate": "2026-03-01", "harvestDate": "2026-07-01"},
	)
	await store.create(EntityKind.farmer, {"name": "visited"})
	await store.create(EntityKind.farmer, {"name": "other"})
	await store.create(
		EntityKind.farm_visit,
		{"farmerId": 2, "agronomistId": 4, "visitDate": (today - timedelta(days=3)).isoformat()},
	)
	await store.create(
		EntityKind.farm_visit,
		{"farmerId": 2, "agronomistId": 4, "visitDate": (today - timedelta(days=45)).isoformat()},
	)

	view = dashboards.compose(UserRoleEnum.agronomist, 4)

	assert view.scope == "assigned"
	assert view.placeholder is False
	rows = {row.name: row for row in view.farmers}
	assert set(rows) == {"assigned", "visited"}
	assert rows["assigned"].vulnerable is True
	assert rows["assigned"].lagging is True
	assert rows["assigned"].stage == "Germination"
	assert rows["visited"].health_score == 100
	assert rows["visited"].last_visit == today - timedelta(days=3)
	assert view.stats.vulnerable_count == 1
	assert view.stats.average_health == 80
	assert view.stats.visits_last_30_days == 1
	assert len(view.recent_visits) == 2


@pytest.mark.asyncio
async def test_agronomist_without_assignments_sees_everyone(store: EntityStore, dashboards: DashboardService) -> None:
	await store.create(EntityKind.farmer, {"name": "a"})
	await store.create(EntityKind.farmer, {"name": "b"})

	view = dashboards.compose(UserRoleEnum.agronomist, 9)

	assert view.scope == "all"
	assert view.stats.total_farmers == 2


def test_agronomist_placeholder_when_no_farmers(dashboards: DashboardService) -> None:
	view = dashboards.compose(UserRoleEnum.agronomist, 9)

	assert view.placeholder is True
	assert view.farmers == []
	assert view.stats.average_health == 0


@pytest.mark.asyncio
async def test_procurement_forecasts_and_sourcing_log(
	store: EntityStore,
	dashboards: DashboardService,
	clock,
) -> None:
	await store.create(EntityKind.order, {"supplierName": "open", "quantity": 100, "status": "pending"})
	for index in range(12):
		clock.advance(minutes=1)
		await store.create(
			EntityKind.order,
			{"supplierName": f"s{index}", "quantity": 10, "quantityAccepted": 8, "quantityRejected": 2, "status": "received"},
		)
	await store.create(EntityKind.allocation, {"farmerId": 1, "quantity": 40})
	await store.create(
		EntityKind.contract,
		{"supplierName": "k", "status": "active", "contractValue": 1000, "amountPaid": 250},
	)
	await store.create(EntityKind.contract, {"supplierName": "d"})

	view = dashboards.compose(UserRoleEnum.procurement, 7)

	assert len(view.sourcing_log) == 10
	assert view.sourcing_log[0].supplier_name == "s11"
	assert view.forecasts.demand.monthly == 100
	assert view.forecasts.demand.quarterly == 300
	assert view.forecasts.supply.annual == 480
	assert view.forecasts.shortfall.monthly == 60
	assert view.reconciliation.active_contracts == 1
	assert view.reconciliation.pending_contracts == 1
	assert view.reconciliation.outstanding == 750
	assert view.reconciliation.reconciliation_rate == 25.0


@pytest.mark.asyncio
async def test_farmer_dashboard_resolves_by_user_id(
	store: EntityStore,
	dashboards: DashboardService,
	today: date,
) -> None:
	await store.create(EntityKind.farmer, {"name": "neighbour", "region": "Narok", "plotSize": 6})
	await store.create(
		EntityKind.farmer,
		{"name": "me", "region": "Narok", "plotSize": 2, "userId": 50, "plantingDate": "2026-01-09", "harvestDate": "2026-05-09"},
	)
	await store.create(EntityKind.allocation, {"farmerId": 2, "quantity": 25})
	await store.create(EntityKind.contract, {"supplierName": "me", "contractedQuantity": 80})
	await store.create(EntityKind.advisory, {"message": "global"})
	await store.create(EntityKind.advisory, {"message": "regional", "region": "Narok"})
	await store.create(EntityKind.advisory, {"message": "personal", "farmerId": 2})
	await store.create(EntityKind.advisory, {"message": "elsewhere", "region": "Kisii"})

	view = dashboards.compose(UserRoleEnum.farmer, 50)

	assert view.farmer.name == "me"
	assert view.farmer.placeholder is False
	assert view.progress == 50
	assert view.stage == "Flowering"
	assert {item["message"] for item in view.advisories} == {"global", "regional", "personal"}
	assert view.region.farmer_count == 2
	assert view.region.total_acreage == 8
	assert view.region.average_plot_size == 4.0
	assert len(view.allocations) == 1
	assert view.contracts[0]["contractedQuantity"] == 80


@pytest.mark.asyncio
async def test_farmer_dashboard_falls_back_to_record_id_then_placeholder(
	store: EntityStore,
	dashboards: DashboardService,
) -> None:
	await store.create(EntityKind.farmer, {"name": "by-id"})

	assert dashboards.compose(UserRoleEnum.farmer, 1).farmer.name == "by-id"

	placeholder = dashboards.compose(UserRoleEnum.farmer, 77)
	assert placeholder.farmer.placeholder is True
	assert placeholder.progress == 85
	assert placeholder.stage == "Harvest Ready"


@pytest.mark.asyncio
async def test_dashboard_route_uses_principal_role(client: AsyncClient, act_as: Callable[..., object]) -> None:
	act_as(UserRoleEnum.farmer, 12)

	response = await client.get("/api/v1/dashboard")

	assert response.status_code == 200
	body = response.json()
	assert body["role"] == "farmer"
	assert body["farmer"]["placeholder"] is True


@pytest.mark.asyncio
async def test_non_admin_cannot_view_other_role(client: AsyncClient, act_as: Callable[..., object]) -> None:
	act_as(UserRoleEnum.farmer, 12)

	assert (await client.get("/api/v1/dashboard/admin")).status_code == 403
	assert (await client.get("/api/v1/dashboard/farmer")).status_code == 200


@pytest.mark.asyncio
async def test_admin_can_view_any_role_and_unknown_role_is_403(client: AsyncClient) -> None:
	procurement = await client.get("/api/v1/dashboard/procurement")
	assert procurement.status_code == 200
	assert procurement.json()["role"] == "procurement"

	assert (await client.get("/api/v1/dashboard/janitor")).status_code == 403
