"""Role-scoped dashboard routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.dependencies import AuthPrincipal, get_auth_principal
from app.models.enums import UserRoleEnum
from app.routes.deps import get_store, map_service_error
from app.schemas.dashboard import DashboardResponse
from app.services.dashboard_service import DashboardService
from app.services.entity_store import EntityStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _forbidden(message: str) -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_403_FORBIDDEN,
		detail={"error": "forbidden", "message": message},
	)


def _compose(store: EntityStore, role: UserRoleEnum, principal: AuthPrincipal):
	try:
		return DashboardService(store).compose(role, principal.subject_id)
	except Exception as exc:
		raise map_service_error(exc, failure="dashboard failure") from exc


@router.get("", response_model=DashboardResponse)
async def get_own_dashboard(
	principal: AuthPrincipal = Depends(get_auth_principal),
	store: EntityStore = Depends(get_store),
):
	return _compose(store, principal.role, principal)


@router.get("/{role}", response_model=DashboardResponse)
async def get_role_dashboard(
	role: str,
	principal: AuthPrincipal = Depends(get_auth_principal),
	store: EntityStore = Depends(get_store),
):
	try:
		requested = UserRoleEnum(role)
	except ValueError as exc:
		raise _forbidden(f"Unknown dashboard role: {role}") from exc
	if principal.role != UserRoleEnum.admin and requested != principal.role:
		raise _forbidden("Insufficient role")
	return _compose(store, requested, principal)
