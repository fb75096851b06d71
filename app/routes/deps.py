"""Shared route dependencies and error mapping."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.entity_store import EntityStore
from app.services.errors import EntityValidationError, UpstreamUnavailable


def get_store(request: Request) -> EntityStore:
	return request.app.state.store


def map_service_error(exc: Exception, failure: str = "Unexpected service failure") -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, EntityValidationError):
		return HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail={"error": "validation_failed", "message": str(exc), "fields": exc.errors},
		)
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, UpstreamUnavailable):
		return HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail={"error": "store_unavailable", "message": str(exc)},
		)
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure)
