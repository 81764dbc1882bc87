"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from deskmatch.services.matching_service import DeskMatchingService
from deskmatch.utils.config import Settings, get_settings


def get_matching_service(request: Request) -> DeskMatchingService:
    service = getattr(request.app.state, "matching_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Matching service is not initialized",
        )
    return service


def get_request_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()
