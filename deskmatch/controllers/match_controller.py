"""HTTP controller layer for desk matching."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from deskmatch.controllers.dependencies import get_matching_service, get_request_settings
from deskmatch.domain.models import Desk
from deskmatch.services.matching_service import DeskMatchingService
from deskmatch.utils.config import Settings
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["match"])


class MatchRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    model_config = ConfigDict(populate_by_name=True)

    employee_id: Optional[str] = Field(default=None, alias="employeeId")
    query: str

    @field_validator("employee_id")
    @classmethod
    def normalize_employee_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query cannot be empty")
        return value


class DeskResponse(BaseModel):
    id: str
    type: str
    area_id: str
    zone: str
    floor: Optional[int] = None
    location_description: str
    features: list[str]
    status: str
    last_used: Optional[datetime] = None

    @classmethod
    def from_desk(cls, desk: Desk) -> "DeskResponse":
        return cls(**desk.to_dict())


class MatchResponse(BaseModel):
    success: bool = True
    message: str
    data: list[DeskResponse]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


def _describe_validation_error(error: dict) -> str:
    location = [str(part) for part in error.get("loc", ()) if part != "body"]
    field = location[-1] if location else "body"
    error_type = error.get("type", "")
    if error_type == "missing":
        return f"{field} is required"
    if error_type == "string_type":
        return f"{field} must be a string"
    message = str(error.get("msg", "Invalid request"))
    return message.removeprefix("Value error, ")


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    message = _describe_validation_error(errors[0]) if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=message).model_dump(),
    )


def _found_message(count: int) -> str:
    if count == 0:
        return "No desks found matching your criteria"
    return f"Found {count} desk{'s' if count > 1 else ''}"


@router.post(
    "/match",
    response_model=MatchResponse,
    status_code=status.HTTP_200_OK,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def match_desks(
    payload: MatchRequest,
    service: DeskMatchingService = Depends(get_matching_service),
    settings: Settings = Depends(get_request_settings),
):
    """Recommend available desks for a free-form request."""
    if len(payload.query) > settings.query_max_length:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error=f"query too long (max {settings.query_max_length} characters)"
            ).model_dump(),
        )

    try:
        desks = await service.match_desks(
            employee_id=payload.employee_id,
            query=payload.query,
        )
    except Exception:
        logger.exception("Unexpected desk matching failure")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    return MatchResponse(
        message=_found_message(len(desks)),
        data=[DeskResponse.from_desk(desk) for desk in desks],
    )
