from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from app import create_app
from deskmatch.controllers.match_controller import router, validation_exception_handler
from deskmatch.domain.models import Desk
from deskmatch.repository.data_repository import DataRepository
from deskmatch.services.matching_service import DeskMatchingService
from deskmatch.services.nlp_service import QueryParser
from deskmatch.services.preference_service import PreferenceNormalizer
from deskmatch.utils.config import get_settings


LAST_USED = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _desk(desk_id: str) -> Desk:
    return Desk(
        desk_id=desk_id,
        desk_type="regular",
        area_id="A-1",
        zone="Design Zone",
        floor=2,
        location_description="Window row",
        features=("dual-monitors",),
        status="available",
        last_used=LAST_USED,
    )


class StubMatchingService:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result or []
        self.error = error
        self.calls: list[dict] = []

    async def match_desks(self, *, employee_id, query, now=None):
        self.calls.append({"employee_id": employee_id, "query": query})
        if self.error is not None:
            raise self.error
        return self.result


def _build_app(service) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.state.matching_service = service
    return app


def test_match_endpoint_returns_ranked_desks():
    service = StubMatchingService(result=[_desk("D-1"), _desk("D-2")])
    client = TestClient(_build_app(service))

    response = client.post(
        "/api/match",
        json={"employeeId": "  E-001  ", "query": "  quiet desk with two monitors  "},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Found 2 desks"
    assert [desk["id"] for desk in body["data"]] == ["D-1", "D-2"]
    assert body["data"][0]["features"] == ["dual-monitors"]
    assert service.calls == [{"employee_id": "E-001", "query": "quiet desk with two monitors"}]


def test_match_endpoint_singular_message():
    client = TestClient(_build_app(StubMatchingService(result=[_desk("D-1")])))

    response = client.post("/api/match", json={"query": "any desk"})

    assert response.json()["message"] == "Found 1 desk"


def test_match_endpoint_empty_result_is_success():
    service = StubMatchingService(result=[])
    client = TestClient(_build_app(service))

    response = client.post("/api/match", json={"query": "desk on the roof", "employeeId": "   "})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "No desks found matching your criteria",
        "data": [],
    }
    assert service.calls[0]["employee_id"] is None


def test_match_endpoint_validation_errors_use_error_envelope():
    client = TestClient(_build_app(StubMatchingService()))
    max_length = get_settings().query_max_length

    cases = [
        ({}, "query is required"),
        ({"query": 42}, "query must be a string"),
        ({"query": "   "}, "query cannot be empty"),
        ({"query": "x" * (max_length + 1)}, f"query too long (max {max_length} characters)"),
        ({"query": "desk", "employeeId": 7}, "employeeId must be a string"),
    ]
    for payload, message in cases:
        response = client.post("/api/match", json=payload)
        assert response.status_code == 400, payload
        assert response.json() == {"success": False, "error": message}


def test_match_endpoint_accepts_query_at_max_length():
    client = TestClient(_build_app(StubMatchingService()))
    max_length = get_settings().query_max_length

    response = client.post("/api/match", json={"query": "x" * max_length})

    assert response.status_code == 200


def test_match_endpoint_internal_failure_returns_generic_error():
    service = StubMatchingService(error=RuntimeError("Reference snapshot load failed: boom"))
    client = TestClient(_build_app(service))

    response = client.post("/api/match", json={"query": "any desk"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_match_endpoint_without_service_is_unavailable():
    app = FastAPI()
    app.include_router(router)
    client = TestClient(app)

    response = client.post("/api/match", json={"query": "any desk"})

    assert response.status_code == 503


def test_match_endpoint_end_to_end_with_reference_data(tmp_path):
    settings = replace(
        get_settings(),
        database_path=tmp_path / "endpoint.db",
        openai_api_key="",
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.refresh_reference_data()
    service = DeskMatchingService(
        repository=repository,
        normalizer=PreferenceNormalizer(parser=QueryParser(settings=settings)),
        settings=settings,
    )
    client = TestClient(_build_app(service))

    response = client.post(
        "/api/match",
        json={"employeeId": "E-001", "query": "standing desk near marketing on 3rd floor"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [desk["id"] for desk in data] == ["D-304"]
    desk = data[0]
    assert desk["type"] == "standing"
    assert desk["zone"] == "Marketing Zone"
    assert "dual-monitors" in desk["features"]
    last_used = datetime.fromisoformat(desk["last_used"])
    assert datetime.now(timezone.utc) - last_used > timedelta(hours=4)


def test_query_limit_follows_app_settings(tmp_path):
    settings = replace(
        get_settings(),
        database_path=tmp_path / "limits.db",
        openai_api_key="",
        query_max_length=10,
    )
    app = create_app(settings)
    app.state.matching_service = StubMatchingService(result=[_desk("D-1")])
    client = TestClient(app)

    too_long = client.post("/api/match", json={"query": "standing desk"})
    at_limit = client.post("/api/match", json={"query": "x" * 10})

    assert too_long.status_code == 400
    assert too_long.json() == {"success": False, "error": "query too long (max 10 characters)"}
    assert at_limit.status_code == 200
