from __future__ import annotations

import json
from uuid import uuid4

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from laptop_checkout.domain_errors import ConflictError, DomainError, InternalError, NotFoundError
from laptop_checkout.responses import (
    build_domain_error_response,
    register_exception_handlers,
    success_response,
)
from laptop_checkout.schemas import AvailableActionsResponse, UserBrief


class _Payload(BaseModel):
    count: int


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/conflict")
    def _conflict():
        raise ConflictError(
            code="BIZ_USER_HAS_ACTIVE_CHECKOUT",
            message="User already has laptop LAP-0001 checked out",
            details={"laptopUniqueId": "LAP-0001"},
        )

    @app.get("/missing")
    def _missing():
        raise NotFoundError(code="NOT_FOUND_LAPTOP", message="Laptop not found")

    @app.get("/internal")
    def _internal():
        raise InternalError(code="SRV_QR_GENERATION_FAILED", message="qrcode blew up on /tmp/x")

    @app.get("/crash")
    def _crash():
        raise RuntimeError("secret stack detail")

    @app.get("/http")
    def _http():
        raise HTTPException(status_code=403, detail="nope")

    @app.post("/payload")
    def _payload(payload: _Payload):
        return success_response(payload, "ok")

    return app


def test_success_envelope_uses_camel_case_aliases() -> None:
    user_id = uuid4()
    body = success_response(
        UserBrief(id=user_id, email="a@example.com", name="A", role="admin"),
        "User retrieved successfully",
    )

    assert body == {
        "success": True,
        "data": {"id": str(user_id), "email": "a@example.com", "name": "A", "role": "admin"},
        "message": "User retrieved successfully",
    }


def test_success_envelope_dumps_lists_of_models() -> None:
    actions = AvailableActionsResponse(can_checkout=True, can_checkin=False, can_report_lost=False, can_report_found=False)

    body = success_response([actions])

    assert body["data"] == [{"canCheckout": True, "canCheckin": False, "canReportLost": False, "canReportFound": False}]
    assert "message" not in body


def test_success_envelope_with_no_data() -> None:
    assert success_response(None, "Laptop deleted successfully") == {
        "success": True,
        "data": None,
        "message": "Laptop deleted successfully",
    }


def test_domain_error_envelope_carries_code_details_and_path() -> None:
    response = build_domain_error_response(
        DomainError(code="PROBE_ERROR", http_status=409, message="probe failed", details={"probe": True}),
        path="/api/v1/probe",
    )

    assert response.status_code == 409
    payload = json.loads(response.body)
    assert payload["success"] is False
    assert payload["error"]["code"] == "PROBE_ERROR"
    assert payload["error"]["message"] == "probe failed"
    assert payload["error"]["details"] == {"probe": True}
    assert payload["error"]["path"] == "/api/v1/probe"
    assert payload["error"]["timestamp"]


def test_domain_error_envelope_defaults_details_to_empty_object() -> None:
    response = build_domain_error_response(
        DomainError(code="NO_DETAILS", http_status=400, message="bad"),
        path="/x",
    )

    assert json.loads(response.body)["error"]["details"] == {}


def test_handlers_map_taxonomy_errors_to_status_codes() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)

    conflict = client.get("/conflict")
    assert conflict.status_code == 409
    assert conflict.json()["error"]["code"] == "BIZ_USER_HAS_ACTIVE_CHECKOUT"
    assert conflict.json()["error"]["details"] == {"laptopUniqueId": "LAP-0001"}

    missing = client.get("/missing")
    assert missing.status_code == 404
    assert missing.json()["error"]["path"] == "/missing"


def test_server_errors_are_reported_generically() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)

    internal = client.get("/internal")
    assert internal.status_code == 500
    assert internal.json()["error"]["code"] == "SRV_QR_GENERATION_FAILED"
    assert internal.json()["error"]["message"] == "Internal server error"

    crash = client.get("/crash")
    assert crash.status_code == 500
    assert crash.json()["error"]["code"] == "SRV_INTERNAL_ERROR"
    assert "secret" not in crash.text


def test_http_exceptions_and_unknown_routes_use_envelope() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)

    forbidden = client.get("/http")
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "PERM_ACCESS_DENIED"
    assert forbidden.json()["error"]["message"] == "nope"

    unknown = client.get("/does-not-exist")
    assert unknown.status_code == 404
    assert unknown.json()["success"] is False
    assert unknown.json()["error"]["code"] == "NOT_FOUND"


def test_validation_errors_are_400_with_field_list() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)

    response = client.post("/payload", json={"count": "many"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VAL_INVALID_INPUT"
    assert error["details"]["errors"][0]["field"] == "count"
