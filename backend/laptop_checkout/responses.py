"""Response envelopes and exception handlers.

Success: ``{"success": true, "data": ..., "message": ...}``.
Failure: ``{"success": false, "error": {code, message, details, timestamp, path}}``.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from .domain_errors import DomainError

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES: dict[int, str] = {
    400: "VAL_INVALID_INPUT",
    401: "AUTH_INVALID_TOKEN",
    403: "PERM_ACCESS_DENIED",
    404: "NOT_FOUND",
    405: "VAL_METHOD_NOT_ALLOWED",
    429: "AUTH_RATE_LIMITED",
}


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return jsonable_encoder(value)


def success_response(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Wrap endpoint payload in the success envelope."""
    payload: dict[str, Any] = {"success": True, "data": _dump(data)}
    if message is not None:
        payload["message"] = message
    return payload


def build_error_response(
    *,
    code: str,
    message: str,
    http_status: int,
    path: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render failure envelope with stable code."""
    payload = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": jsonable_encoder(details) if details is not None else {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": path,
        },
    }
    return JSONResponse(status_code=http_status, content=payload, headers=headers)


def build_domain_error_response(exc: DomainError, *, path: str) -> JSONResponse:
    if exc.http_status >= 500:
        # Internal details stay in logs.
        return build_error_response(
            code=exc.code,
            message="Internal server error",
            http_status=exc.http_status,
            path=path,
        )
    return build_error_response(
        code=exc.code,
        message=exc.message,
        http_status=exc.http_status,
        path=path,
        details=exc.details,
    )


async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s %s failed: %s %s",
            request.method, request.url.path, exc.code, exc.message,
            exc_info=exc,
        )
    else:
        logger.warning("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    return build_domain_error_response(exc, path=request.url.path)


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, "SRV_INTERNAL_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return build_error_response(
        code=code,
        message=message,
        http_status=exc.status_code,
        path=request.url.path,
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    logger.warning("%s %s validation failed: %s", request.method, request.url.path, errors)
    return build_error_response(
        code="VAL_INVALID_INPUT",
        message=", ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid input",
        http_status=400,
        path=request.url.path,
        details={"errors": errors},
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return build_error_response(
        code="SRV_INTERNAL_ERROR",
        message="Internal server error",
        http_status=500,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _handle_domain_error)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
