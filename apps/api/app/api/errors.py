from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.context import get_correlation_id
from app.core.config import get_settings
from app.platform.errors import CatalogError
from app.platform.schemas import ErrorBody, ErrorEnvelope

logger = logging.getLogger("app.request")

_HTTP_KINDS = {
    400: "validation_error",
    401: "unauthorized",
    403: "unauthorized",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
}


def error_response(
    request: Request,
    *,
    status_code: int,
    kind: str,
    message: str,
    details: Any = None,
    exc: BaseException | None = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    trace = None
    if exc is not None and get_settings().expose_error_traces:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    payload = ErrorEnvelope(
        error=ErrorBody(kind=kind, message=message, details=details, trace=trace),
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=_drop_trace(payload))


def _drop_trace(payload: ErrorEnvelope) -> dict[str, Any]:
    content = payload.model_dump(mode="json")
    if content["error"].get("trace") is None:
        content["error"].pop("trace", None)
    return content


async def handle_catalog_error(request: Request, exc: CatalogError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        kind=exc.kind,
        message=exc.message,
        details=exc.details,
        exc=exc,
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        kind=_HTTP_KINDS.get(exc.status_code, "http_error"),
        message=str(exc.detail),
        exc=exc,
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    return error_response(request, status_code=422, kind="validation_error", message="request is invalid", details=details)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.unhandled", extra={"path": request.url.path, "error": str(exc)[:500]})
    return error_response(
        request,
        status_code=500,
        kind="internal_error",
        message="internal server error",
        exc=exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, handle_catalog_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
