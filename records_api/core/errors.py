"""
Exception handlers: every failure leaves the API as a FHIR OperationOutcome.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from records_api.core.config import get_settings
from records_api.core.fhir import create_operation_outcome

log = structlog.get_logger()
settings = get_settings()

ISSUE_CODES = {
    400: "invalid",
    401: "unauthorized",
    403: "forbidden",
    404: "not-found",
    409: "conflict",
}


def issue_code_for(status_code: int) -> str:
    """Map an HTTP status to a FHIR issue type code."""
    if status_code in ISSUE_CODES:
        return ISSUE_CODES[status_code]
    if status_code >= 500:
        return "exception"
    return "processing"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to FHIR OperationOutcome."""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_operation_outcome(
            "error", issue_code_for(exc.status_code), str(exc.detail)
        ),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    messages = []
    for error in errors[:3]:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    log.info("request.invalid", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=400,
        content=create_operation_outcome(
            "error", "invalid", "; ".join(messages) or "Invalid request"
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("request.failed", path=request.url.path, method=request.method)
    diagnostics = (
        "Internal server error"
        if settings.environment == "production"
        else f"Internal server error: {exc}"
    )
    return JSONResponse(
        status_code=500,
        content=create_operation_outcome("error", "exception", diagnostics),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
