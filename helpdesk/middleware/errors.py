"""Exception handlers rendering every failure as ``{"error": {...}}``."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from helpdesk.core.errors import HelpdeskError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


async def helpdesk_error_handler(request: Request, exc: HelpdeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        content = {"error": {"code": exc.kind, "message": GENERIC_ERROR_MESSAGE}}
    else:
        logger.warning(
            "%s %s rejected with %s: %s", request.method, request.url.path, exc.kind, exc.message
        )
        content = exc.to_dict()
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={"X-Request-ID": _request_id(request)},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": errors},
            }
        },
        headers={"X-Request-ID": _request_id(request)},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": GENERIC_ERROR_MESSAGE}},
        headers={"X-Request-ID": _request_id(request)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HelpdeskError, helpdesk_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
