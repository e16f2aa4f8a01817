"""Translate exceptions into problem+json responses."""

from http import HTTPStatus

import asyncpg
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from point_service.api.headers import create_failure_alert
from point_service.errors import BadRequestAlertError, PointServiceError

logger = structlog.get_logger(__name__)

PROBLEM_BASE_URL = "https://www.jhipster.tech/problem"
PROBLEM_JSON = "application/problem+json"


def problem(status: int, title: str, type_: str = "about:blank", **extra) -> dict:
    return {"type": type_, "title": title, "status": status, **extra}


async def bad_request_alert_handler(request: Request, exc: BadRequestAlertError):
    application_name = request.app.state.settings.application_name
    return JSONResponse(
        status_code=exc.status_code,
        media_type=PROBLEM_JSON,
        content=problem(
            exc.status_code,
            exc.message,
            f"{PROBLEM_BASE_URL}/problem-with-message",
            entityName=exc.entity_name,
            errorKey=exc.error_key,
            message=f"error.{exc.error_key}",
            params=exc.entity_name,
        ),
        headers=create_failure_alert(application_name, exc.entity_name, exc.error_key),
    )


async def service_error_handler(request: Request, exc: PointServiceError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        media_type=PROBLEM_JSON,
        content=problem(exc.status_code, exc.title, detail=exc.message),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    field_errors = [
        {
            "objectName": "point",
            "field": ".".join(str(part) for part in error["loc"][1:]),
            "message": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        media_type=PROBLEM_JSON,
        content=problem(
            400,
            "Method argument not valid",
            f"{PROBLEM_BASE_URL}/constraint-violation",
            message="error.validation",
            fieldErrors=field_errors,
        ),
    )


async def integrity_error_handler(
    request: Request, exc: asyncpg.exceptions.IntegrityConstraintViolationError
):
    logger.warning("integrity_violation", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=409,
        media_type=PROBLEM_JSON,
        content=problem(409, "Conflict", detail=str(exc), message="error.concurrencyFailure"),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        media_type=PROBLEM_JSON,
        content=problem(
            exc.status_code, HTTPStatus(exc.status_code).phrase, detail=exc.detail
        ),
        headers=exc.headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request_failed_unhandled", path=request.url.path)
    return JSONResponse(
        status_code=500,
        media_type=PROBLEM_JSON,
        content=problem(500, "Internal Server Error", message="error.http.500"),
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BadRequestAlertError, bad_request_alert_handler)
    app.add_exception_handler(PointServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(
        asyncpg.exceptions.IntegrityConstraintViolationError, integrity_error_handler
    )
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
