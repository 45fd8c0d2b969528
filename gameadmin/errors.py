"""Error taxonomy and the RFC7807 problem+json responses they map to.

Route handlers raise `GatewayError` subclasses; everything else that escapes a
handler (database errors included) becomes a 500. `install()` wires the
handlers onto an app.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .settings import settings

log = logging.getLogger(__name__)

STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    500: "Internal Server Error",
}


class GatewayError(Exception):
    """Base for errors that carry their own HTTP status."""

    status_code = 500

    def __init__(self, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.error = error
        self.details = details


class ValidationError(GatewayError):
    status_code = 400


class AuthError(GatewayError):
    status_code = 401


class NotFoundError(GatewayError):
    status_code = 404


class ConflictError(GatewayError):
    status_code = 409


def problem(
    status: int,
    error: Optional[str] = None,
    details: Optional[str] = None,
    title: Optional[str] = None,
) -> JSONResponse:
    """Return an RFC7807 problem+json response with ``error``/``details`` extensions."""
    title = title or STATUS_TITLES.get(status, "Error")
    body = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "error": error or title,
        "details": details,
    }
    return JSONResponse(
        status_code=status, content=body, media_type="application/problem+json"
    )


async def gateway_error_handler(request: Request, exc: GatewayError):
    log.info(
        "http.error status=%d path=%s error=%s",
        exc.status_code,
        request.url.path,
        exc.error,
    )
    return problem(exc.status_code, exc.error, exc.details)


async def http_exception_handler(_req: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else None
    return problem(exc.status_code, detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        msg = "Validation error"
    log.info("http.validation_error path=%s details=%s", request.url.path, msg)
    return problem(400, "Validation error", msg)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    log.warning("http.integrity_error path=%s error=%r", request.url.path, exc.orig)
    return problem(409, "Conflict", "A record with the same key already exists")


async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("http.unhandled path=%s error=%r", request.url.path, exc)
    details = str(exc) if settings.EXPOSE_ERROR_DETAILS else None
    return problem(500, "Internal Server Error", details)


def install(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
