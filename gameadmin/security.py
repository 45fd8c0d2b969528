"""Static API-key guard for every ``/api/**`` route."""

from __future__ import annotations

import logging
import secrets

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .errors import problem
from .settings import settings

log = logging.getLogger(__name__)

API_PREFIX = "/api"


def _mask(value: str | None) -> str:
    if not value:
        return "<missing>"
    return value[:2] + "***" if len(value) > 4 else "***"


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Reject ``/api/**`` requests whose API-key header does not match ``API_KEY``.

    Operational endpoints (``/``, ``/docs``, ``/healthz``, ``/healthcheck``,
    ``/metrics``) are outside the prefix and always pass. Settings are read
    per request so the key and header name can be swapped at runtime.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if not settings.API_KEY_ENABLED:
            return await call_next(request)

        if request.method.upper() == "OPTIONS":
            return await call_next(request)

        path = request.url.path or ""
        if path != API_PREFIX and not path.startswith(f"{API_PREFIX}/"):
            return await call_next(request)

        provided = request.headers.get(settings.API_KEY_HEADER)
        expected = settings.API_KEY
        if not expected:
            log.error("auth.api_key not_configured path=%s", path)
        elif provided and secrets.compare_digest(
            provided.encode("utf-8"), expected.encode("utf-8")
        ):
            return await call_next(request)

        log.warning(
            "auth.rejected path=%s method=%s header=%s provided=%s",
            path,
            request.method,
            settings.API_KEY_HEADER,
            _mask(provided),
        )
        return problem(401, "Unauthorized", "A valid API key is required")
