"""Prometheus instrumentation: request counters/latency, auth rejections, DB health."""

import time
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

NAMESPACE = "gateway"

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Requests served, by route template, method and status",
    labelnames=["path", "method", "status"],
    namespace=NAMESPACE,
)
HTTP_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Wall time spent handling a request",
    labelnames=["path", "method"],
    namespace=NAMESPACE,
)
AUTH_REJECTED = Counter(
    "auth_rejected_total",
    "Requests answered 401 by the API-key guard",
    namespace=NAMESPACE,
)
DB_UP = Gauge(
    "db_up",
    "Last healthcheck result per database (1 up, 0 down)",
    labelnames=["database"],
    namespace=NAMESPACE,
)


def _route_path(request: Request) -> str:
    # templated path, e.g. /api/login/account/{login}; raw path for unmatched requests
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def observe_db(database: str, ok: bool) -> None:
    DB_UP.labels(database=database).set(int(ok))


def install(app: FastAPI) -> None:
    """Wrap every request with timing/counting and expose ``GET /metrics``."""

    @app.middleware("http")
    async def _instrument(request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path, method = _route_path(request), request.method
            HTTP_LATENCY.labels(path=path, method=method).observe(time.perf_counter() - started)
            HTTP_REQUESTS.labels(path=path, method=method, status=str(status_code)).inc()
            if status_code == 401:
                AUTH_REJECTED.inc()

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
