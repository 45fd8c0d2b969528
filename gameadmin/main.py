"""FastAPI app, lifespan bootstrap, and operational routes.

Defines the application instance, the startup/shutdown sequence for the two
database handles, and the unauthenticated endpoints:

- GET /            -> redirect to Swagger UI (/docs)
- GET /healthz     -> liveness, no I/O
- GET /healthcheck -> deep health (login DB and game DB)
- GET /metrics     -> Prometheus exposition

The ``/api/**`` routers live in `accounts_api`, `characters_api` and
`server_stats` and are included explicitly below.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from . import accounts_api, characters_api, errors, metrics, passwords, server_stats
from .accounts import AccountsRepository
from .characters import CharactersRepository
from .db import Database
from .logging_config import configure_logging
from .models import GameBase, LoginBase
from .schemas import HealthcheckOut
from .security import ApiKeyMiddleware
from .settings import settings

configure_logging()
log = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build both database handles, optionally wait/create schema, dispose on exit."""
    passwords.ensure_supported(settings.DEFAULT_PASSWORD_HASH)
    login_db = Database(settings.LOGIN_DATABASE_URL, "login")
    game_db = Database(settings.GAME_DATABASE_URL, "game")
    try:
        if settings.DB_WAIT_FOR_DB:
            # Let startup fail so the supervisor restarts us
            await login_db.wait_until_ready()
            await game_db.wait_until_ready()

        if settings.DB_CREATE_SCHEMA:
            await login_db.create_all(LoginBase.metadata)
            await game_db.create_all(GameBase.metadata)

        app.state.login_db = login_db
        app.state.game_db = game_db
        app.state.accounts = AccountsRepository(login_db)
        app.state.characters = CharactersRepository(game_db)

        if settings.API_KEY_ENABLED and not settings.API_KEY:
            log.warning("startup.api_key_missing all /api requests will be rejected")
        log.info(
            "startup.complete api_key_enabled=%s header=%s max_page_limit=%d",
            settings.API_KEY_ENABLED,
            settings.API_KEY_HEADER,
            settings.MAX_PAGE_LIMIT,
        )
        yield
    finally:
        await login_db.dispose()
        await game_db.dispose()
        log.info("shutdown.complete")


# ---------------------------------------------------------------------
# App
# ---------------------------------------------------------------------

app = FastAPI(
    title="Game Admin Gateway",
    version="1.0.0",
    description="Administrative REST API over the login and game databases.",
    lifespan=lifespan,
)

errors.install(app)
app.add_middleware(ApiKeyMiddleware)
# installed after the API-key guard so rejected requests are still counted
metrics.install(app)

app.include_router(accounts_api.router)
app.include_router(characters_api.router)
app.include_router(server_stats.router)


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root(_request: Request):
    """Redirect the root path to the interactive API docs (/docs)."""
    return RedirectResponse(url=app.docs_url or "/docs", status_code=307)


@app.get("/healthz", include_in_schema=False)
async def healthz():
    """Lightweight, in-process health endpoint.

    Always returns 200 if the app can serve requests.
    Safe for liveness probes without hitting either database.
    """
    return {"status": "ok"}


@app.get("/healthcheck", response_model=HealthcheckOut)
async def healthcheck(request: Request):
    """Deep health check: ping the login and game databases."""
    login_ok = await request.app.state.login_db.ping()
    game_ok = await request.app.state.game_db.ping()
    metrics.observe_db("login", login_ok)
    metrics.observe_db("game", game_ok)

    status = "ok" if (login_ok and game_ok) else "degraded"
    log.info(
        "route.healthcheck status=%s login_db_ok=%s game_db_ok=%s",
        status,
        login_ok,
        game_ok,
    )
    return {"status": status, "login_db_ok": login_ok, "game_db_ok": game_ok}
