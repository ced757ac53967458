"""
api/main.py -- FastAPI application entry point for authgate.

Run with:      uvicorn asgi:app --reload

Middleware stack:
  1. CORSMiddleware  -- allows the configured front-end origins, with credentials
                        so the browser sends the session cookies
  2. log_requests    -- one log line per request with status and latency

Lifespan builds every long-lived collaborator once (store, token issuer,
mailer, OAuth registry, session manager) and stores it on app.state. Nothing
else in the process reads configuration or holds shared mutable state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ApiResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.exceptions import AuthError
from auth.mail import ResendMailer
from auth.oauth import OAuthProfileFetcher, build_oauth_registry
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Construct the auth collaborators on startup and release them on shutdown.

    Order matters: the session manager is built last because it is handed
    every other collaborator.
    """
    settings = get_settings()
    logger.info("authgate API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.oauth = OAuthProfileFetcher(build_oauth_registry(settings))
    app.state.sessions = SessionManager(
        store=app.state.user_store,
        issuer=TokenIssuer(settings.secret_key),
        mailer=ResendMailer(settings.resend_api_key, settings.resend_mail_id, settings.frontend_origin),
        oauth=app.state.oauth,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    logger.info("Auth initialized (oauth providers: %s)", ", ".join(app.state.oauth.enabled_providers()) or "none")

    yield

    app.state.user_store.close()
    logger.info("authgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authgate API",
    description="Email/password and OAuth sign-in with cookie-borne access and refresh tokens.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {status, message} envelope.
# ---------------------------------------------------------------------------


def _envelope(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ApiResponse(status=status, message=message).model_dump())


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render lifecycle failures. Upstream/operational ones are also logged for alerting."""
    if not exc.is_client_error:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the first failing rule's message."""
    return _envelope(400, _first_error_message(exc.errors()))


def _first_error_message(errors) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = str(first.get("loc", ("",))[-1])
    if first.get("type") == "missing":
        return f"{field.capitalize()} is required"
    if first.get("type") == "invalid_field":
        return first.get("msg", "Invalid request")
    # Undecodable JSON reports the byte offset as the last loc element.
    if first.get("type") == "json_invalid":
        return "Invalid request body"
    if first.get("loc", ("",))[0] == "body" and field == "body":
        return "Invalid request body"
    return f"Invalid {field}"


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception message is returned to the client. This leaks internals
    and is kept only for parity with existing API consumers; the traceback
    goes to the log.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, str(exc) or "Internal server error")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    try:
        request.app.state.user_store.count_users()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database query failed")
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
