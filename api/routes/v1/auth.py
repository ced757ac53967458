"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes (mounted under /v1):
  POST /auth/sign-up               -- create pending user, mail verification link; 201
  POST /auth/sign-in               -- password sign-in; cookies, or re-sent verification link
  POST /auth/verify-email          -- consume verification token; cookies
  POST /auth/sign-out              -- clear cookies (requires auth)
  POST /auth/refresh-token         -- exchange refreshToken cookie for a new pair
  GET  /auth/me                    -- current user (requires auth)
  GET  /auth/providers             -- configured OAuth providers (public)
  GET  /auth/callback/{provider}   -- OAuth callback; redirect to front-end with cookies
  GET  /auth/{provider}            -- redirect to the provider consent page

Handlers are thin: they call SessionManager and translate its return value
into cookies and a {status, message} body. Every failure is an AuthError
raised by the lifecycle and rendered by the handler in api/main.py.

Store, bcrypt and mail calls are blocking, so those handlers are plain `def`
and run in FastAPI's threadpool. The OAuth handlers are `async` because
Authlib's client is.

Cache-Control: no-store on every response that sets session cookies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.models import ApiResponse, MeResponse, ProvidersResponse, SignInRequest, SignUpRequest, VerifyEmailRequest
from auth.cookies import REFRESH_COOKIE, clear_session_cookies, set_session_cookies
from auth.dependencies import get_current_user
from auth.exceptions import ValidationError
from auth.models import TokenPair, User
from auth.sessions import SIGNED_IN, SessionManager

# Auth policy:
# - POST /v1/auth/sign-up, sign-in, verify-email, refresh-token: public
# - GET  /v1/auth/providers, /v1/auth/{provider}, /v1/auth/callback/{provider}: public
# - POST /v1/auth/sign-out:  requires auth (get_current_user)
# - GET  /v1/auth/me:        requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def _message(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ApiResponse(status=status, message=message).model_dump())


def _with_session(request: Request, resp, tokens: TokenPair):
    set_session_cookies(resp, tokens, secure=request.app.state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _redirect_uri(request: Request, provider: str) -> str:
    """Absolute callback URL registered with the provider.

    Built from APP_URL rather than the request's Host so it matches the
    provider console configuration behind a reverse proxy.
    """
    base = request.app.state.settings.app_url.rstrip("/")
    return f"{base}{request.app.url_path_for('oauth_callback', provider=provider)}"


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


@router.post("/auth/sign-up", response_model=ApiResponse, status_code=201)
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Register a new account. The account cannot sign in until verified."""
    _sessions(request).sign_up(body.name, body.email, body.password)
    return _message(201, "Check your email for verification link")


@router.post("/auth/sign-in", response_model=ApiResponse)
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Password sign-in.

    An unverified account gets a fresh verification link and a 200 with no
    cookies, whether or not the password was right.
    """
    result = _sessions(request).sign_in(body.email, body.password)
    resp = _message(200, result.message)
    if result.tokens is None:
        return resp
    return _with_session(request, resp, result.tokens)


@router.post("/auth/verify-email", response_model=ApiResponse)
def verify_email(request: Request, body: VerifyEmailRequest) -> JSONResponse:
    """Consume a verification token. Success signs the user in."""
    tokens = _sessions(request).verify_email(body.token)
    return _with_session(request, _message(200, SIGNED_IN), tokens)


@router.post("/auth/sign-out", response_model=ApiResponse)
def sign_out(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Clear both cookies. Already-issued tokens stay valid until they expire."""
    resp = _message(200, "User logged out")
    clear_session_cookies(resp)
    return resp


@router.post("/auth/refresh-token", response_model=ApiResponse)
def refresh_token(request: Request) -> JSONResponse:
    """Issue a new pair from the refreshToken cookie and the current user record."""
    tokens = _sessions(request).refresh(request.cookies.get(REFRESH_COOKIE))
    return _with_session(request, _message(200, "Token refreshed successfully"), tokens)


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the live record of the authenticated user."""
    return MeResponse.from_user(current_user)


# ---------------------------------------------------------------------------
# OAuth
#
# Registration order: /auth/me and /auth/providers must come before
# /auth/{provider} or FastAPI captures "me" / "providers" as a provider name.
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=ProvidersResponse)
def list_providers(request: Request) -> ProvidersResponse:
    """Public: the front-end uses this to decide which provider buttons to render."""
    return ProvidersResponse(providers=request.app.state.oauth.enabled_providers())


@router.get("/auth/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str, code: str | None = None) -> RedirectResponse:
    """Exchange ?code=, link or create the user, redirect to the front-end with cookies."""
    if not code:
        raise ValidationError("Missing authorization code")
    tokens = await _sessions(request).sign_in_with_oauth(provider, code, _redirect_uri(request, provider))
    resp = RedirectResponse(request.app.state.settings.frontend_origin or "/", status_code=302)
    return _with_session(request, resp, tokens)


@router.get("/auth/{provider}")
async def oauth_redirect(request: Request, provider: str) -> RedirectResponse:
    """Redirect the browser to the provider's consent page.

    Unknown or unconfigured providers fail with 400 before any redirect.
    """
    url = await request.app.state.oauth.authorization_url(provider, _redirect_uri(request, provider))
    return RedirectResponse(url, status_code=302)
