"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token is looked for in priority order:
  1. "accessToken" cookie -- set by sign-in, verify-email, refresh and OAuth.
  2. Authorization: Bearer <token> header -- API clients.

The cookie wins when both are present. Whichever is found is handed to
SessionManager.authenticate(), which validates it, requires id and email
claims, and re-reads the user from the store.

get_current_user() raises UnauthorizedError, which the API exception handler
turns into a 401 {status, message} response.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.cookies import ACCESS_COOKIE
from auth.models import User
from auth.sessions import SessionManager


def extract_access_token(request: Request) -> str | None:
    """Return the access token from the cookie, else the Bearer header."""
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip() or None
    return token


def get_current_user(request: Request) -> User:
    """Require authentication and attach the live user to request.state.

    Use as a FastAPI dependency:
        @router.post("/auth/sign-out")
        def route(user: User = Depends(get_current_user)): ...
    """
    sessions: SessionManager = request.app.state.sessions
    user = sessions.authenticate(extract_access_token(request))
    request.state.user = user
    return user
