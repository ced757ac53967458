"""
auth/cookies.py -- Session cookie helpers.

Two cookies carry a session:
  accessToken   15 minutes   read by get_current_user() before the Bearer header
  refreshToken  7 days       read only by POST /v1/auth/refresh-token

httponly=True: JS cannot read the cookies (XSS mitigation).
samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
expires: the absolute expiry of the token inside, so cookie and token die together.
"""

from __future__ import annotations

from auth.models import TokenPair

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def set_session_cookies(response, tokens: TokenPair, secure: bool = False) -> None:
    """Write both tokens as httpOnly cookies on a FastAPI/Starlette response."""
    response.set_cookie(
        REFRESH_COOKIE,
        value=tokens.refresh_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        expires=tokens.refresh_token_expires,
    )
    response.set_cookie(
        ACCESS_COOKIE,
        value=tokens.access_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        expires=tokens.access_token_expires,
    )


def clear_session_cookies(response) -> None:
    response.delete_cookie(REFRESH_COOKIE)
    response.delete_cookie(ACCESS_COOKIE)
