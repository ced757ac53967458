"""
auth/tokens.py -- Signed, expiring bearer tokens.

Security design decisions:
  JWT: python-jose with HS256. Every token is signed with the injected secret
       key and carries an `exp` claim derived from its kind:
         ACCESS_TOKEN        15 minutes   {id, email, name, image, emailVerified, metaData}
         REFRESH_TOKEN       7 days       {id}
         EMAIL_VERIFICATION  5 minutes    {email}
       Tokens are stateless: there is no server-side store and no revocation.
       A token is good until its signature or expiry check fails.

  Failures are flattened: issue() returns None if signing fails and
       validate() returns None for an expired, forged or malformed token.
       Callers cannot tell why a token was rejected.

  The access-token payload is a snapshot of the user at issuance. It is only
       refreshed by a new sign-in or a refresh-token exchange.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import jwt
from jose.exceptions import JOSEError

from auth.models import TokenPair, User

logger = logging.getLogger("authgate.auth.tokens")

_ALGORITHM = "HS256"


class TokenKind(str, Enum):
    ACCESS_TOKEN = "ACCESS_TOKEN"
    REFRESH_TOKEN = "REFRESH_TOKEN"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"


TOKEN_LIFETIMES: dict[TokenKind, timedelta] = {
    TokenKind.ACCESS_TOKEN: timedelta(minutes=15),
    TokenKind.REFRESH_TOKEN: timedelta(days=7),
    TokenKind.EMAIL_VERIFICATION: timedelta(minutes=5),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def access_claims(user: User) -> dict:
    """Denormalized profile snapshot carried by an access token."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "image": user.image,
        "emailVerified": user.email_verified,
        "metaData": dict(user.meta_data or {}),
    }


class TokenIssuer:
    """Issues and validates HS256 tokens for the three token kinds.

    Usage:
        issuer = TokenIssuer(settings.secret_key)
        token = issuer.issue(TokenKind.REFRESH_TOKEN, {"id": user.id})
        claims = issuer.validate(token)   # dict, or None if rejected

    clock returns the current aware UTC datetime. Tests pass a clock that
    runs in the past to mint tokens that are already expired.
    """

    def __init__(self, secret_key: str | None, clock: Callable[[], datetime] | None = None) -> None:
        self._secret_key = secret_key
        self._clock = clock or _utcnow

    def expiry_for(self, kind: TokenKind) -> datetime:
        """Absolute expiry of a token of this kind issued now."""
        return self._clock() + TOKEN_LIFETIMES[kind]

    def issue(self, kind: TokenKind, payload: dict) -> str | None:
        """Sign payload with an expiry set by kind. Returns None on failure."""
        if not self._secret_key:
            logger.error("Cannot sign %s token: no secret key configured", kind.value)
            return None
        now = self._clock()
        claims = {**payload, "iat": now, "exp": now + TOKEN_LIFETIMES[kind]}
        try:
            return jwt.encode(claims, self._secret_key, algorithm=_ALGORITHM)
        except (JOSEError, TypeError, ValueError):
            logger.exception("Signing %s token failed", kind.value)
            return None

    def validate(self, token: str | None) -> dict | None:
        """Verify signature and expiry. Returns the claims or None on any failure."""
        if not token or not self._secret_key:
            return None
        try:
            return jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JOSEError:
            return None

    def issue_pair(self, user: User) -> TokenPair | None:
        """Issue an access/refresh pair for user. Returns None if either signing fails."""
        access_expires = self.expiry_for(TokenKind.ACCESS_TOKEN)
        refresh_expires = self.expiry_for(TokenKind.REFRESH_TOKEN)
        refresh_token = self.issue(TokenKind.REFRESH_TOKEN, {"id": user.id})
        access_token = self.issue(TokenKind.ACCESS_TOKEN, access_claims(user))
        if refresh_token is None or access_token is None:
            return None
        return TokenPair(
            access_token=access_token,
            access_token_expires=access_expires,
            refresh_token=refresh_token,
            refresh_token_expires=refresh_expires,
        )
