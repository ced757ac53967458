"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store owns
persistence, tokens.py owns the claim shapes, sessions.py does the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """A registered identity.

    password is the bcrypt hash, None for OAuth-only users.
    email_verified is an ISO 8601 UTC timestamp; None means the account is
    still pending verification. Once set it is never cleared.
    meta_data maps "<provider>Id" (e.g. "googleId") to the provider account id.
    """

    email: str
    id: str | None = None
    name: str | None = None
    password: str | None = None
    image: str | None = None
    email_verified: str | None = None
    meta_data: dict = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_verified(self) -> bool:
        return self.email_verified is not None


@dataclass(frozen=True)
class OAuthProfile:
    """Provider profile normalized to one shape regardless of provider."""

    id: str
    email: str | None
    name: str | None = None
    picture: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """An access/refresh pair plus the absolute expiries used for cookies."""

    access_token: str
    access_token_expires: datetime
    refresh_token: str
    refresh_token_expires: datetime


@dataclass(frozen=True)
class SignInResult:
    """Outcome of a password sign-in.

    tokens is None when the account is unverified and a fresh verification
    link was mailed instead of authenticating.
    """

    message: str
    tokens: TokenPair | None = None
