"""
auth/sessions.py -- Session lifecycle: sign-up, verification, sign-in, OAuth, refresh.

Per-user state machine:

    UNREGISTERED --sign_up--> PENDING_VERIFICATION --verify_email--> VERIFIED
    UNREGISTERED --sign_in_with_oauth------------------------------> VERIFIED

OAuth providers are trusted to have verified the address already, so OAuth
sign-up skips PENDING_VERIFICATION.

SessionManager holds no per-request state. Everything it needs (store, token
issuer, mailer, OAuth fetcher, bcrypt cost) is injected at construction in
the application lifespan. It raises AuthError subclasses and returns domain
objects; cookies and status codes belong to the API layer.

Behaviors kept on purpose:
  - sign_up treats ANY existing row for the email as a conflict, including an
    abandoned unverified one. Re-signing up with that address is blocked.
  - A mail failure after sign_up leaves the new user row in place.
  - sign_in for an unverified account re-sends the verification link instead
    of authenticating, whatever password was supplied.

Timing equalization: sign_in runs one bcrypt comparison even when no user
matches or the user has no password, so response time does not reveal
whether an email is registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastapi.concurrency import run_in_threadpool

from auth.exceptions import (
    AlreadyVerifiedError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    OAuthProfileError,
    TokenIssueError,
    UnauthorizedError,
    ValidationError,
)
from auth.models import OAuthProfile, SignInResult, TokenPair, User
from auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from auth.tokens import TokenIssuer, TokenKind
from auth.validation import email_error, name_error, password_error

if TYPE_CHECKING:
    from auth.mail import ResendMailer
    from auth.oauth import OAuthProfileFetcher
    from auth.store import IdentityStore

logger = logging.getLogger("authgate.auth.sessions")

SIGNED_IN = "User logged in successfully"
VERIFICATION_SENT = "Verification link sent to email"

_DUMMY_PASSWORD = "authgate_timing_dummy"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionManager:
    """Orchestrates the credential and token lifecycle.

    Usage:
        sessions = SessionManager(store, TokenIssuer(secret), mailer, oauth=fetcher)
        sessions.sign_up("Ann", "a@x.com", "secret1")
        tokens = sessions.verify_email(token_from_link)
    """

    def __init__(
        self,
        store: IdentityStore,
        issuer: TokenIssuer,
        mailer: ResendMailer,
        oauth: OAuthProfileFetcher | None = None,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._mailer = mailer
        self._oauth = oauth
        self._bcrypt_rounds = bcrypt_rounds
        # Hashed up front at the real cost, so even the first miss takes as
        # long as a wrong password.
        self._dummy_hash = hash_password(_DUMMY_PASSWORD, bcrypt_rounds)

    # ------------------------------------------------------------------
    # Sign-up and verification
    # ------------------------------------------------------------------

    def sign_up(self, name: str, email: str, password: str) -> User:
        """Create a pending user and mail a verification link.

        Raises ValidationError, ConflictError, MailDeliveryError or TokenIssueError.
        """
        for error in (name_error(name), email_error(email), password_error(password)):
            if error:
                raise ValidationError(error)

        if self._store.get_by_email(email) is not None:
            raise ConflictError()

        user = User(
            email=email,
            name=name,
            password=hash_password(password, self._bcrypt_rounds),
            meta_data={},
        )
        user.id = self._store.create_user(user)
        logger.info("User %s signed up; verification pending", user.id)

        self.send_verification_link(email)
        return user

    def send_verification_link(self, email: str) -> None:
        """Issue an EMAIL_VERIFICATION token for email and mail the link."""
        token = self._issuer.issue(TokenKind.EMAIL_VERIFICATION, {"email": email})
        if token is None:
            raise TokenIssueError("Error generating verification token")
        self._mailer.send_verification_link(email, token)

    def verify_email(self, token: str | None) -> TokenPair:
        """Mark the token's email as verified and start a session.

        Verifying twice is an error, not a no-op.
        """
        claims = self._issuer.validate(token)
        email = claims.get("email") if claims else None
        if not email:
            raise InvalidTokenError()

        user = self._store.get_by_email(email)
        if user is None:
            raise InvalidTokenError()
        if user.is_verified:
            raise AlreadyVerifiedError()

        self._store.update_user(user.id, email_verified=_now_iso())
        logger.info("User %s verified email", user.id)
        return self.issue_tokens(user.id)

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> SignInResult:
        """Password sign-in.

        InvalidCredentialsError carries one message for every cause: unknown
        email, OAuth-only account, wrong password.
        """
        user = self._store.get_by_email(email)
        if user is None:
            verify_password(password, self._dummy_hash)
            raise InvalidCredentialsError()

        if not user.is_verified:
            self.send_verification_link(user.email)
            logger.info("Sign-in for unverified user %s; verification link re-sent", user.id)
            return SignInResult(message=VERIFICATION_SENT)

        if user.password is None:
            verify_password(password, self._dummy_hash)
            raise InvalidCredentialsError()
        if not verify_password(password, user.password):
            raise InvalidCredentialsError()

        logger.info("User %s signed in", user.id)
        return SignInResult(message=SIGNED_IN, tokens=self._issue_pair(user))

    async def sign_in_with_oauth(self, provider: str, code: str, redirect_uri: str) -> TokenPair:
        """Exchange an authorization code, link or create the user, start a session."""
        if self._oauth is None:
            raise OAuthProfileError("OAuth is not configured")
        profile = await self._oauth.fetch_profile(provider, code, redirect_uri)
        # Store calls block; keep them off the event loop.
        user = await run_in_threadpool(self.link_oauth_profile, provider, profile)
        return self._issue_pair(user)

    def link_oauth_profile(self, provider: str, profile: OAuthProfile) -> User:
        """Attach a provider identity to the user owning profile.email.

        Existing user: store the provider id under "<provider>Id" and fill in
        email_verified, image and name only where they are still unset.
        No user: create one, already verified, with no password.
        """
        if not profile.email:
            raise OAuthProfileError("OAuth provider did not return an email address")
        key = f"{provider}Id"

        existing = self._store.get_by_email(profile.email)
        if existing is not None:
            updates: dict = {"meta_data": {**existing.meta_data, key: profile.id}}
            if not existing.email_verified:
                updates["email_verified"] = _now_iso()
            if not existing.image and profile.picture:
                updates["image"] = profile.picture
            if not existing.name and profile.name:
                updates["name"] = profile.name
            self._store.update_user(existing.id, **updates)
            logger.info("Linked %s identity to user %s", provider, existing.id)
            return self._store.get_by_id(existing.id)

        user = User(
            email=profile.email,
            name=profile.name,
            image=profile.picture,
            email_verified=_now_iso(),
            meta_data={key: profile.id},
        )
        user.id = self._store.create_user(user)
        logger.info("Created user %s from %s sign-in", user.id, provider)
        return self._store.get_by_id(user.id)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Exchange a refresh token for a new pair built from the current user record."""
        claims = self._issuer.validate(refresh_token)
        if not claims or not claims.get("id"):
            raise UnauthorizedError()
        return self.issue_tokens(claims["id"])

    def issue_tokens(self, user_id: str) -> TokenPair:
        user = self._store.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError()
        return self._issue_pair(user)

    def authenticate(self, access_token: str | None) -> User:
        """Resolve an access token to the live user record.

        The token must carry both id and email. The user is re-read from the
        store so a deleted account stops authenticating immediately.
        """
        claims = self._issuer.validate(access_token)
        if not claims or not claims.get("id") or not claims.get("email"):
            raise UnauthorizedError()
        user = self._store.get_by_id(claims["id"])
        if user is None:
            raise UnauthorizedError()
        return user

    def _issue_pair(self, user: User) -> TokenPair:
        pair = self._issuer.issue_pair(user)
        if pair is None:
            raise TokenIssueError()
        return pair
