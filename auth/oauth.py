"""
auth/oauth.py -- Authlib OAuth client registry and provider profile fetching.

Providers are a closed table (PROVIDERS) keyed by the name used in the URL
(/v1/auth/{provider}, /v1/auth/callback/{provider}). Each entry holds the
provider's endpoints, scope, and a function that normalizes its profile
payload into OAuthProfile. Adding a provider means adding a table entry --
the fetcher and routes have no per-provider branches.

Only providers with both client ID and secret configured get registered with
Authlib; an unregistered provider is rejected with OAuthProfileError.

Flow:
  1. authorization_url() builds the provider consent URL for the redirect route.
  2. fetch_profile() exchanges the ?code= for a provider access token, then
     fetches the profile. GitHub omits the email when the user keeps it
     private; a second call to /user/emails picks the entry flagged primary.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError

from auth.exceptions import OAuthProfileError
from auth.models import OAuthProfile
from core.config import Settings

logger = logging.getLogger("authgate.auth.oauth")


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_url: str
    access_token_url: str
    userinfo_url: str
    scope: str
    normalize: Callable[[dict], OAuthProfile]
    # Secondary lookup used when the profile carries no email.
    emails_url: str | None = None


def _normalize_google(profile: dict) -> OAuthProfile:
    return OAuthProfile(
        id=str(profile["id"]),
        email=profile.get("email"),
        name=profile.get("name"),
        picture=profile.get("picture"),
    )


def _normalize_github(profile: dict) -> OAuthProfile:
    return OAuthProfile(
        id=str(profile["id"]),
        email=profile.get("email"),
        name=profile.get("name"),
        picture=profile.get("avatar_url"),
    )


PROVIDERS: dict[str, OAuthProvider] = {
    "google": OAuthProvider(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        access_token_url="https://oauth2.googleapis.com/token",  # noqa: S106 -- URL, not a password
        userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        scope="https://www.googleapis.com/auth/userinfo.profile https://www.googleapis.com/auth/userinfo.email",
        normalize=_normalize_google,
    ),
    "github": OAuthProvider(
        name="github",
        authorize_url="https://github.com/login/oauth/authorize",
        access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        userinfo_url="https://api.github.com/user",
        scope="read:user user:email",
        normalize=_normalize_github,
        emails_url="https://api.github.com/user/emails",
    ),
}


def _credentials(settings: Settings, provider: str) -> tuple[str, str]:
    return (
        getattr(settings, f"{provider}_client_id", ""),
        getattr(settings, f"{provider}_client_secret", ""),
    )


def build_oauth_registry(settings: Settings) -> OAuth:
    """Register every provider in PROVIDERS whose credentials are configured."""
    registry = OAuth()
    for provider in PROVIDERS.values():
        client_id, client_secret = _credentials(settings, provider.name)
        if not (client_id and client_secret):
            continue
        registry.register(
            name=provider.name,
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=provider.authorize_url,
            access_token_url=provider.access_token_url,
            client_kwargs={"scope": provider.scope},
        )
        logger.info("%s OAuth provider registered", provider.name)
    return registry


class OAuthProfileFetcher:
    """Exchanges authorization codes and returns normalized provider profiles."""

    def __init__(self, registry: OAuth, providers: dict[str, OAuthProvider] | None = None) -> None:
        self._registry = registry
        self._providers = providers if providers is not None else PROVIDERS

    def enabled_providers(self) -> list[str]:
        return [name for name in self._providers if self._registry.create_client(name) is not None]

    def _resolve(self, provider: str):
        entry = self._providers.get(provider)
        client = self._registry.create_client(provider) if entry is not None else None
        if client is None:
            raise OAuthProfileError(f"Unsupported OAuth provider: {provider}")
        return entry, client

    async def authorization_url(self, provider: str, redirect_uri: str) -> str:
        """Return the provider consent URL that the browser is redirected to."""
        _entry, client = self._resolve(provider)
        rv = await client.create_authorization_url(redirect_uri)
        return rv["url"]

    async def fetch_profile(self, provider: str, code: str, redirect_uri: str) -> OAuthProfile:
        """Exchange code for a token and return the provider profile.

        Raises OAuthProfileError if the provider is not configured, any
        provider call fails, or no email address can be obtained.
        """
        entry, client = self._resolve(provider)
        try:
            token = await client.fetch_access_token(redirect_uri=redirect_uri, code=code)
            resp = await client.get(entry.userinfo_url, token=token)
            resp.raise_for_status()
            raw = resp.json()
            if not isinstance(raw, dict):
                raise ValueError("profile response is not a JSON object")
            if not raw.get("email") and entry.emails_url:
                raw["email"] = await _primary_email(client, entry.emails_url, token)
            profile = entry.normalize(raw)
        except (OAuthError, httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            # ValueError covers non-JSON bodies; KeyError a profile without "id".
            logger.warning("OAuth exchange with %s failed: %r", provider, e)
            raise OAuthProfileError() from e

        if not profile.email:
            logger.warning("OAuth login rejected: %s returned no email address", provider)
            raise OAuthProfileError("OAuth provider did not return an email address")
        return profile


async def _primary_email(client, emails_url: str, token: dict) -> str | None:
    """Return the address flagged primary in a GitHub-style email list."""
    resp = await client.get(emails_url, token=token)
    resp.raise_for_status()
    emails = resp.json()
    if not isinstance(emails, list):
        return None
    for entry in emails:
        if isinstance(entry, dict) and entry.get("primary"):
            return entry.get("email")
    return None
