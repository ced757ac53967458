"""
tests/test_oauth.py -- Unit tests for auth/oauth.py.

The Authlib registry is replaced by a MagicMock whose create_client() returns
a client with AsyncMock methods, so no request leaves the process. Only
build_oauth_registry() is tested against the real Authlib OAuth class.

Coverage:
  - registry registers only providers with both client ID and secret
  - profile normalization for Google and GitHub
  - GitHub private-email fallback picks the primary address
  - missing email, provider errors and unknown providers -> OAuthProfileError
  - non-JSON or malformed bodies and profiles without an id -> OAuthProfileError
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from authlib.integrations.starlette_client import OAuthError

from auth.exceptions import OAuthProfileError
from auth.oauth import OAuthProfileFetcher, build_oauth_registry
from core.config import Settings

REDIRECT = "http://localhost:8000/v1/auth/callback/github"


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def _client(*responses) -> MagicMock:
    client = MagicMock()
    client.create_authorization_url = AsyncMock(return_value={"url": "https://provider/authorize?x=1", "state": "s"})
    client.fetch_access_token = AsyncMock(return_value={"access_token": "at", "token_type": "bearer"})
    client.get = AsyncMock(side_effect=[_response(r) for r in responses])
    return client


def _not_json() -> MagicMock:
    resp = MagicMock()
    resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    return resp


def _fetcher(**clients) -> OAuthProfileFetcher:
    registry = MagicMock()
    registry.create_client.side_effect = lambda name: clients.get(name)
    return OAuthProfileFetcher(registry)


class TestRegistry:
    def test_only_configured_providers_registered(self) -> None:
        settings = Settings(
            debug=True,
            google_client_id="gid",
            google_client_secret="gsecret",
            github_client_id="ghid",
            github_client_secret="",
        )
        fetcher = OAuthProfileFetcher(build_oauth_registry(settings))
        assert fetcher.enabled_providers() == ["google"]

    def test_no_providers_configured(self) -> None:
        settings = Settings(
            debug=True,
            google_client_id="",
            google_client_secret="",
            github_client_id="",
            github_client_secret="",
        )
        assert OAuthProfileFetcher(build_oauth_registry(settings)).enabled_providers() == []


class TestAuthorizationUrl:
    def test_returns_provider_url(self) -> None:
        client = _client()
        url = asyncio.run(_fetcher(github=client).authorization_url("github", REDIRECT))
        assert url == "https://provider/authorize?x=1"
        client.create_authorization_url.assert_awaited_once_with(REDIRECT)

    def test_unknown_provider(self) -> None:
        with pytest.raises(OAuthProfileError) as exc_info:
            asyncio.run(_fetcher().authorization_url("myspace", REDIRECT))
        assert exc_info.value.message == "Unsupported OAuth provider: myspace"

    def test_known_but_unconfigured_provider(self) -> None:
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher().authorization_url("google", REDIRECT))


class TestFetchProfile:
    def test_google_profile(self) -> None:
        client = _client({"id": "1234", "email": "ann@x.com", "name": "Ann", "picture": "https://img/ann.png"})
        profile = asyncio.run(_fetcher(google=client).fetch_profile("google", "code-1", REDIRECT))

        assert profile.id == "1234"
        assert profile.email == "ann@x.com"
        assert profile.name == "Ann"
        assert profile.picture == "https://img/ann.png"
        client.fetch_access_token.assert_awaited_once_with(redirect_uri=REDIRECT, code="code-1")

    def test_github_profile_with_public_email(self) -> None:
        client = _client({"id": 42, "email": "ann@x.com", "name": "Ann", "avatar_url": "https://gh/ann.png"})
        profile = asyncio.run(_fetcher(github=client).fetch_profile("github", "code-1", REDIRECT))

        assert profile.id == "42"
        assert profile.picture == "https://gh/ann.png"
        assert client.get.await_count == 1

    def test_github_private_email_uses_primary(self) -> None:
        client = _client(
            {"id": 42, "email": None, "name": "Ann", "avatar_url": None},
            [
                {"email": "old@x.com", "primary": False, "verified": True},
                {"email": "ann@x.com", "primary": True, "verified": True},
            ],
        )
        profile = asyncio.run(_fetcher(github=client).fetch_profile("github", "code-1", REDIRECT))

        assert profile.email == "ann@x.com"
        assert client.get.await_args_list[1].args[0] == "https://api.github.com/user/emails"

    def test_github_without_primary_email_rejected(self) -> None:
        client = _client({"id": 42, "email": None}, [{"email": "old@x.com", "primary": False}])
        with pytest.raises(OAuthProfileError) as exc_info:
            asyncio.run(_fetcher(github=client).fetch_profile("github", "code-1", REDIRECT))
        assert exc_info.value.message == "OAuth provider did not return an email address"

    def test_google_without_email_rejected(self) -> None:
        client = _client({"id": "1234", "name": "Ann"})
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(google=client).fetch_profile("google", "code-1", REDIRECT))
        assert client.get.await_count == 1

    def test_code_exchange_failure(self) -> None:
        client = _client()
        client.fetch_access_token.side_effect = OAuthError(error="invalid_grant")
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(google=client).fetch_profile("google", "bad-code", REDIRECT))

    def test_profile_request_failure(self) -> None:
        client = _client()
        client.get.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(google=client).fetch_profile("google", "code-1", REDIRECT))


class TestMalformedProviderResponses:
    """Provider bodies that cannot be turned into a profile fail as OAuthProfileError, never a 500."""

    def test_profile_body_not_json(self) -> None:
        client = _client()
        client.get.side_effect = [_not_json()]
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(google=client).fetch_profile("google", "code-1", REDIRECT))

    def test_profile_body_not_an_object(self) -> None:
        client = _client(["ann@x.com"])
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(google=client).fetch_profile("google", "code-1", REDIRECT))

    @pytest.mark.parametrize("provider", ["google", "github"])
    def test_profile_without_id(self, provider) -> None:
        client = _client({"email": "ann@x.com", "name": "Ann"})
        with pytest.raises(OAuthProfileError) as exc_info:
            asyncio.run(_fetcher(**{provider: client}).fetch_profile(provider, "code-1", REDIRECT))
        assert exc_info.value.message == "OAuth authentication failed"

    def test_github_emails_body_not_json(self) -> None:
        client = _client()
        client.get.side_effect = [_response({"id": 42, "email": None}), _not_json()]
        with pytest.raises(OAuthProfileError):
            asyncio.run(_fetcher(github=client).fetch_profile("github", "code-1", REDIRECT))

    def test_github_emails_body_not_a_list(self) -> None:
        client = _client({"id": 42, "email": None}, {"message": "Requires authentication"})
        with pytest.raises(OAuthProfileError) as exc_info:
            asyncio.run(_fetcher(github=client).fetch_profile("github", "code-1", REDIRECT))
        assert exc_info.value.message == "OAuth provider did not return an email address"
