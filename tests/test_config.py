"""
tests/test_config.py -- Tests for the Settings startup policy in core/config.py.

Settings is instantiated directly with keyword arguments, which take
precedence over the DEBUG / BCRYPT_ROUNDS values conftest.py puts in the
environment.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import MIN_PRODUCTION_BCRYPT_ROUNDS, Settings

GOOD_KEY = "k" * 48


class TestSecretKey:
    def test_debug_generates_key(self) -> None:
        settings = Settings(debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_production_requires_key(self) -> None:
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(debug=False, secret_key="", bcrypt_rounds=MIN_PRODUCTION_BCRYPT_ROUNDS)

    def test_short_key_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(debug=True, secret_key="short")


class TestBcryptRounds:
    def test_low_rounds_allowed_in_debug(self) -> None:
        assert Settings(debug=True, secret_key=GOOD_KEY, bcrypt_rounds=4).bcrypt_rounds == 4

    def test_low_rounds_rejected_in_production(self) -> None:
        with pytest.raises(ValidationError, match="BCRYPT_ROUNDS below"):
            Settings(debug=False, secret_key=GOOD_KEY, bcrypt_rounds=10)

    def test_production_floor_accepted(self) -> None:
        settings = Settings(debug=False, secret_key=GOOD_KEY, bcrypt_rounds=MIN_PRODUCTION_BCRYPT_ROUNDS)
        assert settings.bcrypt_rounds == 15

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_out_of_range_rejected(self, rounds) -> None:
        with pytest.raises(ValidationError, match="between 4 and 31"):
            Settings(debug=True, secret_key=GOOD_KEY, bcrypt_rounds=rounds)


class TestOrigins:
    def test_origin_list_and_frontend(self) -> None:
        settings = Settings(
            debug=True,
            secret_key=GOOD_KEY,
            cors_origins="https://app.example.com, https://admin.example.com ,",
        )
        assert settings.cors_origin_list == ["https://app.example.com", "https://admin.example.com"]
        assert settings.frontend_origin == "https://app.example.com"

    def test_empty_origins(self) -> None:
        settings = Settings(debug=True, secret_key=GOOD_KEY, cors_origins="")
        assert settings.cors_origin_list == []
        assert settings.frontend_origin == ""
