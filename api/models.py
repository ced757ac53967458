"""
API request and response models for authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field rules live in auth/validation.py and are raised here as
PydanticCustomError so the 400 response carries the rule's own message
("Name must be at least 3 characters long") rather than Pydantic's default.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_core import PydanticCustomError

from auth.models import User
from auth.validation import email_error, name_error, password_error


def _check(rule, value):
    message = rule(value)
    if message:
        raise PydanticCustomError("invalid_field", message)
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /v1/auth/sign-up."""

    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check(name_error, value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check(email_error, value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check(password_error, value)


class SignInRequest(BaseModel):
    """Request body for POST /v1/auth/sign-in."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check(email_error, value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check(password_error, value)


class VerifyEmailRequest(BaseModel):
    """Request body for POST /v1/auth/verify-email.

    token is optional at the schema level so a missing token is reported as
    "Invalid token" by the lifecycle, the same as a bad one.
    """

    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel):
    """The {status, message} envelope used for every JSON response."""

    model_config = ConfigDict(frozen=True)

    status: int
    message: str


class MeResponse(BaseModel):
    """Response for GET /v1/auth/me. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    emailVerified: Optional[str] = None
    metaData: dict = {}

    @classmethod
    def from_user(cls, user: User) -> "MeResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            image=user.image,
            emailVerified=user.email_verified,
            metaData=user.meta_data,
        )


class ProvidersResponse(BaseModel):
    """Response for GET /v1/auth/providers."""

    model_config = ConfigDict(frozen=True)

    providers: list[str]


class HealthResponse(BaseModel):
    """Response for GET /v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
