"""
auth/exceptions.py -- Typed error taxonomy for the auth core.

Every failure the session lifecycle can report is an AuthError subclass that
carries its HTTP status and whether it is the caller's fault (client error,
tell the user) or an upstream/operational failure (log and alert). The API
layer registers one exception handler for AuthError and turns it into the
{status, message} envelope -- route handlers never build error responses.

InvalidCredentialsError always carries the same message so a response never
reveals whether the email exists.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every expected auth failure."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication error"
    is_client_error: bool = True

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    code = "validation_error"
    default_message = "Invalid request"


class ConflictError(AuthError):
    code = "conflict"
    default_message = "Email already in use"


class InvalidCredentialsError(AuthError):
    code = "bad_credentials"
    default_message = "Invalid email or password"


class InvalidTokenError(AuthError):
    """Undecodable, expired or unresolvable token presented in a request body."""

    code = "invalid_token"
    default_message = "Invalid token"


class UnauthorizedError(AuthError):
    """Missing, expired, malformed or stale credential on a protected path."""

    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class AlreadyVerifiedError(AuthError):
    code = "already_verified"
    default_message = "Email already verified"


class OAuthProfileError(AuthError):
    status_code = 400
    code = "oauth_failed"
    default_message = "OAuth authentication failed"
    is_client_error = False


class MailDeliveryError(AuthError):
    status_code = 500
    code = "mail_failed"
    default_message = "Error sending email verification link"
    is_client_error = False


class TokenIssueError(AuthError):
    """Signing failed (e.g. missing secret). Never the caller's fault."""

    status_code = 500
    code = "token_issue_failed"
    default_message = "Error generating tokens"
    is_client_error = False
