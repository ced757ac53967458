"""
auth/validation.py -- Sign-up / sign-in field rules.

Each rule returns the user-facing message for a bad value, or None if the
value is acceptable. api/models.py runs them inside Pydantic validators so a
bad request body fails with a 400 before reaching the lifecycle;
SessionManager runs them again so the core never trusts its caller.

Email addresses are checked for shape only: no DNS lookup, and special-use
domains such as .local are accepted. They are never normalized; the address
is stored exactly as submitted.
"""

from __future__ import annotations

from email_validator import EmailNotValidError, validate_email

MIN_NAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def name_error(name: str | None) -> str | None:
    if not name:
        return "Name is required"
    if len(name) < MIN_NAME_LENGTH:
        return f"Name must be at least {MIN_NAME_LENGTH} characters long"
    return None


def email_error(email: str | None) -> str | None:
    if not email:
        return "Email is required"
    try:
        validate_email(email, check_deliverability=False, globally_deliverable=False)
    except EmailNotValidError:
        return "Invalid email address"
    return None


def password_error(password: str | None) -> str | None:
    if not password:
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None
