"""
auth/mail.py -- Outbound verification mail via the Resend HTTP API.

One message type: the email-verification link. The link points at the
front-end (first CORS origin), which posts the token back to
POST /v1/auth/verify-email.

Any failure -- missing configuration, network error, non-2xx response --
raises MailDeliveryError. The lifecycle does not retry and does not roll back
the user row it created before mailing.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import requests

from auth.exceptions import MailDeliveryError

logger = logging.getLogger("authgate.auth.mail")

RESEND_API = "https://api.resend.com/emails"
_TIMEOUT_SECONDS = 15


class ResendMailer:
    """Sends verification links through Resend.

    A requests.Session is kept for connection pooling; tests pass their own
    (usually a MagicMock) through the session argument.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        frontend_origin: str,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._frontend_origin = frontend_origin.rstrip("/")
        self._session = session or requests.Session()

    def verification_link(self, token: str) -> str:
        return f"{self._frontend_origin}/auth/verify-email?{urlencode({'token': token})}"

    def send_verification_link(self, email: str, token: str) -> None:
        """Mail a verification link for token to email. Raises MailDeliveryError."""
        if not self._api_key or not self._sender:
            logger.error("Verification mail not sent: RESEND_API_KEY or RESEND_MAIL_ID is not configured")
            raise MailDeliveryError()

        link = self.verification_link(token)
        payload = {
            "from": self._sender,
            "to": [email],
            "subject": "Verify your email",
            "html": f'<a href="{link}">Click here to verify your email</a>',
        }
        try:
            resp = self._session.post(
                RESEND_API,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"},
                timeout=_TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Resend verification mail to %s failed: %s", email, e)
            raise MailDeliveryError() from e
        logger.info("Verification mail sent to %s", email)
