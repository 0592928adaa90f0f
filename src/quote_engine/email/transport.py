"""Mail transports used to deliver quote emails.

``MailTransport`` is the protocol the dispatch coordinator depends on;
``ResendTransport`` implements it against the Resend HTTP API with httpx.
Transient failures (network errors, 429, 5xx) are retried through
:func:`resilient_api_call`; other rejections fail immediately.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from pydantic import SecretStr

from quote_engine.email.models import OutboundEmail
from quote_engine.resilience.retry import resilient_api_call

logger = structlog.get_logger()

DEFAULT_RESEND_URL = "https://api.resend.com/emails"


class MailTransportError(Exception):
    """The mail provider did not accept an email."""


class TransientMailError(MailTransportError):
    """A mail failure worth retrying (network error, throttling, 5xx)."""


class MailTransport(Protocol):
    """Anything that can deliver an :class:`OutboundEmail`."""

    def send(self, message: OutboundEmail) -> str:
        """Deliver *message* and return the provider's message id.

        Raises:
            MailTransportError: If the provider did not accept the email.
        """
        ...

    def is_ready(self) -> bool:
        """Return True if the transport is configured to send."""
        ...


class ResendTransport:
    """Send emails through the Resend HTTP API.

    Args:
        api_key: Resend API key.
        from_email: ``From`` header, e.g. ``"Acme Travel <quotes@acme.test>"``.
        api_url: Endpoint for sending a single email.
        client: Optional pre-built httpx client (tests pass a mock transport).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str | SecretStr,
        from_email: str,
        api_url: str = DEFAULT_RESEND_URL,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key if isinstance(api_key, SecretStr) else SecretStr(api_key)
        self._from_email = from_email
        self._api_url = api_url
        self._client = client or httpx.Client(timeout=timeout)

    def is_ready(self) -> bool:
        """Return True if an API key is configured."""
        return bool(self._api_key.get_secret_value())

    @resilient_api_call("resend", retry_on=TransientMailError)
    def send(self, message: OutboundEmail) -> str:
        """POST *message* to Resend and return the message id.

        Raises:
            TransientMailError: Network failure, throttling, or a 5xx after
                all retries are exhausted.
            MailTransportError: Any other rejection, or a response without an id.
        """
        if not self.is_ready():
            raise MailTransportError("Mail API key is not configured")

        payload: dict[str, Any] = {
            "from": self._from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text

        try:
            response = self._client.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key.get_secret_value()}"},
            )
        except httpx.TransportError as exc:
            raise TransientMailError(f"Mail API unreachable: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientMailError(f"Mail API returned {response.status_code}")
        if response.status_code >= 400:
            raise MailTransportError(
                f"Mail API rejected email ({response.status_code}): {_error_message(response)}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise MailTransportError("Mail API returned a body that is not JSON") from exc
        message_id = body.get("id") if isinstance(body, dict) else None
        if not message_id:
            raise MailTransportError("Mail API response did not include a message id")
        logger.info("mail_accepted", provider="resend", message_id=message_id)
        return str(message_id)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("name") or body)[:200]
    return str(body)[:200]
