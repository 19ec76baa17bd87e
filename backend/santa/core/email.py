"""Email sending via the Resend API.

Simple HTTP POST to Resend with plain-text bodies. Delivery failures are
raised, never swallowed: a timeout becomes DeliveryTimeoutError, any other
transport or HTTP status failure becomes DeliveryError. Callers decide
whether a failure is surfaced (verification codes) or only logged and
counted (draw notifications).
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from santa.core.config import settings
from santa.core.errors import DeliveryError, DeliveryTimeoutError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class EmailMessage:
    """A plain-text email.

    Attributes:
        to: Recipient address.
        subject: Subject line.
        text: Plain-text body.
    """

    to: str
    subject: str
    text: str


class EmailSender(Protocol):
    """Anything that can deliver an EmailMessage."""

    async def send(self, message: EmailMessage) -> None:
        """Deliver ``message``.

        Raises:
            DeliveryError: The provider rejected or never received it.
            DeliveryTimeoutError: The provider did not answer in time.
        """
        ...


class ResendEmailSender:
    """EmailSender backed by the Resend HTTP API.

    Args:
        api_key: Resend API key.
        from_address: Sender address.
        timeout: Seconds before a request is abandoned.
    """

    def __init__(self, *, api_key: str, from_address: str, timeout: float) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._timeout = timeout

    async def send(self, message: EmailMessage) -> None:
        """POST the message to Resend."""
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._from_address,
                        "to": message.to,
                        "subject": message.subject,
                        "text": message.text,
                    },
                    timeout=self._timeout,
                )
                resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Timed out sending email %r", message.subject)
            raise DeliveryTimeoutError() from exc
        except httpx.HTTPError as exc:
            logger.warning("Failed to send email %r", message.subject, exc_info=True)
            raise DeliveryError() from exc


def get_email_sender() -> EmailSender:
    """FastAPI dependency returning the configured sender."""
    return ResendEmailSender(
        api_key=settings.resend_api_key.get_secret_value(),
        from_address=settings.email_from,
        timeout=settings.email_timeout_seconds,
    )
