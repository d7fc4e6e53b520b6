from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import requests

from .errors import ChannelAuthError, ChannelTransportError, RecipientRejectedError

logger = logging.getLogger(__name__)

MAILERSEND_API_URL = "https://api.mailersend.com/v1/email"


@dataclass(frozen=True)
class EmailMessage:
    """
    One transactional email to a single recipient.

    Parameters
    ----------
    from_address, from_name
        Sender identity.
    to_address, to_name
        The single recipient.
    reply_to
        Optional reply-to address.
    subject, html
        Message content.
    """

    from_address: str
    from_name: str
    to_address: str
    subject: str
    html: str
    to_name: Optional[str] = None
    reply_to: Optional[str] = None


@dataclass(frozen=True)
class SendResult:
    """Outcome of an accepted send."""

    message_id: Optional[str]
    status: int
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


class Channel(Protocol):
    """
    Protocol interface for notification delivery.

    ``send`` either returns a SendResult or raises one of
    ChannelAuthError, RecipientRejectedError or ChannelTransportError.
    """

    def send(self, message: EmailMessage) -> SendResult:
        ...


@dataclass(frozen=True)
class MailerSendConfig:
    """
    Configuration for the MailerSend email API.

    Parameters
    ----------
    api_key
        API token. Missing or empty fails every send with ChannelAuthError.
    api_url
        Email endpoint URL.
    timeout_s
        HTTP request timeout in seconds.
    """

    api_key: Optional[str]
    api_url: str = MAILERSEND_API_URL
    timeout_s: float = 10.0


class MailerSendChannel:
    """
    Notification channel that delivers email through the MailerSend API.

    Notes
    -----
    - One HTTP POST per message; no retries at this layer.
    - 401/403 map to ChannelAuthError, other 4xx to RecipientRejectedError,
      5xx and network errors (including timeouts) to ChannelTransportError.
    """

    def __init__(self, cfg: MailerSendConfig):
        self._cfg = cfg

    def _payload(self, message: EmailMessage) -> dict:
        recipient = {"email": message.to_address}
        if message.to_name:
            recipient["name"] = message.to_name
        payload = {
            "from": {"email": message.from_address, "name": message.from_name},
            "to": [recipient],
            "subject": message.subject,
            "html": message.html,
        }
        if message.reply_to:
            payload["reply_to"] = {"email": message.reply_to}
        return payload

    def send(self, message: EmailMessage) -> SendResult:
        """
        Send one message.

        Raises
        ------
        ChannelAuthError
            No API key configured, or the key was refused.
        RecipientRejectedError
            The API refused this message (validation error, bad address).
        ChannelTransportError
            Network failure, timeout or server-side error.
        """
        if not self._cfg.api_key:
            raise ChannelAuthError("MailerSend API key is not configured")

        headers = {
            "Authorization": f"Bearer {self._cfg.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.debug("Sending email via MailerSend to %s", message.to_address)

        try:
            r = requests.post(
                self._cfg.api_url,
                json=self._payload(message),
                headers=headers,
                timeout=self._cfg.timeout_s,
            )
        except requests.RequestException as exc:
            raise ChannelTransportError(f"MailerSend request failed: {exc}") from exc

        if r.status_code in (401, 403):
            raise ChannelAuthError(f"MailerSend API error {r.status_code}: {_error_text(r)}")
        if 400 <= r.status_code < 500:
            raise RecipientRejectedError(
                f"MailerSend rejected {message.to_address} ({r.status_code}): {_error_text(r)}"
            )
        if r.status_code >= 500:
            raise ChannelTransportError(f"MailerSend API error {r.status_code}: {_error_text(r)}")

        return SendResult(
            message_id=r.headers.get("x-message-id"),
            status=r.status_code,
            accepted=[message.to_address],
            rejected=[],
        )


def _error_text(response: requests.Response) -> str:
    """Best-effort error message from a MailerSend error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text
