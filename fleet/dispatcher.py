"""
Notification dispatcher.

Renders one digest for the batch and sends it to every recipient on the
distribution list, one independent channel call each. A batch only counts as
delivered when every recipient's send succeeded.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Dict, List, Optional, Sequence

from .alert import VehicleAlerts
from .channel import Channel, EmailMessage
from .digest import ON_DEMAND, digest_subject, render_digest
from .errors import ChannelAuthError, ChannelError, ChannelTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Sender:
    email: str
    name: str
    reply_to: Optional[str] = None


@dataclass
class RecipientOutcome:
    """Delivery result for one recipient."""

    recipient: Recipient
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DispatchReport:
    """What a dispatch did, per recipient."""

    vehicle_ids: List[str] = field(default_factory=list)
    outcomes: List[RecipientOutcome] = field(default_factory=list)
    subject: Optional[str] = None

    @property
    def sent(self) -> bool:
        """False when there was nothing to send."""
        return bool(self.outcomes)

    @property
    def succeeded(self) -> bool:
        """True only if a digest went out and every recipient accepted it."""
        return self.sent and all(o.ok for o in self.outcomes)

    @property
    def accepted(self) -> List[str]:
        return [o.recipient.email for o in self.outcomes if o.ok]

    @property
    def rejected(self) -> List[str]:
        return [o.recipient.email for o in self.outcomes if not o.ok]

    @property
    def message_ids(self) -> Dict[str, Optional[str]]:
        return {o.recipient.email: o.message_id for o in self.outcomes if o.ok}

    def to_dict(self) -> dict:
        return {
            "vehicleIds": self.vehicle_ids,
            "subject": self.subject,
            "succeeded": self.succeeded,
            "messageIds": self.message_ids,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "errors": {o.recipient.email: o.error for o in self.outcomes if not o.ok},
        }


class Dispatcher:
    """Sends the digest for a batch of vehicles to a fixed recipient list."""

    def __init__(
        self,
        channel: Channel,
        recipients: Sequence[Recipient],
        sender: Sender,
        organization: str = "Fleet",
        timeout_s: float = 60.0,
        max_workers: int = 8,
        zone: Optional[tzinfo] = None,
    ):
        self.channel = channel
        self.recipients = list(recipients)
        self.sender = sender
        self.organization = organization
        self.timeout_s = timeout_s
        self.max_workers = max_workers
        self.zone = zone

    def render(self, batch: List[VehicleAlerts], now: datetime) -> str:
        """Digest HTML, with the generated-at time shown in the fleet's local zone."""
        generated_at = now.astimezone(self.zone) if self.zone is not None else now
        return render_digest(batch, generated_at, self.organization)

    def build_message(self, recipient: Recipient, subject: str, html: str) -> EmailMessage:
        return EmailMessage(
            from_address=self.sender.email,
            from_name=self.sender.name,
            to_address=recipient.email,
            to_name=recipient.name,
            reply_to=self.sender.reply_to,
            subject=subject,
            html=html,
        )

    def dispatch(
        self, batch: List[VehicleAlerts], now: datetime, trigger: str = ON_DEMAND
    ) -> DispatchReport:
        """
        Render and fan out the digest.

        An empty batch sends nothing. Recipient-level failures are recorded in
        the report; a ChannelAuthError is re-raised once all sends settle.
        """
        report = DispatchReport(vehicle_ids=[entry.vehicle.id for entry in batch])
        if not batch:
            return report
        if not self.recipients:
            raise ChannelError("No recipients configured for maintenance alerts")

        report.subject = digest_subject(batch, trigger)
        html = self.render(batch, now)
        messages = [self.build_message(r, report.subject, html) for r in self.recipients]

        report.outcomes, auth_error = self._send_all(messages)
        if auth_error is not None:
            logger.error("Notification channel refused credentials: %s", auth_error)
            raise auth_error

        if report.succeeded:
            logger.info(
                "Digest sent to %d recipients: %s",
                len(report.outcomes),
                ", ".join(str(m) for m in report.message_ids.values()),
            )
        else:
            logger.warning(
                "Digest delivery failed for %d of %d recipients: %s",
                len(report.rejected),
                len(report.outcomes),
                ", ".join(report.rejected),
            )
        return report

    def _send_all(self, messages: List[EmailMessage]):
        """Send concurrently; returns outcomes in recipient order plus any auth error."""
        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(messages)))
        try:
            futures = [pool.submit(self.channel.send, m) for m in messages]
            wait(futures, timeout=self.timeout_s)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        outcomes = []
        auth_error = None
        for recipient, future in zip(self.recipients, futures):
            if future.cancelled() or not future.done():
                error = ChannelTransportError(f"Timed out after {self.timeout_s}s")
            else:
                error = future.exception()
            if error is None:
                outcomes.append(
                    RecipientOutcome(recipient, message_id=future.result().message_id)
                )
                continue
            if isinstance(error, ChannelAuthError):
                auth_error = auth_error or error
            elif not isinstance(error, ChannelError):
                logger.error(
                    "Unexpected error sending to %s", recipient.email, exc_info=error
                )
            outcomes.append(RecipientOutcome(recipient, error=str(error)))
        return outcomes, auth_error
