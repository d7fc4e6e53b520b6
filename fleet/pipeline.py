"""
The evaluate -> suppress -> dispatch pass shared by every trigger.

Both the daily scheduler and the on-demand endpoint call AlertPipeline.run().
Suppression state is only advanced after every recipient received the digest,
so a failed pass can simply be run again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from dateutil import tz

from .alert import VehicleAlerts
from .digest import ON_DEMAND
from .dispatcher import DispatchReport, Dispatcher
from .errors import ChannelAuthError
from .evaluator import evaluate
from .kinds import AlertKind
from .rule import AnyRule
from .store import VehicleStore
from .suppression import select_for_dispatch

logger = logging.getLogger(__name__)


@dataclass
class PassSummary:
    """Result of one pass, as surfaced by the CLI and HTTP triggers."""

    trigger: str
    ran_at: datetime
    vehicles_checked: int = 0
    vehicles_flagged: List[str] = field(default_factory=list)
    vehicles_included: List[str] = field(default_factory=list)
    bypass_batch_gate: bool = False
    dry_run: bool = False
    report: Optional[DispatchReport] = None
    preview_html: Optional[str] = None

    @property
    def messages_sent(self) -> int:
        return len(self.report.accepted) if self.report else 0

    @property
    def failures(self) -> int:
        return len(self.report.rejected) if self.report else 0

    @property
    def ok(self) -> bool:
        """True unless a digest was attempted and some recipient missed it."""
        return self.report is None or not self.report.sent or self.report.succeeded

    def to_dict(self) -> dict:
        d = {
            "ok": self.ok,
            "trigger": self.trigger,
            "ranAt": self.ran_at.isoformat(),
            "vehiclesChecked": self.vehicles_checked,
            "vehiclesFlagged": self.vehicles_flagged,
            "vehiclesIncluded": self.vehicles_included,
            "messagesSent": self.messages_sent,
            "failures": self.failures,
            "bypassBatchGate": self.bypass_batch_gate,
            "dryRun": self.dry_run,
        }
        if self.report is not None:
            d["dispatch"] = self.report.to_dict()
        return d


class AlertPipeline:
    """Loads the fleet, evaluates it, gates it and dispatches the digest."""

    def __init__(
        self,
        store: VehicleStore,
        dispatcher: Dispatcher,
        rules: Optional[Dict[AlertKind, AnyRule]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(tz.UTC),
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.rules = rules
        self._clock = clock

    def evaluate_all(self, now: Optional[datetime] = None) -> List[VehicleAlerts]:
        """Evaluate every vehicle in the store (no gating, no side effects)."""
        now = now or self._clock()
        return [
            evaluate(vehicle, state.cleared, now, self.rules)
            for vehicle, state in self.store.load_all()
        ]

    def evaluate_vehicle(self, vehicle_id: str, now: Optional[datetime] = None) -> VehicleAlerts:
        """Evaluate one vehicle. Raises VehicleNotFoundError for unknown ids."""
        vehicle, state = self.store.load(vehicle_id)
        return evaluate(vehicle, state.cleared, now or self._clock(), self.rules)

    def run(
        self,
        now: Optional[datetime] = None,
        trigger: str = ON_DEMAND,
        bypass_batch_gate: bool = False,
        dry_run: bool = False,
    ) -> PassSummary:
        """
        Run one pass.

        Args:
            bypass_batch_gate: include vehicles alerted within the last 7 days
            dry_run: render the digest but send nothing and change nothing

        Raises:
            ChannelAuthError: the channel refused credentials; nothing recorded
        """
        now = now or self._clock()
        summary = PassSummary(
            trigger=trigger,
            ran_at=now,
            bypass_batch_gate=bypass_batch_gate,
            dry_run=dry_run,
        )

        records = self.store.load_all()
        summary.vehicles_checked = len(records)
        evaluated = [
            evaluate(vehicle, state.cleared, now, self.rules) for vehicle, state in records
        ]
        summary.vehicles_flagged = [e.vehicle.id for e in evaluated if e.needs_attention]

        states = {vehicle.id: state for vehicle, state in records}
        batch = select_for_dispatch(evaluated, states, now, bypass_batch_gate)
        summary.vehicles_included = [e.vehicle.id for e in batch]

        if not batch:
            logger.info("No maintenance due - no email sent (%s run)", trigger)
            return summary

        logger.info("Found %d trucks with maintenance due", len(batch))
        if dry_run:
            summary.preview_html = self.dispatcher.render(batch, now)
            return summary

        try:
            summary.report = self.dispatcher.dispatch(batch, now, trigger)
        except ChannelAuthError:
            logger.error(
                "Pass aborted at dispatch stage (%s run, vehicles: %s); no state recorded",
                trigger,
                ", ".join(summary.vehicles_included),
            )
            raise

        if summary.report.succeeded:
            self.store.record_batch_sent(summary.vehicles_included, now)
            logger.info(
                "Updated last batch sent for %d trucks", len(summary.vehicles_included)
            )
        else:
            logger.warning(
                "Not all recipients received the digest; suppression left unchanged for: %s",
                ", ".join(summary.vehicles_included),
            )
        return summary
