"""
Clearance workflow: a mechanic dismisses an alert without doing the work.

Per (vehicle, kind) the alert is Active, becomes Cleared on dismissal, and is
Active again once 7 days have passed. The return to Active is not an event;
the evaluator simply stops honouring the clearance after the window.

A clearance only counts once its accountability record is written. The record
write is retried with exponential backoff; if it still fails the clearance
state is rolled back so the dismissal never takes effect unrecorded.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from dateutil import tz

from .accountability import AccountabilityLog, AccountabilityRecord
from .errors import (
    AccountabilityWriteError,
    InvalidJustificationError,
    UnaccountableClearanceError,
)
from .kinds import AlertKind
from .store import VehicleStore

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 1.0


class ClearanceWorkflow:
    """Records alert dismissals in the vehicle store and the accountability log."""

    def __init__(
        self,
        store: VehicleStore,
        log: AccountabilityLog,
        attempts: int = DEFAULT_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(tz.UTC),
    ):
        self.store = store
        self.log = log
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._clock = clock

    def clear(
        self,
        vehicle_id: str,
        kind: AlertKind,
        justification: str,
        author: str,
        now: Optional[datetime] = None,
    ) -> AccountabilityRecord:
        """
        Dismiss one alert kind for a vehicle for the next 7 days.

        Clearing again inside the window restarts it and writes another record.

        Raises:
            InvalidJustificationError: justification is empty
            VehicleNotFoundError: no such vehicle
            AccountabilityWriteError: record not written; clearance rolled back
            UnaccountableClearanceError: record not written and rollback failed
        """
        justification = (justification or "").strip()
        if not justification:
            raise InvalidJustificationError(
                "A justification is required to clear a maintenance alert"
            )
        now = now or self._clock()

        vehicle, _ = self.store.load(vehicle_id)
        previous = self.store.record_clearance(vehicle_id, kind, now)
        logger.info("Alert cleared for %s, type: %s", vehicle_id, kind.value)

        record = AccountabilityRecord(
            vehicle_id=vehicle_id,
            unit_label=vehicle.unit_label,
            alert_kind=kind,
            cleared_at=now,
            justification=justification,
            author=author or "alert-clear-system",
            cleared_odometer=vehicle.odometer if kind.is_mileage_based else None,
            cleared_expiry=None if kind.is_mileage_based else vehicle.expiry_date(kind),
        )

        try:
            self._append_with_retry(record)
        except Exception as exc:
            self._roll_back(vehicle_id, kind, previous, exc)
            raise AccountabilityWriteError(
                f"Failed to create accountability record for clearing "
                f"{kind.value} on {vehicle_id}; the alert was not cleared: {exc}"
            ) from exc
        return record

    def _append_with_retry(self, record: AccountabilityRecord) -> None:
        for attempt in range(1, self.attempts + 1):
            try:
                self.log.append(record)
                return
            except Exception as exc:
                logger.warning(
                    "Failed to write accountability record for %s/%s (attempt %d/%d): %s",
                    record.vehicle_id,
                    record.alert_kind.value,
                    attempt,
                    self.attempts,
                    exc,
                )
                if attempt >= self.attempts:
                    raise
                self._sleep(self.backoff_seconds * 2 ** (attempt - 1))

    def _roll_back(
        self,
        vehicle_id: str,
        kind: AlertKind,
        previous: Optional[datetime],
        cause: Exception,
    ) -> None:
        logger.error(
            "Accountability record for %s/%s failed after %d attempts; rolling back clearance",
            vehicle_id,
            kind.value,
            self.attempts,
        )
        try:
            self.store.restore_clearance(vehicle_id, kind, previous)
        except Exception as exc:
            logger.critical(
                "Rollback of clearance %s/%s failed; alert is suppressed without a record",
                vehicle_id,
                kind.value,
            )
            raise UnaccountableClearanceError(
                f"Clearance of {kind.value} on {vehicle_id} is in effect but has no "
                f"accountability record (write error: {cause}; rollback error: {exc})"
            ) from exc
