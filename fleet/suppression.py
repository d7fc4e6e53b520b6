"""Per-vehicle alert state and the 7-day batch gate."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from .alert import VehicleAlerts
from .calculations import window_elapsed
from .kinds import AlertKind

logger = logging.getLogger(__name__)

BATCH_WINDOW = timedelta(days=7)


@dataclass
class AlertState:
    """Suppression record and clearance state stored with a vehicle."""

    last_batch_sent_at: Optional[datetime] = None
    cleared: Dict[AlertKind, datetime] = field(default_factory=dict)


def is_batch_eligible(
    state: Optional[AlertState], now: datetime, window: timedelta = BATCH_WINDOW
) -> bool:
    """True if the vehicle has not been in a digest within the window."""
    last_sent = state.last_batch_sent_at if state else None
    return window_elapsed(last_sent, now, window)


def select_for_dispatch(
    evaluated: Iterable[VehicleAlerts],
    states: Mapping[str, AlertState],
    now: datetime,
    bypass_batch_gate: bool = False,
) -> List[VehicleAlerts]:
    """
    Pick the vehicles that go into this pass's digest.

    A vehicle qualifies when it needs attention and was not included in a
    successfully sent digest within the last 7 days. bypass_batch_gate skips
    the 7-day check only; clearances were already applied by the evaluator.
    """
    selected = []
    for result in evaluated:
        if not result.needs_attention:
            continue
        vehicle = result.vehicle
        if not bypass_batch_gate and not is_batch_eligible(states.get(vehicle.id), now):
            logger.info(
                "Skipping %s - already alerted on %s",
                vehicle.unit_label,
                states[vehicle.id].last_batch_sent_at.isoformat(),
            )
            continue
        selected.append(result)
    return selected
