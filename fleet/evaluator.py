"""
Rule evaluator.

Turns one vehicle snapshot into its alert set. Pure: the clearance state and
the current time are inputs, nothing is read from or written to a store.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from .alert import VehicleAlerts
from .calculations import window_elapsed
from .kinds import AlertKind
from .rule import DEFAULT_RULES, AnyRule
from .vehicle import VehicleSnapshot

CLEARANCE_WINDOW = timedelta(days=7)

ClearanceState = Mapping[AlertKind, datetime]


def is_cleared(
    kind: AlertKind,
    clearance: Optional[ClearanceState],
    now: datetime,
    window: timedelta = CLEARANCE_WINDOW,
) -> bool:
    """True while a mechanic's dismissal of this kind is still in effect."""
    cleared_at = (clearance or {}).get(kind)
    return not window_elapsed(cleared_at, now, window)


def evaluate(
    vehicle: VehicleSnapshot,
    clearance: Optional[ClearanceState],
    now: datetime,
    rules: Optional[Dict[AlertKind, AnyRule]] = None,
) -> VehicleAlerts:
    """
    Evaluate every rule for a vehicle at the given instant.

    Logic:
    - Kinds are checked in AlertKind order, so output order is fixed
    - A kind cleared within the last 7 days yields no alert
    - Otherwise the kind's rule decides (due-soon, overdue or nothing)

    Out-of-service status is carried on the result and is not gated.
    """
    rules = rules or DEFAULT_RULES
    alerts = []
    for kind in AlertKind:
        rule = rules.get(kind)
        if rule is None or is_cleared(kind, clearance, now):
            continue
        alert = rule.evaluate(vehicle, now)
        if alert is not None:
            alerts.append(alert)
    return VehicleAlerts(vehicle=vehicle, alerts=alerts)


def evaluate_fleet(
    vehicles: Iterable[VehicleSnapshot],
    clearances: Mapping[str, ClearanceState],
    now: datetime,
    rules: Optional[Dict[AlertKind, AnyRule]] = None,
) -> List[VehicleAlerts]:
    """Evaluate all vehicles, keeping the input order."""
    return [evaluate(v, clearances.get(v.id), now, rules) for v in vehicles]
