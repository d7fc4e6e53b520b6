"""Rule classes defining when each alert kind fires."""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from .alert import Alert
from .calculations import (
    calc_due_miles,
    check_deadline,
    check_status,
    days_until,
    format_date,
)
from .kinds import AlertKind
from .status import Status
from .vehicle import VehicleSnapshot


class MileageRule:
    """An odometer-interval rule (oil, brakes, tires)."""

    def __init__(
        self,
        kind: AlertKind,
        interval_miles: int,
        early_warning_miles: int,
        severity_margin: Optional[int] = None,
    ):
        self.kind = kind
        self.interval_miles = interval_miles
        self.early_warning_miles = early_warning_miles
        self.severity_margin = severity_margin

    def evaluate(self, vehicle: VehicleSnapshot, now: datetime) -> Optional[Alert]:
        last = vehicle.last_service(self.kind)
        last_miles = last.odometer or 0
        due_miles = calc_due_miles(last_miles, self.interval_miles)

        status = check_status(vehicle.odometer, due_miles, self.early_warning_miles)
        if status == Status.OK:
            return None

        history = (
            f"Last changed at {last_miles:,} on {format_date(last.date)}. "
            f"Next due at {due_miles:,} miles."
        )
        if status == Status.OVERDUE:
            miles_overdue = vehicle.odometer - due_miles
            urgent = self.severity_margin is None or miles_overdue > self.severity_margin
            message = f"Overdue by {miles_overdue:,} miles. {history}"
        else:
            urgent = False
            message = f"Due in {due_miles - vehicle.odometer:,} miles. {history}"

        return Alert(
            kind=self.kind,
            severity=status,
            vehicle_id=vehicle.id,
            message=message,
            urgent=urgent,
        )


class DeadlineRule:
    """An expiry-date rule for compliance documents."""

    def __init__(self, kind: AlertKind, warning_window_days: int = 30):
        self.kind = kind
        self.warning_window_days = warning_window_days

    def evaluate(self, vehicle: VehicleSnapshot, now: datetime) -> Optional[Alert]:
        expiry = vehicle.expiry_date(self.kind)
        # Not configured yet; nothing to warn about.
        if expiry is None:
            return None

        remaining = days_until(expiry, now)
        status = check_deadline(remaining, self.warning_window_days)
        if status == Status.OK:
            return None

        if status == Status.OVERDUE:
            message = f"Expired on {format_date(expiry)}."
        else:
            message = f"Expires in {remaining} days on {format_date(expiry)}."

        return Alert(
            kind=self.kind,
            severity=status,
            vehicle_id=vehicle.id,
            message=message,
            urgent=status == Status.OVERDUE,
        )


AnyRule = Union[MileageRule, DeadlineRule]

DEFAULT_RULES: Dict[AlertKind, AnyRule] = {
    AlertKind.OIL_CHANGE: MileageRule(AlertKind.OIL_CHANGE, 5000, 500),
    AlertKind.INSPECTION: DeadlineRule(AlertKind.INSPECTION, 30),
    AlertKind.OEMS_INSPECTION: DeadlineRule(AlertKind.OEMS_INSPECTION, 30),
    AlertKind.BRAKE_CHANGE: MileageRule(AlertKind.BRAKE_CHANGE, 25000, 2500, 1000),
    AlertKind.TIRE_CHANGE: MileageRule(AlertKind.TIRE_CHANGE, 40000, 4000, 2000),
}


def build_rules(overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[AlertKind, AnyRule]:
    """
    Build the rule set, applying per-kind threshold overrides from config.

    Override keys follow the config file: intervalMiles, earlyWarningMiles,
    severityMargin for mileage kinds and warningWindowDays for documents.
    Kinds not mentioned keep their default thresholds.
    """
    rules = dict(DEFAULT_RULES)
    for key, values in (overrides or {}).items():
        kind = AlertKind.parse(key)
        base = DEFAULT_RULES[kind]
        if isinstance(base, MileageRule):
            rules[kind] = MileageRule(
                kind,
                values.get("intervalMiles", base.interval_miles),
                values.get("earlyWarningMiles", base.early_warning_miles),
                values.get("severityMargin", base.severity_margin),
            )
        else:
            rules[kind] = DeadlineRule(
                kind, values.get("warningWindowDays", base.warning_window_days)
            )
    return rules
