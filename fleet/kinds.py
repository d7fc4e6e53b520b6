"""Alert kinds tracked for every vehicle."""

from enum import Enum


class AlertKind(Enum):
    """
    The fixed set of things a vehicle can be alerted for.

    Member order is the order alerts are reported in for a vehicle.
    Values match the keys used in the vehicle YAML files.
    """

    OIL_CHANGE = "oilChange"
    INSPECTION = "inspection"
    OEMS_INSPECTION = "oemsInspection"
    BRAKE_CHANGE = "brakeChange"
    TIRE_CHANGE = "tireChange"

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def is_mileage_based(self) -> bool:
        return self in MILEAGE_KINDS

    @classmethod
    def parse(cls, value: str) -> "AlertKind":
        """Look up a kind by key ("oilChange") or name ("oil_change"), case-insensitive."""
        normalized = value.strip().lower().replace("-", "_")
        for kind in cls:
            if normalized in (kind.value.lower(), kind.name.lower()):
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ValueError(f"Unknown alert kind '{value}' (expected one of: {valid})")


_TITLES = {
    AlertKind.OIL_CHANGE: "Oil Change",
    AlertKind.INSPECTION: "WV Inspection",
    AlertKind.OEMS_INSPECTION: "OEMS Inspection",
    AlertKind.BRAKE_CHANGE: "Brake Service",
    AlertKind.TIRE_CHANGE: "Tire Service",
}

_ICONS = {
    AlertKind.OIL_CHANGE: "\U0001F6E2\ufe0f",
    AlertKind.INSPECTION: "\U0001F4CB",
    AlertKind.OEMS_INSPECTION: "\U0001F3E5",
    AlertKind.BRAKE_CHANGE: "\U0001F6D1",
    AlertKind.TIRE_CHANGE: "\U0001F6DE",
}

MILEAGE_KINDS = (AlertKind.OIL_CHANGE, AlertKind.BRAKE_CHANGE, AlertKind.TIRE_CHANGE)
DOCUMENT_KINDS = (AlertKind.INSPECTION, AlertKind.OEMS_INSPECTION)
