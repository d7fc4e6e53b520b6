"""Accountability records for dismissed alerts, and the append-only log."""

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .kinds import AlertKind
from .store import DEFAULT_LOCK_TIMEOUT_S, dump_yaml, file_lock, to_date, to_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountabilityRecord:
    """A mechanic's dismissal of one alert, with their written assessment."""

    vehicle_id: str
    unit_label: str
    alert_kind: AlertKind
    cleared_at: datetime
    justification: str
    author: str
    cleared_odometer: Optional[int] = None
    cleared_expiry: Optional[date] = None

    @property
    def description(self) -> str:
        return f"Maintenance Alert Cleared: {self.alert_kind.title}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the YAML dict format (camelCase keys, no empty values)."""
        d: Dict[str, Any] = {
            "vehicleId": self.vehicle_id,
            "unit": self.unit_label,
            "alertKind": self.alert_kind.value,
            "clearedAt": self.cleared_at.isoformat(),
            "description": self.description,
            "justification": self.justification,
            "author": self.author,
        }
        if self.cleared_odometer is not None:
            d["clearedOdometer"] = self.cleared_odometer
        if self.cleared_expiry is not None:
            d["clearedExpiry"] = self.cleared_expiry.isoformat()
        return d

    @classmethod
    def from_dict(cls, dct: Dict[str, Any]) -> "AccountabilityRecord":
        return cls(
            vehicle_id=dct["vehicleId"],
            unit_label=dct.get("unit", dct["vehicleId"]),
            alert_kind=AlertKind(dct["alertKind"]),
            cleared_at=to_datetime(dct["clearedAt"]),
            justification=dct["justification"],
            author=dct["author"],
            cleared_odometer=dct.get("clearedOdometer"),
            cleared_expiry=to_date(dct.get("clearedExpiry")),
        )


class AccountabilityLog:
    """
    Append-only YAML log of accountability records.

    Records are never edited or removed; append() loads the file, adds one
    entry to the end of the records list and writes it back, all under the
    log's file lock so concurrent appends from any process are all kept.
    """

    def __init__(
        self,
        filename: Union[str, Path],
        lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S,
    ):
        self.filename = Path(filename)
        self.lock_timeout_s = lock_timeout_s
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.filename.exists():
            return {"records": []}
        with open(self.filename, "r") as fp:
            data = yaml.load(fp, Loader=yaml.SafeLoader) or {}
        if data.get("records") is None:
            data["records"] = []
        return data

    def append(self, record: AccountabilityRecord) -> None:
        with self._lock, file_lock(self.filename, self.lock_timeout_s):
            data = self._load()
            data["records"].append(record.to_dict())
            dump_yaml(self.filename, data)
        logger.info(
            "Accountability record written for %s (%s) by %s",
            record.vehicle_id,
            record.alert_kind.value,
            record.author,
        )

    def records(self, vehicle_id: Optional[str] = None) -> List[AccountabilityRecord]:
        """All records in the order written, optionally for one vehicle."""
        entries = [AccountabilityRecord.from_dict(d) for d in self._load()["records"]]
        if vehicle_id is not None:
            entries = [e for e in entries if e.vehicle_id == vehicle_id]
        return entries
