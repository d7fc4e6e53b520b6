"""YAML-backed vehicle store: snapshots in, suppression and clearance state out."""

import logging
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml
from dateutil import parser as date_parser
from dateutil import tz
from filelock import FileLock, Timeout

from .errors import StoreLockTimeoutError, VehicleNotFoundError
from .kinds import DOCUMENT_KINDS, MILEAGE_KINDS, AlertKind
from .suppression import AlertState
from .vehicle import ServiceRecord, VehicleSnapshot

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_S = 10.0


# =============================================================================
# Parsing helpers
# =============================================================================


def to_date(value: Any) -> Optional[date]:
    """Coerce a YAML scalar (date, datetime or ISO string) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(str(value)).date()


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce a YAML scalar to a timezone-aware datetime (naive values are UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = date_parser.isoparse(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.UTC)
    return parsed


def parse_vehicle(vehicle_id: str, dct: Dict[str, Any]) -> VehicleSnapshot:
    """Parse a vehicle file's dictionary into a snapshot."""
    services = {}
    for kind in MILEAGE_KINDS:
        entry = (dct.get("services") or {}).get(kind.value)
        if entry:
            mileage = entry.get("mileage")
            services[kind] = ServiceRecord(
                odometer=int(mileage) if mileage is not None else None,
                date=to_date(entry.get("date")),
            )

    expiry_dates = {}
    for kind in DOCUMENT_KINDS:
        entry = (dct.get("documents") or {}).get(kind.value) or {}
        expires = to_date(entry.get("expires"))
        if expires is not None:
            expiry_dates[kind] = expires

    return VehicleSnapshot(
        id=vehicle_id,
        unit_number=str(dct.get("unitNumber") or vehicle_id),
        odometer=int(dct.get("mileage") or 0),
        vehicle_year=dct.get("vehicleYear"),
        vehicle_type=dct.get("vehicleType"),
        vin=dct.get("vin"),
        service_status=dct.get("status"),
        out_of_service_reason=dct.get("outOfServiceReason"),
        odometer_updated_at=to_date(dct.get("mileageLastUpdated")),
        services=services,
        expiry_dates=expiry_dates,
    )


def parse_alert_state(dct: Optional[Dict[str, Any]]) -> AlertState:
    """Parse the 'alerts' section of a vehicle file."""
    dct = dct or {}
    cleared = {}
    for key, value in (dct.get("cleared") or {}).items():
        try:
            kind = AlertKind(key)
        except ValueError:
            logger.warning("Ignoring clearance for unknown alert kind '%s'", key)
            continue
        cleared_at = to_datetime(value)
        if cleared_at is not None:
            cleared[kind] = cleared_at
    return AlertState(
        last_batch_sent_at=to_datetime(dct.get("lastBatchSentAt")),
        cleared=cleared,
    )


def _load_yaml(filename: Union[str, Path]) -> Dict[str, Any]:
    with open(filename, "r") as fp:
        return yaml.load(fp, Loader=yaml.SafeLoader) or {}


def dump_yaml(filename: Union[str, Path], data: Dict[str, Any]) -> None:
    """
    Write YAML via a uniquely named temp file, then move it into place.

    A failed write never truncates the record, and readers only ever see a
    complete file. Concurrent writers each get their own temp file.
    """
    path = Path(filename)
    fp = tempfile.NamedTemporaryFile(
        "w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    )
    try:
        with fp:
            yaml.dump(
                data,
                fp,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                width=120,
            )
        if path.exists():
            os.chmod(fp.name, stat.S_IMODE(path.stat().st_mode))
        os.replace(fp.name, path)
    except Exception:
        Path(fp.name).unlink(missing_ok=True)
        raise


@contextmanager
def file_lock(filename: Union[str, Path], timeout: float = DEFAULT_LOCK_TIMEOUT_S):
    """
    Hold an exclusive lock on <filename>.lock for a read-modify-write.

    The lock is an OS file lock, so it also excludes the CLI, the scheduler
    and the web server running as separate processes.

    Raises:
        StoreLockTimeoutError: the lock was not acquired within timeout seconds
    """
    lock = FileLock(f"{filename}.lock")
    try:
        lock.acquire(timeout=timeout)
    except Timeout as e:
        raise StoreLockTimeoutError(
            f"Timed out after {timeout}s waiting for the lock on {filename}"
        ) from e
    try:
        yield
    finally:
        lock.release()


def load_vehicle(filename: Union[str, Path]) -> VehicleSnapshot:
    """Load a vehicle from a YAML file; the id is the file name without extension."""
    path = Path(filename)
    return parse_vehicle(path.stem, _load_yaml(path))


# =============================================================================
# Store
# =============================================================================


class VehicleStore:
    """
    Directory of per-vehicle YAML files.

    Reads return snapshots and alert state. The only writes are the narrow
    state updates used by the dispatch pipeline and the clearance workflow;
    everything else in a vehicle file is left untouched. Each write holds the
    vehicle's file lock, so writers in other threads and processes never
    overwrite each other's changes.
    """

    def __init__(
        self,
        vehicles_dir: Union[str, Path],
        lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S,
    ):
        self.vehicles_dir = Path(vehicles_dir)
        self.lock_timeout_s = lock_timeout_s
        self._lock = threading.RLock()

    def get_vehicle_files(self) -> List[Path]:
        return sorted(self.vehicles_dir.glob("*.yaml"))

    def get_vehicle_path(self, vehicle_id: str) -> Path:
        path = self.vehicles_dir / f"{vehicle_id}.yaml"
        if not path.exists():
            raise VehicleNotFoundError(vehicle_id)
        return path

    def load(self, vehicle_id: str) -> Tuple[VehicleSnapshot, AlertState]:
        data = _load_yaml(self.get_vehicle_path(vehicle_id))
        return parse_vehicle(vehicle_id, data), parse_alert_state(data.get("alerts"))

    def load_all(self) -> List[Tuple[VehicleSnapshot, AlertState]]:
        """Load every vehicle with its alert state, ordered by vehicle id."""
        records = []
        for path in self.get_vehicle_files():
            data = _load_yaml(path)
            records.append(
                (parse_vehicle(path.stem, data), parse_alert_state(data.get("alerts")))
            )
        return records

    def _update_alerts(self, vehicle_id: str, update) -> Any:
        """Read-modify-write the 'alerts' section of one vehicle file."""
        path = self.get_vehicle_path(vehicle_id)
        with self._lock, file_lock(path, self.lock_timeout_s):
            data = _load_yaml(path)
            if data.get("alerts") is None:
                data["alerts"] = {}
            result = update(data["alerts"])
            dump_yaml(path, data)
            return result

    def record_batch_sent(self, vehicle_ids: Iterable[str], now: datetime) -> None:
        """Mark vehicles as included in a successfully sent digest."""
        stamp = now.isoformat()
        for vehicle_id in vehicle_ids:

            def update(alerts):
                alerts["lastBatchSentAt"] = stamp

            self._update_alerts(vehicle_id, update)
        logger.debug("Recorded batch sent at %s", stamp)

    def record_clearance(
        self, vehicle_id: str, kind: AlertKind, now: datetime
    ) -> Optional[datetime]:
        """Set the cleared-at time for one kind. Returns the previous value."""

        def update(alerts):
            if alerts.get("cleared") is None:
                alerts["cleared"] = {}
            previous = to_datetime(alerts["cleared"].get(kind.value))
            alerts["cleared"][kind.value] = now.isoformat()
            return previous

        return self._update_alerts(vehicle_id, update)

    def restore_clearance(
        self, vehicle_id: str, kind: AlertKind, previous: Optional[datetime]
    ) -> None:
        """Put a kind's clearance back to an earlier value (or remove it)."""

        def update(alerts):
            cleared = alerts.get("cleared") or {}
            if previous is None:
                cleared.pop(kind.value, None)
            else:
                cleared[kind.value] = previous.isoformat()
            alerts["cleared"] = cleared

        self._update_alerts(vehicle_id, update)
