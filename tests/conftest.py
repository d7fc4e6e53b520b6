"""Shared fixtures: a fixed clock, vehicle builders and a fake email channel."""

import copy
import threading
from datetime import datetime

import pytest
import yaml
from dateutil import tz

from fleet.channel import SendResult
from fleet.config import Settings
from fleet.dispatcher import Recipient, Sender
from fleet.vehicle import VehicleSnapshot

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=tz.UTC)

# A vehicle with nothing due at NOW.
HEALTHY_VEHICLE = {
    "unitNumber": "12",
    "vin": "1FDUF4HT0KDA00012",
    "vehicleYear": 2019,
    "vehicleType": "Ford F-450",
    "status": "in-service",
    "mileage": 101000,
    "mileageLastUpdated": "2026-10-01",
    "services": {
        "oilChange": {"mileage": 100000, "date": "2026-05-02"},
        "brakeChange": {"mileage": 100000, "date": "2026-05-02"},
        "tireChange": {"mileage": 100000, "date": "2026-05-02"},
    },
    "documents": {
        "inspection": {"expires": "2027-06-30"},
        "oemsInspection": {"expires": "2027-06-30"},
    },
}

RECIPIENTS = [
    Recipient("fleet.manager@example.com", "Fleet Manager"),
    Recipient("shop.lead@example.com", "Shop Lead"),
    Recipient("operations@example.com", "Operations"),
    Recipient("compliance@example.com", "Compliance Officer"),
    Recipient("station.chief@example.com", "Station Chief"),
]


class FakeChannel:
    """Records sent messages; raises the configured error for chosen addresses."""

    def __init__(self):
        self.sent = []
        self.failures = {}
        self._lock = threading.Lock()

    def send(self, message):
        error = self.failures.get(message.to_address)
        if error is not None:
            raise error
        with self._lock:
            self.sent.append(message)
            n = len(self.sent)
        return SendResult(message_id=f"msg-{n}", status=202, accepted=[message.to_address])


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_vehicle():
    """Factory for VehicleSnapshot with sensible defaults."""

    def _make(vehicle_id="unit-12", odometer=101000, **kwargs):
        kwargs.setdefault("unit_number", "12")
        kwargs.setdefault("vehicle_year", 2019)
        kwargs.setdefault("vehicle_type", "Ford F-450")
        return VehicleSnapshot(id=vehicle_id, odometer=odometer, **kwargs)

    return _make


@pytest.fixture
def vehicles_dir(tmp_path):
    path = tmp_path / "vehicles"
    path.mkdir()
    return path


@pytest.fixture
def write_vehicle(vehicles_dir):
    """Write vehicles/<id>.yaml from the healthy template plus overrides."""

    def _write(vehicle_id="unit-12", **overrides):
        data = copy.deepcopy(HEALTHY_VEHICLE)
        data.update(overrides)
        path = vehicles_dir / f"{vehicle_id}.yaml"
        with open(path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False)
        return path

    return _write


@pytest.fixture
def recipients():
    return list(RECIPIENTS)


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def settings(tmp_path, vehicles_dir):
    return Settings(
        recipients=list(RECIPIENTS),
        sender=Sender("alerts@example.com", "Fleet Maintenance System"),
        organization="Example County EMS",
        vehicles_dir=vehicles_dir,
        accountability_log=tmp_path / "accountability.yaml",
        api_key="test-key",
        clearance_backoff_s=0,
    )


@pytest.fixture
def run_concurrently():
    """Start every job at the same moment on its own thread; re-raise the first error."""

    def _run(jobs):
        barrier = threading.Barrier(len(jobs))
        results = [None] * len(jobs)
        errors = []

        def worker(i, job):
            barrier.wait()
            try:
                results[i] = job()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        if errors:
            raise errors[0]
        return results

    return _run
