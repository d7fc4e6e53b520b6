#!/usr/bin/env python3
"""Tests for the YAML vehicle store."""
import threading
from datetime import date, datetime, timedelta

import pytest
import yaml
from dateutil import tz
from filelock import FileLock

from fleet import AlertKind, VehicleStore, load_vehicle
from fleet.errors import StoreLockTimeoutError, VehicleNotFoundError
from fleet.store import dump_yaml, parse_alert_state, to_date, to_datetime


class TestParsingHelpers:
    """Tests for to_date, to_datetime and parse_alert_state."""

    def test_to_date(self):
        assert to_date("2026-03-31") == date(2026, 3, 31)
        assert to_date(date(2026, 3, 31)) == date(2026, 3, 31)
        assert to_date(datetime(2026, 3, 31, 14, 0)) == date(2026, 3, 31)
        assert to_date(None) is None
        assert to_date("") is None

    def test_to_datetime_keeps_offset(self):
        parsed = to_datetime("2026-10-14T10:30:00-04:00")
        assert parsed == datetime(2026, 10, 14, 14, 30, tzinfo=tz.UTC)

    def test_to_datetime_naive_is_utc(self):
        assert to_datetime("2026-10-14T10:30:00").tzinfo is not None
        assert to_datetime(datetime(2026, 10, 14)) == datetime(2026, 10, 14, tzinfo=tz.UTC)

    def test_parse_alert_state(self):
        state = parse_alert_state(
            {
                "lastBatchSentAt": "2026-10-12T08:00:00+00:00",
                "cleared": {"oilChange": "2026-10-14T10:30:00+00:00", "wipers": "2026-10-14"},
            }
        )
        assert state.last_batch_sent_at == datetime(2026, 10, 12, 8, 0, tzinfo=tz.UTC)
        assert list(state.cleared) == [AlertKind.OIL_CHANGE]

    def test_parse_empty_alert_state(self):
        state = parse_alert_state(None)
        assert state.last_batch_sent_at is None
        assert state.cleared == {}


class TestLoadVehicle:
    """Tests for reading vehicle files."""

    def test_load_vehicle(self, write_vehicle):
        vehicle = load_vehicle(write_vehicle("unit-12"))
        assert vehicle.id == "unit-12"
        assert vehicle.unit_label == "Unit 12 - 2019 Ford F-450"
        assert vehicle.odometer == 101000
        assert vehicle.vin == "1FDUF4HT0KDA00012"
        assert vehicle.odometer_updated_at == date(2026, 10, 1)
        assert vehicle.last_service(AlertKind.OIL_CHANGE).odometer == 100000
        assert vehicle.last_service(AlertKind.OIL_CHANGE).date == date(2026, 5, 2)
        assert vehicle.expiry_date(AlertKind.INSPECTION) == date(2027, 6, 30)
        assert not vehicle.is_out_of_service

    def test_unquoted_yaml_dates(self, vehicles_dir):
        path = vehicles_dir / "unit-9.yaml"
        path.write_text(
            "unitNumber: 9\n"
            "mileage: 5000\n"
            "documents:\n"
            "  inspection:\n"
            "    expires: 2027-03-31\n"
        )
        vehicle = load_vehicle(path)
        assert vehicle.unit_label == "Unit 9"
        assert vehicle.expiry_date(AlertKind.INSPECTION) == date(2027, 3, 31)
        assert vehicle.expiry_date(AlertKind.OEMS_INSPECTION) is None
        assert vehicle.last_service(AlertKind.OIL_CHANGE).odometer is None


class TestVehicleStore:
    """Tests for VehicleStore reads and state writes."""

    def test_load_all_sorted_by_id(self, vehicles_dir, write_vehicle):
        write_vehicle("unit-7")
        write_vehicle("unit-12")
        write_vehicle("unit-21")
        ids = [v.id for v, _ in VehicleStore(vehicles_dir).load_all()]
        assert ids == ["unit-12", "unit-21", "unit-7"]

    def test_unknown_vehicle(self, vehicles_dir):
        store = VehicleStore(vehicles_dir)
        with pytest.raises(VehicleNotFoundError) as exc_info:
            store.load("unit-99")
        assert isinstance(exc_info.value, KeyError)
        assert str(exc_info.value) == "Vehicle 'unit-99' not found"

    def test_record_batch_sent(self, vehicles_dir, write_vehicle, now):
        path = write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir)
        store.record_batch_sent(["unit-12"], now)

        _, state = store.load("unit-12")
        assert state.last_batch_sent_at == now
        raw = yaml.safe_load(path.read_text())
        assert raw["mileage"] == 101000
        assert raw["vin"] == "1FDUF4HT0KDA00012"
        assert [p for p in vehicles_dir.iterdir() if p.suffix == ".tmp"] == []

    def test_record_clearance_returns_previous(self, vehicles_dir, write_vehicle, now):
        write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir)
        assert store.record_clearance("unit-12", AlertKind.OIL_CHANGE, now) is None

        later = now + timedelta(days=2)
        assert store.record_clearance("unit-12", AlertKind.OIL_CHANGE, later) == now
        _, state = store.load("unit-12")
        assert state.cleared == {AlertKind.OIL_CHANGE: later}

    def test_restore_clearance(self, vehicles_dir, write_vehicle, now):
        write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir)
        store.record_clearance("unit-12", AlertKind.BRAKE_CHANGE, now)
        store.record_clearance("unit-12", AlertKind.OIL_CHANGE, now)

        store.restore_clearance("unit-12", AlertKind.OIL_CHANGE, None)
        _, state = store.load("unit-12")
        assert state.cleared == {AlertKind.BRAKE_CHANGE: now}

        earlier = now - timedelta(days=3)
        store.restore_clearance("unit-12", AlertKind.BRAKE_CHANGE, earlier)
        _, state = store.load("unit-12")
        assert state.cleared == {AlertKind.BRAKE_CHANGE: earlier}


class TestDumpYaml:
    """Tests for dump_yaml."""

    def test_replaces_file_and_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "state.yaml"
        dump_yaml(path, {"a": 1})
        dump_yaml(path, {"b": 2})
        assert yaml.safe_load(path.read_text()) == {"b": 2}
        assert [p.name for p in tmp_path.iterdir()] == ["state.yaml"]

    def test_failed_write_keeps_old_content(self, tmp_path):
        path = tmp_path / "state.yaml"
        dump_yaml(path, {"a": 1})
        with pytest.raises(TypeError):
            dump_yaml(path, {"a": threading.Lock()})
        assert yaml.safe_load(path.read_text()) == {"a": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["state.yaml"]


class TestConcurrentWrites:
    """Each writer gets its own VehicleStore, as separate requests and processes do."""

    def test_two_kinds_cleared_at_once_both_stick(
        self, vehicles_dir, write_vehicle, now, run_concurrently
    ):
        write_vehicle("unit-12")
        for round_ in range(20):
            at = now + timedelta(minutes=round_)
            run_concurrently(
                [
                    lambda: VehicleStore(vehicles_dir).record_clearance(
                        "unit-12", AlertKind.OIL_CHANGE, at
                    ),
                    lambda: VehicleStore(vehicles_dir).record_clearance(
                        "unit-12", AlertKind.TIRE_CHANGE, at
                    ),
                ]
            )
            _, state = VehicleStore(vehicles_dir).load("unit-12")
            assert state.cleared == {AlertKind.OIL_CHANGE: at, AlertKind.TIRE_CHANGE: at}

    def test_clearance_racing_batch_record_keeps_both(
        self, vehicles_dir, write_vehicle, now, run_concurrently
    ):
        write_vehicle("unit-12")
        for round_ in range(20):
            at = now + timedelta(minutes=round_)
            run_concurrently(
                [
                    lambda: VehicleStore(vehicles_dir).record_clearance(
                        "unit-12", AlertKind.OIL_CHANGE, at
                    ),
                    lambda: VehicleStore(vehicles_dir).record_batch_sent(["unit-12"], at),
                ]
            )
            _, state = VehicleStore(vehicles_dir).load("unit-12")
            assert state.cleared == {AlertKind.OIL_CHANGE: at}
            assert state.last_batch_sent_at == at

    def test_many_vehicles_at_once(self, vehicles_dir, write_vehicle, now, run_concurrently):
        ids = [f"unit-{n}" for n in range(1, 13)]
        for vehicle_id in ids:
            write_vehicle(vehicle_id)
        store = VehicleStore(vehicles_dir)
        run_concurrently(
            [
                lambda vehicle_id=vehicle_id: store.record_clearance(
                    vehicle_id, AlertKind.OIL_CHANGE, now
                )
                for vehicle_id in ids
            ]
        )
        assert all(state.cleared == {AlertKind.OIL_CHANGE: now} for _, state in store.load_all())
        assert [p for p in vehicles_dir.iterdir() if p.suffix == ".tmp"] == []


class TestLockTimeout:
    """Tests for the bounded wait on a vehicle file lock."""

    def test_held_lock_times_out(self, vehicles_dir, write_vehicle, now):
        path = write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir, lock_timeout_s=0.05)
        with FileLock(f"{path}.lock"):
            with pytest.raises(StoreLockTimeoutError):
                store.record_clearance("unit-12", AlertKind.OIL_CHANGE, now)
        _, state = store.load("unit-12")
        assert state.cleared == {}

    def test_reads_do_not_wait_for_the_lock(self, vehicles_dir, write_vehicle):
        path = write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir, lock_timeout_s=0.05)
        with FileLock(f"{path}.lock"):
            vehicle, _ = store.load("unit-12")
        assert vehicle.id == "unit-12"

    def test_lock_released_after_write(self, vehicles_dir, write_vehicle, now):
        write_vehicle("unit-12")
        store = VehicleStore(vehicles_dir, lock_timeout_s=0.05)
        store.record_clearance("unit-12", AlertKind.OIL_CHANGE, now)
        store.record_batch_sent(["unit-12"], now)
        _, state = store.load("unit-12")
        assert state.last_batch_sent_at == now
