#!/usr/bin/env python3
"""Tests for the HTTP trigger surface (Flask test client)."""
import dataclasses

import pytest
from filelock import FileLock

from fleet import AccountabilityLog
from fleet.errors import ChannelAuthError, RecipientRejectedError
from web.app import app, get_accountability_log, get_store


@pytest.fixture
def client(settings, fake_channel, write_vehicle, monkeypatch):
    # no documents, so results do not depend on the real date
    write_vehicle("unit-12", mileage=105600, documents={})
    write_vehicle("unit-21", unitNumber="21", documents={})
    monkeypatch.setitem(app.config, "FLEET_SETTINGS", settings)
    monkeypatch.setitem(app.config, "FLEET_CHANNEL", fake_channel)
    monkeypatch.setitem(app.config, "FLEET_STORE", None)
    monkeypatch.setitem(app.config, "FLEET_ACCOUNTABILITY_LOG", None)
    app.config["TESTING"] = True
    return app.test_client()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.data == b"ok"


class TestAlerts:
    """Tests for the read endpoints."""

    def test_fleet_alerts(self, client):
        body = client.get("/alerts").get_json()
        assert body["needingAttention"] == 1
        assert [v["vehicleId"] for v in body["vehicles"]] == ["unit-12", "unit-21"]

    def test_vehicle_alerts(self, client):
        response = client.get("/vehicles/unit-12/alerts")
        assert response.status_code == 200
        body = response.get_json()
        assert body["unit"] == "Unit 12 - 2019 Ford F-450"
        assert [a["kind"] for a in body["alerts"]] == ["oilChange"]
        assert body["alerts"][0]["severity"] == "overdue"

    def test_unknown_vehicle(self, client):
        response = client.get("/vehicles/unit-99/alerts")
        assert response.status_code == 404
        assert response.get_json()["error"] == "vehicle-not-found"


class TestSend:
    """Tests for the on-demand trigger."""

    def test_send(self, client, fake_channel):
        response = client.post("/alerts/send")
        assert response.status_code == 200
        body = response.get_json()
        assert body["ok"] is True
        assert body["trigger"] == "on-demand"
        assert body["vehiclesIncluded"] == ["unit-12"]
        assert body["messagesSent"] == 5
        assert fake_channel.sent[0].subject.startswith("Maintenance Due Alert - 1 Truck(s)")

    def test_second_send_is_gated(self, client):
        client.post("/alerts/send")
        body = client.post("/alerts/send").get_json()
        assert body["vehiclesIncluded"] == []
        assert body["message"] == "No maintenance due"

    def test_test_mode_query(self, client):
        client.post("/alerts/send")
        body = client.get("/alerts/send?test=true").get_json()
        assert body["bypassBatchGate"] is True
        assert body["vehiclesIncluded"] == ["unit-12"]

    def test_test_mode_json_body(self, client):
        client.post("/alerts/send")
        body = client.post("/alerts/send", json={"test": True}).get_json()
        assert body["vehiclesIncluded"] == ["unit-12"]

    def test_partial_failure(self, client, fake_channel, recipients):
        fake_channel.failures[recipients[1].email] = RecipientRejectedError("bounced")
        response = client.post("/alerts/send")
        assert response.status_code == 502
        body = response.get_json()
        assert body["ok"] is False
        assert body["failures"] == 1

    def test_auth_failure(self, client, fake_channel, recipients):
        fake_channel.failures[recipients[0].email] = ChannelAuthError("bad key")
        response = client.post("/alerts/send")
        assert response.status_code == 500
        assert response.get_json()["error"] == "channel-auth"


class TestClear:
    """Tests for the clearance endpoint."""

    def test_clear(self, client, settings):
        response = client.post(
            "/vehicles/unit-12/alerts/oilChange/clear",
            json={"justification": "Oil checked, clean", "author": "J. Smith"},
        )
        assert response.status_code == 201
        record = response.get_json()["record"]
        assert record["description"] == "Maintenance Alert Cleared: Oil Change"
        assert record["author"] == "J. Smith"
        assert len(AccountabilityLog(settings.accountability_log).records()) == 1

        assert client.get("/vehicles/unit-12/alerts").get_json()["alerts"] == []

    def test_clear_requires_justification(self, client, settings):
        response = client.post("/vehicles/unit-12/alerts/oilChange/clear", json={})
        assert response.status_code == 400
        assert response.get_json()["error"] == "justification-required"
        assert AccountabilityLog(settings.accountability_log).records() == []

    def test_clear_unknown_kind(self, client):
        response = client.post(
            "/vehicles/unit-12/alerts/wipers/clear", json={"justification": "x"}
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "unknown-alert-kind"

    def test_clear_unknown_vehicle(self, client):
        response = client.post(
            "/vehicles/unit-99/alerts/oilChange/clear", json={"justification": "x"}
        )
        assert response.status_code == 404

    def test_accountability_failure(self, client, settings):
        # a directory where the log file should be makes every write fail
        settings.accountability_log.mkdir()
        response = client.post(
            "/vehicles/unit-12/alerts/oilChange/clear",
            json={"justification": "Oil checked", "author": "J. Smith"},
        )
        assert response.status_code == 503
        assert response.get_json()["error"] == "accountability-write-failed"
        assert [a["kind"] for a in client.get("/vehicles/unit-12/alerts").get_json()["alerts"]] == [
            "oilChange"
        ]


class TestConcurrentClears:
    """Simultaneous clearance requests, one client per thread."""

    def test_every_clear_gets_a_record(self, client, settings, write_vehicle, run_concurrently):
        ids = [f"unit-{n}" for n in range(1, 13)]
        for vehicle_id in ids:
            write_vehicle(vehicle_id, mileage=105600, documents={})

        def clear(vehicle_id):
            return app.test_client().post(
                f"/vehicles/{vehicle_id}/alerts/oilChange/clear",
                json={"justification": "Oil checked", "author": "J. Smith"},
            ).status_code

        statuses = run_concurrently([lambda v=v: clear(v) for v in ids])
        assert statuses == [201] * len(ids)
        records = AccountabilityLog(settings.accountability_log).records()
        assert sorted(r.vehicle_id for r in records) == sorted(ids)

    def test_requests_share_one_store_and_log(self, client):
        client.post(
            "/vehicles/unit-12/alerts/oilChange/clear",
            json={"justification": "Oil checked", "author": "J. Smith"},
        )
        store = app.config["FLEET_STORE"]
        log = app.config["FLEET_ACCOUNTABILITY_LOG"]
        client.get("/alerts")
        with app.app_context():
            assert get_store() is store
            assert get_accountability_log() is log


class TestStoreBusy:
    """A vehicle file locked by another process past the lock timeout."""

    def test_clear_returns_503(self, client, settings, monkeypatch):
        busy = dataclasses.replace(settings, lock_timeout_s=0.05)
        monkeypatch.setitem(app.config, "FLEET_SETTINGS", busy)
        with FileLock(f"{settings.vehicles_dir / 'unit-12.yaml'}.lock"):
            response = client.post(
                "/vehicles/unit-12/alerts/oilChange/clear",
                json={"justification": "Oil checked", "author": "J. Smith"},
            )
        assert response.status_code == 503
        assert response.get_json()["error"] == "store-busy"
        assert AccountabilityLog(settings.accountability_log).records() == []
