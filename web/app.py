"""Flask application exposing the alert pass, fleet alerts and clearances over HTTP."""

import logging

from flask import Flask, jsonify, request

from fleet.bootstrap import (
    build_accountability_log,
    build_clearance,
    build_pipeline,
    build_store,
)
from fleet.config import load_settings
from fleet.errors import (
    AccountabilityWriteError,
    ChannelAuthError,
    InvalidJustificationError,
    StoreLockTimeoutError,
    UnaccountableClearanceError,
    VehicleNotFoundError,
)
from fleet.kinds import AlertKind

logger = logging.getLogger(__name__)

app = Flask(__name__)


def get_settings():
    """Settings from app.config, loaded from the config file on first use."""
    if app.config.get("FLEET_SETTINGS") is None:
        app.config["FLEET_SETTINGS"] = load_settings()
    return app.config["FLEET_SETTINGS"]


def get_store():
    """The process-wide vehicle store, shared by every request."""
    if app.config.get("FLEET_STORE") is None:
        app.config["FLEET_STORE"] = build_store(get_settings())
    return app.config["FLEET_STORE"]


def get_accountability_log():
    """The process-wide accountability log, shared by every request."""
    if app.config.get("FLEET_ACCOUNTABILITY_LOG") is None:
        app.config["FLEET_ACCOUNTABILITY_LOG"] = build_accountability_log(get_settings())
    return app.config["FLEET_ACCOUNTABILITY_LOG"]


def get_pipeline():
    # FLEET_CHANNEL lets tests and alternative deployments swap the email channel
    return build_pipeline(
        get_settings(), channel=app.config.get("FLEET_CHANNEL"), store=get_store()
    )


def is_test_mode() -> bool:
    """?test=true or a JSON body with "test": true bypasses the 7-day batch gate."""
    if request.args.get("test", "").lower() == "true":
        return True
    body = request.get_json(silent=True) or {}
    return body.get("test") is True


def error_response(status: int, error: str, message: str):
    return jsonify({"ok": False, "error": error, "message": message}), status


@app.route("/health")
def health():
    return "ok", 200


@app.route("/alerts")
def fleet_alerts():
    """Current alerts for every vehicle (no email, no state change)."""
    results = get_pipeline().evaluate_all()
    return jsonify(
        {
            "vehicles": [r.to_dict() for r in results],
            "needingAttention": sum(1 for r in results if r.needs_attention),
        }
    )


@app.route("/vehicles/<vehicle_id>/alerts")
def vehicle_alerts(vehicle_id: str):
    """Current alerts for one vehicle, as shown on its dashboard card."""
    try:
        result = get_pipeline().evaluate_vehicle(vehicle_id)
    except VehicleNotFoundError as e:
        return error_response(404, "vehicle-not-found", str(e))
    return jsonify(result.to_dict())


@app.route("/alerts/send", methods=["GET", "POST"])
def send_maintenance_alert():
    """On-demand trigger for the same pass the daily scheduler runs."""
    test_mode = is_test_mode()
    logger.info("Manual maintenance check triggered (test=%s)", test_mode)

    try:
        summary = get_pipeline().run(bypass_batch_gate=test_mode)
    except ChannelAuthError as e:
        logger.error("sendMaintenanceAlert aborted: %s", e)
        return error_response(500, "channel-auth", str(e))
    except StoreLockTimeoutError as e:
        logger.error("sendMaintenanceAlert could not record the batch: %s", e)
        return error_response(503, "store-busy", str(e))

    if not summary.vehicles_included:
        return jsonify({**summary.to_dict(), "message": "No maintenance due"}), 200
    status = 200 if summary.ok else 502
    return jsonify(summary.to_dict()), status


@app.route("/vehicles/<vehicle_id>/alerts/<kind>/clear", methods=["POST"])
def clear_alert(vehicle_id: str, kind: str):
    """Dismiss one alert kind for 7 days. Body: {"justification": ..., "author": ...}."""
    body = request.get_json(silent=True) or {}
    try:
        alert_kind = AlertKind.parse(kind)
    except ValueError as e:
        return error_response(400, "unknown-alert-kind", str(e))

    workflow = build_clearance(
        get_settings(), store=get_store(), log=get_accountability_log()
    )
    try:
        record = workflow.clear(
            vehicle_id,
            alert_kind,
            body.get("justification", ""),
            body.get("author") or "alert-clear-system",
        )
    except InvalidJustificationError as e:
        return error_response(400, "justification-required", str(e))
    except VehicleNotFoundError as e:
        return error_response(404, "vehicle-not-found", str(e))
    except StoreLockTimeoutError as e:
        return error_response(503, "store-busy", str(e))
    except UnaccountableClearanceError as e:
        return error_response(500, "clearance-unaccountable", str(e))
    except AccountabilityWriteError as e:
        return error_response(503, "accountability-write-failed", str(e))

    return jsonify({"ok": True, "record": record.to_dict()}), 201


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    app.run(debug=True, host="0.0.0.0", port=5001)
