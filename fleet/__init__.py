"""
Fleet maintenance alert engine.

This package evaluates vehicles against the fleet's maintenance and
compliance rules and notifies staff:
- Status / AlertKind: severity levels and the fixed set of alert kinds
- VehicleSnapshot: read-only vehicle state handed to the evaluator
- evaluate: pure rule evaluation with the 7-day clearance gate
- select_for_dispatch: the 7-day per-vehicle batch gate
- Dispatcher: digest rendering and fan-out delivery
- ClearanceWorkflow: accountable dismissal of an alert
- AlertPipeline: the evaluate -> suppress -> dispatch pass
"""

from .status import Status
from .kinds import AlertKind
from .vehicle import VehicleSnapshot, ServiceRecord, IN_SERVICE, OUT_OF_SERVICE
from .alert import Alert, VehicleAlerts
from .rule import MileageRule, DeadlineRule, DEFAULT_RULES, build_rules
from .evaluator import evaluate, evaluate_fleet, is_cleared, CLEARANCE_WINDOW
from .suppression import AlertState, select_for_dispatch, BATCH_WINDOW
from .store import VehicleStore, load_vehicle
from .accountability import AccountabilityRecord, AccountabilityLog
from .clearance import ClearanceWorkflow
from .channel import EmailMessage, SendResult, MailerSendChannel, MailerSendConfig
from .dispatcher import Dispatcher, DispatchReport, Recipient, Sender
from .pipeline import AlertPipeline, PassSummary
from .config import Settings, load_settings

__all__ = [
    "Status",
    "AlertKind",
    "VehicleSnapshot",
    "ServiceRecord",
    "IN_SERVICE",
    "OUT_OF_SERVICE",
    "Alert",
    "VehicleAlerts",
    "MileageRule",
    "DeadlineRule",
    "DEFAULT_RULES",
    "build_rules",
    "evaluate",
    "evaluate_fleet",
    "is_cleared",
    "CLEARANCE_WINDOW",
    "AlertState",
    "select_for_dispatch",
    "BATCH_WINDOW",
    "VehicleStore",
    "load_vehicle",
    "AccountabilityRecord",
    "AccountabilityLog",
    "ClearanceWorkflow",
    "EmailMessage",
    "SendResult",
    "MailerSendChannel",
    "MailerSendConfig",
    "Dispatcher",
    "DispatchReport",
    "Recipient",
    "Sender",
    "AlertPipeline",
    "PassSummary",
    "Settings",
    "load_settings",
]
