"""Wiring: build the store, channel, dispatcher, pipeline and workflow from Settings."""

from typing import Optional

from .accountability import AccountabilityLog
from .channel import Channel, MailerSendChannel, MailerSendConfig
from .clearance import ClearanceWorkflow
from .config import Settings
from .dispatcher import Dispatcher
from .pipeline import AlertPipeline
from .rule import build_rules
from .scheduler import get_zone
from .store import VehicleStore


def build_store(cfg: Settings) -> VehicleStore:
    return VehicleStore(cfg.vehicles_dir, lock_timeout_s=cfg.lock_timeout_s)


def build_accountability_log(cfg: Settings) -> AccountabilityLog:
    return AccountabilityLog(cfg.accountability_log, lock_timeout_s=cfg.lock_timeout_s)


def build_channel(cfg: Settings) -> MailerSendChannel:
    return MailerSendChannel(
        MailerSendConfig(
            api_key=cfg.api_key,
            api_url=cfg.api_url,
            timeout_s=cfg.channel_timeout_s,
        )
    )


def build_dispatcher(cfg: Settings, channel: Optional[Channel] = None) -> Dispatcher:
    return Dispatcher(
        channel=channel or build_channel(cfg),
        recipients=cfg.recipients,
        sender=cfg.sender,
        organization=cfg.organization,
        timeout_s=cfg.dispatch_timeout_s,
        zone=get_zone(cfg.schedule_timezone),
    )


def build_pipeline(
    cfg: Settings,
    channel: Optional[Channel] = None,
    store: Optional[VehicleStore] = None,
) -> AlertPipeline:
    return AlertPipeline(
        store=store or build_store(cfg),
        dispatcher=build_dispatcher(cfg, channel),
        rules=build_rules(cfg.rules),
    )


def build_clearance(
    cfg: Settings,
    store: Optional[VehicleStore] = None,
    log: Optional[AccountabilityLog] = None,
) -> ClearanceWorkflow:
    return ClearanceWorkflow(
        store=store or build_store(cfg),
        log=log or build_accountability_log(cfg),
        attempts=cfg.clearance_attempts,
        backoff_seconds=cfg.clearance_backoff_s,
    )
