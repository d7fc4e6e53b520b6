"""Configuration loading: YAML file validated against the bundled schema."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import ValidationError, validate

from .channel import MAILERSEND_API_URL
from .dispatcher import Recipient, Sender
from .errors import ConfigError

SCHEMA_DIR = Path(__file__).parent / "schemas"
CONFIG_ENV_VAR = "FLEET_CONFIG"
API_KEY_ENV_VAR = "MAILERSEND_API_KEY"
DEFAULT_CONFIG_PATH = Path("config.yaml")


def load_schema(name: str) -> dict:
    """Load a bundled JSON schema (written as YAML) by name, e.g. 'vehicle'."""
    with open(SCHEMA_DIR / f"{name}.yaml") as f:
        return yaml.safe_load(f)


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Paths are resolved relative to the config file."""

    recipients: List[Recipient]
    sender: Sender
    organization: str = "Fleet"
    vehicles_dir: Path = Path("vehicles")
    accountability_log: Path = Path("accountability.yaml")
    api_key: Optional[str] = None
    api_url: str = MAILERSEND_API_URL
    channel_timeout_s: float = 10.0
    dispatch_timeout_s: float = 60.0
    schedule_time: str = "08:00"
    schedule_timezone: str = "America/New_York"
    clearance_attempts: int = 3
    clearance_backoff_s: float = 1.0
    lock_timeout_s: float = 10.0
    rules: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit path first, then the FLEET_CONFIG env var, then ./config.yaml."""
    if path:
        return Path(path).expanduser()
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH


def parse_settings(
    raw: Dict[str, Any], base_dir: Path = Path("."), api_key: Optional[str] = None
) -> Settings:
    """Validate a raw config mapping and convert it to Settings."""
    try:
        validate(instance=raw, schema=load_schema("config"))
    except ValidationError as e:
        where = ".".join(str(p) for p in e.path)
        raise ConfigError(
            f"Invalid configuration: {e.message}" + (f" (at {where})" if where else "")
        ) from e

    sender = raw["sender"]
    channel = raw.get("channel") or {}
    schedule = raw.get("schedule") or {}
    clearance = raw.get("clearance") or {}

    return Settings(
        recipients=[Recipient(r["email"], r.get("name")) for r in raw["recipients"]],
        sender=Sender(sender["email"], sender["name"], sender.get("replyTo")),
        organization=raw.get("organization", "Fleet"),
        vehicles_dir=base_dir / raw.get("vehiclesDir", "vehicles"),
        accountability_log=base_dir / raw.get("accountabilityLog", "accountability.yaml"),
        api_key=api_key,
        api_url=channel.get("apiUrl", MAILERSEND_API_URL),
        channel_timeout_s=float(channel.get("timeoutSeconds", 10.0)),
        dispatch_timeout_s=float(channel.get("dispatchTimeoutSeconds", 60.0)),
        schedule_time=schedule.get("time", "08:00"),
        schedule_timezone=schedule.get("timezone", "America/New_York"),
        clearance_attempts=int(clearance.get("attempts", 3)),
        clearance_backoff_s=float(clearance.get("backoffSeconds", 1.0)),
        lock_timeout_s=float(raw.get("lockTimeoutSeconds", 10.0)),
        rules=raw.get("rules") or {},
    )


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML config file.

    The MailerSend API key is never read from the file, only from the
    MAILERSEND_API_KEY environment variable.

    Raises:
        ConfigError: file missing, not a mapping, or fails schema validation
    """
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        raise ConfigError(f"Config not found: {cfg_path}")
    try:
        with open(cfg_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {cfg_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{cfg_path} must contain a YAML mapping at the root")
    return parse_settings(raw, cfg_path.parent, os.environ.get(API_KEY_ENV_VAR))
