"""Rendering of the maintenance digest email."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .alert import VehicleAlerts
from .calculations import format_date
from .status import Status

DAILY = "daily"
ON_DEMAND = "on-demand"

TEMPLATE_DIR = Path(__file__).parent / "templates"


def format_miles(miles: Optional[float]) -> str:
    """Format mileage with comma separator."""
    return f"{miles:,.0f}" if miles is not None else "N/A"


def severity_color(status: Status) -> str:
    """Text colour for an alert line."""
    return "#dc3545" if status == Status.OVERDUE else "#f59e0b"


_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["miles"] = format_miles
_env.filters["us_date"] = format_date
_env.filters["severity_color"] = severity_color


def render_digest(
    batch: List[VehicleAlerts], generated_at: datetime, organization: str
) -> str:
    """Render one HTML document covering every vehicle in the batch."""
    return _env.get_template("digest.html").render(
        batch=batch,
        generated_at=generated_at,
        organization=organization,
        urgent_count=sum(1 for entry in batch if entry.has_overdue),
    )


def digest_subject(batch: List[VehicleAlerts], trigger: str = ON_DEMAND) -> str:
    """Subject line; the scheduled run is labelled as the daily alert."""
    prefix = "Daily Maintenance Alert" if trigger == DAILY else "Maintenance Due Alert"
    return f"{prefix} - {len(batch)} Truck(s) Require Attention"
