"""Alert dataclasses produced by the rule evaluator."""

from dataclasses import dataclass, field
from typing import List, TYPE_CHECKING

from .kinds import AlertKind
from .status import Status

if TYPE_CHECKING:
    from .vehicle import VehicleSnapshot


@dataclass(frozen=True)
class Alert:
    """A single maintenance or compliance warning for one vehicle."""

    kind: AlertKind
    severity: Status
    vehicle_id: str
    message: str
    urgent: bool = False

    @property
    def title(self) -> str:
        return f"{self.kind.icon} {self.kind.title}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "title": self.kind.title,
            "severity": self.severity.label,
            "vehicleId": self.vehicle_id,
            "message": self.message,
            "urgent": self.urgent,
        }


@dataclass
class VehicleAlerts:
    """Evaluation result for one vehicle: its alerts plus out-of-service flag."""

    vehicle: "VehicleSnapshot"
    alerts: List[Alert] = field(default_factory=list)

    @property
    def out_of_service(self) -> bool:
        return self.vehicle.is_out_of_service

    @property
    def needs_attention(self) -> bool:
        """Out-of-service vehicles are always reported, with or without alerts."""
        return bool(self.alerts) or self.out_of_service

    @property
    def has_overdue(self) -> bool:
        return any(a.urgent for a in self.alerts)

    def to_dict(self) -> dict:
        return {
            "vehicleId": self.vehicle.id,
            "unit": self.vehicle.unit_label,
            "odometer": self.vehicle.odometer,
            "status": self.vehicle.service_status,
            "outOfServiceReason": self.vehicle.out_of_service_reason,
            "hasOverdue": self.has_overdue,
            "alerts": [a.to_dict() for a in self.alerts],
        }
