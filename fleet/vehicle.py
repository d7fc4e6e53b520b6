"""Vehicle snapshot - the read-only view of a vehicle handed to the evaluator."""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from .kinds import AlertKind

IN_SERVICE = "in-service"
OUT_OF_SERVICE = "out-of-service"


@dataclass(frozen=True)
class ServiceRecord:
    """Odometer reading and date of the last service of one kind."""

    odometer: Optional[int] = None
    date: Optional[date] = None


class VehicleSnapshot:
    """Vehicle identification, current odometer, service state and documents."""

    def __init__(
        self,
        id: str,
        unit_number: str,
        odometer: int,
        vehicle_year: Optional[int] = None,
        vehicle_type: Optional[str] = None,
        vin: Optional[str] = None,
        service_status: str = IN_SERVICE,
        out_of_service_reason: Optional[str] = None,
        odometer_updated_at: Optional[date] = None,
        services: Optional[Dict[AlertKind, ServiceRecord]] = None,
        expiry_dates: Optional[Dict[AlertKind, date]] = None,
    ):
        self.id = id
        self.unit_number = unit_number
        self.odometer = odometer
        self.vehicle_year = vehicle_year
        self.vehicle_type = vehicle_type
        self.vin = vin
        self.service_status = service_status or IN_SERVICE
        self.out_of_service_reason = out_of_service_reason
        self.odometer_updated_at = odometer_updated_at
        self.services = services or {}
        self.expiry_dates = expiry_dates or {}

    @property
    def unit_label(self) -> str:
        """Human-readable unit name, e.g. 'Unit 12 - 2019 Ford F-450'."""
        details = " ".join(
            str(part) for part in (self.vehicle_year, self.vehicle_type) if part
        )
        base = f"Unit {self.unit_number}"
        return f"{base} - {details}" if details else base

    @property
    def is_out_of_service(self) -> bool:
        return self.service_status == OUT_OF_SERVICE

    def last_service(self, kind: AlertKind) -> ServiceRecord:
        """Last service of a mileage-based kind; empty record if never logged."""
        return self.services.get(kind) or ServiceRecord()

    def expiry_date(self, kind: AlertKind) -> Optional[date]:
        return self.expiry_dates.get(kind)
