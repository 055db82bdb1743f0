from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..utils.constants import VehicleStatus
from ..utils.filters import utc_now
from ..utils.money import money_str


@dataclass
class Vehicle:
    """
    Fleet vehicle as seen by the rental core. Master data (brand, colour,
    type...) lives elsewhere; only what pricing and availability need is here.

    `version` is the optimistic concurrency token: every status change
    checks and increments it inside the same unit of work.
    """
    vehicle_id: int
    code: str  # plate, e.g. "30A-12345"
    model: str
    daily_rental_price: Decimal
    status: str = VehicleStatus.AVAILABLE
    current_location: Optional[str] = None
    version: int = 1
    is_deleted: bool = False

    @property
    def is_available(self) -> bool:
        return self.status == VehicleStatus.AVAILABLE

    def to_dict(self) -> dict:
        return {
            "id": self.vehicle_id,
            "code": self.code,
            "model": self.model,
            "dailyRentalPrice": money_str(self.daily_rental_price),
            "status": self.status,
            "currentLocation": self.current_location,
            "version": self.version,
        }


@dataclass
class VehicleHistory:
    """Append-only trail of vehicle status changes caused by rentals."""
    history_id: int
    vehicle_id: int
    action_type: str  # "Rented" | "Returned" | "RentalCancelled"
    old_status: Optional[str]
    new_status: str
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    description: Optional[str] = None
    created_date: datetime = field(default_factory=utc_now)
