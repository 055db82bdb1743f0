from __future__ import annotations

import logging
from typing import Optional

from drivenow.exceptions import VehicleNotFoundError, VehicleStateConflictError
from drivenow.models.store import UnitOfWork
from drivenow.models.vehicle import Vehicle, VehicleHistory
from drivenow.utils.constants import VehicleHistoryAction, VehicleStatus

logger = logging.getLogger(__name__)


class VehicleAvailabilityGuard:
    """
    Keeps a vehicle from being handed out twice.

    Every status change re-reads the vehicle inside the caller's unit of
    work, optionally checks the caller's `expected_version`, then bumps the
    version so a stale reader loses with VehicleStateConflictError.
    """

    @staticmethod
    def get_vehicle(uow: UnitOfWork, vehicle_id) -> Vehicle:
        """Return a live vehicle or raise VehicleNotFoundError."""
        v = uow.get("vehicles", vehicle_id)
        if v is None or v.is_deleted:
            raise VehicleNotFoundError(f"Error: vehicle with ID '{vehicle_id}' not found")
        return v

    @staticmethod
    def ensure_available(uow: UnitOfWork, vehicle_id) -> Vehicle:
        v = VehicleAvailabilityGuard.get_vehicle(uow, vehicle_id)
        if not v.is_available:
            raise VehicleStateConflictError(
                f"Error: vehicle {v.code} is not available (status {v.status})")
        return v

    @staticmethod
    def claim(
            uow: UnitOfWork,
            vehicle_id,
            *,
            expected_version: Optional[int] = None,
            location: Optional[str] = None,
            reference_id: Optional[int] = None,
            description: Optional[str] = None,
    ) -> Vehicle:
        """Available -> Rented."""
        v = VehicleAvailabilityGuard.get_vehicle(uow, vehicle_id)
        if expected_version is not None and v.version != expected_version:
            raise VehicleStateConflictError(
                f"Error: vehicle {v.code} changed (version {v.version}, expected {expected_version})")
        if not v.is_available:
            raise VehicleStateConflictError(
                f"Error: vehicle {v.code} is not available (status {v.status})")

        VehicleAvailabilityGuard._set_status(
            uow, v, VehicleStatus.RENTED, VehicleHistoryAction.RENTED, reference_id, description)
        if location:
            v.current_location = location
        return v

    @staticmethod
    def release(
            uow: UnitOfWork,
            vehicle_id,
            *,
            action: str = VehicleHistoryAction.RETURNED,
            location: Optional[str] = None,
            reference_id: Optional[int] = None,
            description: Optional[str] = None,
    ) -> Vehicle:
        """
        Rented -> Available.
        - already Available: left as is (nothing was reserved)
        - any other status (Maintenance, Repair, ...): another flow owns the
          vehicle now, so refuse instead of overwriting it
        """
        v = VehicleAvailabilityGuard.get_vehicle(uow, vehicle_id)
        if v.status == VehicleStatus.AVAILABLE:
            return v
        if v.status != VehicleStatus.RENTED:
            raise VehicleStateConflictError(
                f"Error: vehicle {v.code} moved to {v.status}; cannot mark it Available")

        VehicleAvailabilityGuard._set_status(
            uow, v, VehicleStatus.AVAILABLE, action, reference_id, description)
        if location:
            v.current_location = location
        return v

    @staticmethod
    def _set_status(uow: UnitOfWork, v: Vehicle, new_status: str, action: str,
                    reference_id: Optional[int], description: Optional[str]):
        old_status = v.status
        v.status = new_status
        v.version += 1
        uow.add("vehicle_histories", VehicleHistory(
            history_id=uow.next_id("vehicle_histories"),
            vehicle_id=v.vehicle_id,
            action_type=action,
            old_status=old_status,
            new_status=new_status,
            reference_id=reference_id,
            reference_type="RentalOrder" if reference_id is not None else None,
            description=description,
        ))
        logger.info("Vehicle %s: %s -> %s (v%s)", v.code, old_status, new_status, v.version)

    @staticmethod
    def history(uow: UnitOfWork, vehicle_id) -> list[VehicleHistory]:
        """Vehicle history rows, newest first."""
        rows = uow.query("vehicle_histories", lambda h: h.vehicle_id == int(vehicle_id))
        rows.sort(key=lambda h: h.history_id, reverse=True)
        return rows
