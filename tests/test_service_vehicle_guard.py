"""
Vehicle availability guard: one rental per vehicle at a time, optimistic
version checks, and the vehicle history trail.
"""

import threading

import pytest

from drivenow.exceptions import VehicleStateConflictError
from drivenow.services.rental_service import RentalOrderService
from drivenow.services.vehicle_service import VehicleAvailabilityGuard
from drivenow.utils.constants import VehicleHistoryAction, VehicleStatus


def _set_vehicle_status(store, vehicle_id, status):
    with store.transaction() as uow:
        uow.get("vehicles", vehicle_id).status = status
        uow.commit()


def test_start_and_complete_bump_version_and_log_history(flow, store):
    before = flow.read("vehicles", flow.ids.vehicle_id).version
    flow.completed()

    vehicle = flow.read("vehicles", flow.ids.vehicle_id)
    assert vehicle.status == VehicleStatus.AVAILABLE
    assert vehicle.version == before + 2
    with store.transaction() as uow:
        actions = [h.action_type for h in VehicleAvailabilityGuard.history(uow, flow.ids.vehicle_id)]
    assert actions == [VehicleHistoryAction.RETURNED, VehicleHistoryAction.RENTED]


def test_confirm_requires_available_vehicle(flow, store):
    order_id = flow.create()
    _set_vehicle_status(store, flow.ids.vehicle_id, VehicleStatus.MAINTENANCE)
    with pytest.raises(VehicleStateConflictError):
        flow.step("confirm", order_id)


def test_stale_version_is_rejected(flow):
    order_id = flow.create()
    flow.step("confirm", order_id)
    version = flow.read("vehicles", flow.ids.vehicle_id).version

    with pytest.raises(VehicleStateConflictError):
        flow.step("start", order_id, expected_vehicle_version=version - 1)
    flow.step("start", order_id, expected_vehicle_version=version)
    assert flow.read("vehicles", flow.ids.vehicle_id).version == version + 1


def test_second_start_on_rented_vehicle_conflicts(flow):
    first = flow.create()
    second = flow.create()
    flow.step("confirm", first)
    flow.step("confirm", second)
    flow.step("start", first)

    with pytest.raises(VehicleStateConflictError):
        flow.step("start", second)
    assert flow.read("rental_orders", second).status == "Confirmed"


def test_concurrent_starts_on_same_vehicle(flow):
    """Two confirmed orders for one vehicle started at the same moment: exactly one wins."""
    orders = [flow.create(), flow.create()]
    for o in orders:
        flow.step("confirm", o)

    barrier = threading.Barrier(2)
    outcome = {}

    def start(order_id):
        barrier.wait()
        try:
            flow.step("start", order_id)
            outcome[order_id] = "started"
        except VehicleStateConflictError:
            outcome[order_id] = "conflict"

    threads = [threading.Thread(target=start, args=(o,)) for o in orders]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcome.values()) == ["conflict", "started"]
    assert flow.read("vehicles", flow.ids.vehicle_id).status == VehicleStatus.RENTED


def test_complete_refuses_to_overwrite_maintenance(flow, store):
    order_id = flow.create()
    flow.step("confirm", order_id)
    flow.step("start", order_id)
    _set_vehicle_status(store, flow.ids.vehicle_id, VehicleStatus.REPAIR)

    with pytest.raises(VehicleStateConflictError):
        flow.step("complete", order_id)
    assert flow.read("vehicles", flow.ids.vehicle_id).status == VehicleStatus.REPAIR
    assert flow.read("rental_orders", order_id).status == "InProgress"


def test_cancel_refuses_to_overwrite_repair_and_rolls_back(flow, store):
    order_id = flow.create("SAVE10")
    flow.step("confirm", order_id)
    flow.step("start", order_id)
    _set_vehicle_status(store, flow.ids.vehicle_id, VehicleStatus.REPAIR)
    with store.reading() as uow:
        history_before = len(RentalOrderService.status_history(uow, order_id))

    with pytest.raises(VehicleStateConflictError):
        flow.step("cancel", order_id, reason="Customer changed plans")

    order = flow.read("rental_orders", order_id)
    assert order.status == "InProgress"
    assert order.promotion_consumed
    assert flow.read("promotions", flow.ids.promotion_id).used_count == 1
    assert flow.read("vehicles", flow.ids.vehicle_id).status == VehicleStatus.REPAIR
    with store.reading() as uow:
        assert len(RentalOrderService.status_history(uow, order_id)) == history_before


def test_return_location_moves_vehicle(flow):
    order_id = flow.create()
    flow.step("confirm", order_id)
    flow.step("start", order_id)
    flow.step("complete", order_id, return_location="Da Nang")
    assert flow.read("vehicles", flow.ids.vehicle_id).current_location == "Da Nang"
    assert flow.read("rental_orders", order_id).return_location == "Da Nang"
