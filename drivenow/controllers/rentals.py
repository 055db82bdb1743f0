from flask import Blueprint

from ..services.common import as_datetime
from ..services.pricing_service import PricingEngine
from ..services.rental_service import RentalOrderService
from ..utils.constants import RentalStatus, Role
from ..utils.context import business_today, business_tz, current_store
from ..utils.decorators import current_actor, login_required, role_required
from ..utils.payload import Payload, list_args, status_arg
from ..utils.responses import ok, paged
from .invoices import issue_invoice

bp = Blueprint("rentals", __name__, url_prefix="/RentalOrders")

FRONT_DESK = (Role.ADMIN, Role.STAFF)


def _order_fields(p: Payload, required: bool) -> dict:
    return {
        "customer_id": p.get_int("customerId", required),
        "vehicle_id": p.get_int("vehicleId", required),
        "employee_id": p.get_int("employeeId", required),
        "start_date": p.get_date("startDate", required),
        "end_date": p.get_date("endDate", required),
        "pickup_location": p.get_str("pickupLocation"),
        "return_location": p.get_str("returnLocation"),
        "promotion_code": p.get_str("promotionCode"),
        "deposit_amount": p.get_decimal("depositAmount"),
        "notes": p.get_str("notes"),
    }


@bp.get("")
@login_required
def list_orders():
    """Paged list: ?status= plus the common list args."""
    status = status_arg(RentalStatus.ALL)
    paging = list_args()

    with current_store().reading() as uow:
        rows, total = RentalOrderService.list_orders(uow, status=status, **paging)
        return ok(paged(rows, total, paging, lambda o: o.to_dict()))


@bp.post("")
@role_required(*FRONT_DESK)
def create_order():
    p = Payload.from_request()
    fields = _order_fields(p, required=True)
    p.validate()
    if fields["deposit_amount"] is None:
        fields.pop("deposit_amount")

    with current_store().transaction() as uow:
        order = RentalOrderService.create(
            uow, actor=current_actor(), today=business_today(), **fields)
        uow.commit()
        return ok(order.to_dict(), 201)


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id):
    """Order with its customer, employee and vehicle (the vehicle version feeds /start)."""
    with current_store().reading() as uow:
        order = RentalOrderService.get(uow, order_id)
        data = order.to_dict()
        for key, table, row_id in (
                ("customer", "customers", order.customer_id),
                ("employee", "employees", order.employee_id),
                ("vehicle", "vehicles", order.vehicle_id),
        ):
            row = uow.get(table, row_id)
            data[key] = row.to_dict() if row is not None else None
        return ok(data)


@bp.put("/<int:order_id>")
@role_required(*FRONT_DESK)
def update_order(order_id):
    p = Payload.from_request()
    fields = _order_fields(p, required=False)
    p.validate()

    with current_store().transaction() as uow:
        order = RentalOrderService.update(uow, order_id, actor=current_actor(), **fields)
        uow.commit()
        return ok(order.to_dict())


@bp.delete("/<int:order_id>")
@role_required(*FRONT_DESK)
def delete_order(order_id):
    with current_store().transaction() as uow:
        RentalOrderService.delete(uow, order_id, actor=current_actor())
        uow.commit()
        return ok({"id": order_id})


@bp.post("/calculate-price")
@login_required
def calculate_price():
    p = Payload.from_request()
    vehicle_id = p.get_int("vehicleId", required=True)
    start = p.get_date("startDate", required=True)
    end = p.get_date("endDate", required=True)
    code = p.get_str("promotionCode")
    p.validate()

    with current_store().reading() as uow:
        quote = PricingEngine.preview(uow, vehicle_id, start, end, code)
        return ok(quote.to_dict())


@bp.post("/<int:order_id>/confirm")
@role_required(*FRONT_DESK)
def confirm_order(order_id):
    with current_store().transaction() as uow:
        order = RentalOrderService.confirm(uow, order_id, actor=current_actor())
        uow.commit()
        return ok(order.to_dict())


@bp.post("/<int:order_id>/start")
@role_required(*FRONT_DESK)
def start_order(order_id):
    p = Payload.from_request()
    version = p.get_int("vehicleVersion")
    p.validate()

    with current_store().transaction() as uow:
        order = RentalOrderService.start(
            uow, order_id, actor=current_actor(), expected_vehicle_version=version)
        uow.commit()
        return ok(order.to_dict())


@bp.post("/<int:order_id>/complete")
@role_required(*FRONT_DESK)
def complete_order(order_id):
    p = Payload.from_request()
    actual_end = p.get_datetime("actualEndDate")
    return_location = p.get_str("returnLocation")
    p.validate()

    with current_store().transaction() as uow:
        order = RentalOrderService.complete(
            uow,
            order_id,
            actor=current_actor(),
            actual_end_date=as_datetime(actual_end, business_tz()) if actual_end else None,
            return_location=return_location,
        )
        uow.commit()
        return ok(order.to_dict())


@bp.post("/<int:order_id>/cancel")
@role_required(*FRONT_DESK)
def cancel_order(order_id):
    p = Payload.from_request()
    reason = p.get_str("reason")
    p.validate()

    with current_store().transaction() as uow:
        order = RentalOrderService.cancel(uow, order_id, actor=current_actor(), reason=reason)
        uow.commit()
        return ok(order.to_dict())


@bp.get("/<int:order_id>/status-history")
@login_required
def status_history(order_id):
    with current_store().reading() as uow:
        rows = RentalOrderService.status_history(uow, order_id)
        return ok([h.to_dict() for h in rows])


@bp.post("/<int:order_id>/create-invoice")
@role_required(Role.ADMIN, Role.ACCOUNTANT)
def create_invoice(order_id):
    return issue_invoice(order_id, Payload.from_request())
