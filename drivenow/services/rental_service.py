"""Rental order lifecycle: the status state machine and its side effects."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from drivenow.exceptions import (
    CustomerNotFoundError,
    EmployeeNotFoundError,
    InvalidTransitionError,
    PromotionRejectedError,
    RentalOrderNotFoundError,
    ValidationError,
)
from drivenow.models.rental import (
    PromotionConsumed,
    PromotionReleased,
    RentalOrder,
    RentalStatusHistory,
)
from drivenow.models.store import UnitOfWork
from drivenow.services.common import as_date, next_document_number, paginate
from drivenow.services.pricing_service import PricingEngine
from drivenow.services.vehicle_service import VehicleAvailabilityGuard
from drivenow.utils.constants import ORDER_NUMBER_PREFIX, RentalStatus, VehicleHistoryAction
from drivenow.utils.filters import local_today, utc_now
from drivenow.utils.money import ZERO, in_money_range

logger = logging.getLogger(__name__)

S = RentalStatus

# (current status, event) -> next status. Anything missing is rejected.
TRANSITIONS = {
    (S.DRAFT, "update"): S.DRAFT,
    (S.DRAFT, "confirm"): S.CONFIRMED,
    (S.CONFIRMED, "start"): S.IN_PROGRESS,
    (S.IN_PROGRESS, "complete"): S.COMPLETED,
    (S.COMPLETED, "create_invoice"): S.INVOICED,
    (S.DRAFT, "cancel"): S.CANCELLED,
    (S.CONFIRMED, "cancel"): S.CANCELLED,
    (S.IN_PROGRESS, "cancel"): S.CANCELLED,
    (S.COMPLETED, "cancel"): S.CANCELLED,
}

SORT_KEYS = {
    "ordernumber": lambda o: o.order_number,
    "startdate": lambda o: o.start_date,
    "totalamount": lambda o: o.total_amount,
}


class RentalOrderService:
    """
    Create/update/delete while Draft, then confirm, start, complete and
    cancel. Every status change appends one RentalStatusHistory row.

    Callers own the unit of work: open `store.transaction()`, call one
    operation, `commit()`.
    """

    # --------------- Queries ---------------
    @staticmethod
    def get(uow: UnitOfWork, order_id) -> RentalOrder:
        order = uow.get("rental_orders", order_id)
        if order is None or order.is_deleted:
            raise RentalOrderNotFoundError(f"Error: rental order with ID '{order_id}' not found")
        return order

    @staticmethod
    def list_orders(uow: UnitOfWork, *, status: Optional[str] = None, search: Optional[str] = None,
                    sort_by: Optional[str] = None, descending: bool = False,
                    page: int = 1, page_size: int = 20) -> tuple[list[RentalOrder], int]:
        """
        Paged order list. `search` matches order number, customer name or
        vehicle code (case-insensitive). Default order is newest first.
        """
        rows = uow.query("rental_orders", lambda o: not o.is_deleted)
        if status:
            rows = [o for o in rows if o.status == status.strip()]

        kw = (search or "").strip().lower()
        if kw:
            def match(o):
                customer = uow.get("customers", o.customer_id)
                vehicle = uow.get("vehicles", o.vehicle_id)
                return (
                    kw in o.order_number.lower()
                    or (customer is not None and kw in customer.full_name.lower())
                    or (vehicle is not None and kw in vehicle.code.lower())
                )

            rows = [o for o in rows if match(o)]

        key = SORT_KEYS.get((sort_by or "").lower())
        if key is None:
            rows.sort(key=lambda o: (o.created_date, o.order_id), reverse=True)
        else:
            rows.sort(key=key, reverse=descending)

        return paginate(rows, page, page_size)

    @staticmethod
    def status_history(uow: UnitOfWork, order_id) -> list[RentalStatusHistory]:
        """Status history rows, newest first."""
        order = RentalOrderService.get(uow, order_id)
        rows = uow.query("status_histories", lambda h: h.rental_order_id == order.order_id)
        rows.sort(key=lambda h: (h.changed_date, h.history_id), reverse=True)
        return rows

    # --------------- Commands ---------------
    @staticmethod
    def create(
            uow: UnitOfWork,
            *,
            customer_id: int,
            vehicle_id: int,
            employee_id: int,
            start_date: date,
            end_date: date,
            pickup_location: str = "",
            return_location: str = "",
            promotion_code: Optional[str] = None,
            deposit_amount: Decimal = ZERO,
            notes: Optional[str] = None,
            actor: Optional[str] = None,
            today: Optional[date] = None,
    ) -> RentalOrder:
        """
        Create a Draft order priced from the vehicle's current daily rate.
        The vehicle must exist but does not have to be Available yet.
        An explicitly supplied promotion code that fails validation rejects
        the order (PromotionRejectedError).
        """
        RentalOrderService._check_dates(start_date, end_date)
        RentalOrderService._check_deposit(deposit_amount)
        RentalOrderService._check_parties(uow, customer_id, employee_id)
        vehicle = VehicleAvailabilityGuard.get_vehicle(uow, vehicle_id)

        code = (promotion_code or "").strip() or None
        quote, check = PricingEngine.quote_with_code(
            vehicle.daily_rental_price, start_date, end_date, uow, code)
        if check is not None and not check.is_valid:
            raise PromotionRejectedError(check.reason, check.message)

        now = utc_now()
        order = RentalOrder(
            order_id=uow.next_id("rental_orders"),
            order_number=next_document_number(
                uow, "rental_orders", "order_number", ORDER_NUMBER_PREFIX, today or local_today()),
            customer_id=int(customer_id),
            vehicle_id=vehicle.vehicle_id,
            employee_id=int(employee_id),
            start_date=as_date(start_date),
            end_date=as_date(end_date),
            pickup_location=pickup_location or "",
            return_location=return_location or "",
            daily_rental_price=quote.daily_rental_price,
            total_days=quote.total_days,
            sub_total=quote.sub_total,
            discount_amount=quote.discount_amount,
            promotion_code=check.promotion.code if check is not None else None,
            total_amount=quote.total_amount,
            deposit_amount=deposit_amount,
            status=RentalStatus.DRAFT,
            notes=notes,
            created_date=now,
            created_by=actor,
        )
        uow.add("rental_orders", order)
        RentalOrderService._append_history(uow, order, None, RentalStatus.DRAFT, actor,
                                           "Rental order created", now)
        logger.info("Rental order %s created (total %s)", order.order_number, order.total_amount)
        return order

    @staticmethod
    def update(uow: UnitOfWork, order_id, *, actor: Optional[str] = None, **changes) -> RentalOrder:
        """
        Edit a Draft order. Keys left out (or None) keep their value.
        Pricing is recomputed when the vehicle, dates or promotion change;
        `promotion_code=""` removes the promotion.
        """
        order = RentalOrderService.get(uow, order_id)
        RentalOrderService._target(order, "update")

        customer_id = changes.get("customer_id") or order.customer_id
        employee_id = changes.get("employee_id") or order.employee_id
        vehicle_id = changes.get("vehicle_id") or order.vehicle_id
        start_date = as_date(changes.get("start_date") or order.start_date)
        end_date = as_date(changes.get("end_date") or order.end_date)
        promotion_code = changes.get("promotion_code")
        if promotion_code is None:
            promotion_code = order.promotion_code
        promotion_code = (promotion_code or "").strip() or None
        deposit = changes.get("deposit_amount")
        if deposit is None:
            deposit = order.deposit_amount

        RentalOrderService._check_dates(start_date, end_date)
        RentalOrderService._check_deposit(deposit)
        RentalOrderService._check_parties(uow, customer_id, employee_id)
        vehicle = VehicleAvailabilityGuard.get_vehicle(uow, vehicle_id)

        repriced = (
            vehicle.vehicle_id != order.vehicle_id
            or start_date != order.start_date
            or end_date != order.end_date
            or promotion_code != order.promotion_code
        )
        if repriced:
            quote, check = PricingEngine.quote_with_code(
                vehicle.daily_rental_price, start_date, end_date, uow, promotion_code)
            if check is not None and not check.is_valid:
                raise PromotionRejectedError(check.reason, check.message)
            order.daily_rental_price = quote.daily_rental_price
            order.total_days = quote.total_days
            order.sub_total = quote.sub_total
            order.discount_amount = quote.discount_amount
            order.total_amount = quote.total_amount
            order.promotion_code = check.promotion.code if check is not None else None

        order.customer_id = int(customer_id)
        order.employee_id = int(employee_id)
        order.vehicle_id = vehicle.vehicle_id
        order.start_date = start_date
        order.end_date = end_date
        order.deposit_amount = deposit
        for attr in ("pickup_location", "return_location", "notes"):
            if changes.get(attr) is not None:
                setattr(order, attr, changes[attr])
        order.modified_date = utc_now()
        order.modified_by = actor
        return order

    @staticmethod
    def delete(uow: UnitOfWork, order_id, *, actor: Optional[str] = None) -> RentalOrder:
        """Soft-delete a Draft order; its history rows stay."""
        order = RentalOrderService.get(uow, order_id)
        if order.status != RentalStatus.DRAFT:
            raise InvalidTransitionError(
                f"Error: only Draft orders can be deleted (order is {order.status})")
        order.is_deleted = True
        order.modified_date = utc_now()
        order.modified_by = actor
        logger.info("Rental order %s deleted", order.order_number)
        return order

    @staticmethod
    def confirm(uow: UnitOfWork, order_id, *, actor: Optional[str] = None) -> RentalOrder:
        """Draft -> Confirmed. Consumes one use of the order's promotion."""
        order = RentalOrderService.get(uow, order_id)
        target = RentalOrderService._target(order, "confirm")
        VehicleAvailabilityGuard.ensure_available(uow, order.vehicle_id)

        if order.promotion_code and not order.promotion_consumed:
            uow.publish(PromotionConsumed(order.order_id, order.promotion_code))
            order.promotion_consumed = True

        return RentalOrderService._apply(uow, order, target, actor, "Rental order confirmed")

    @staticmethod
    def start(uow: UnitOfWork, order_id, *, actor: Optional[str] = None,
              expected_vehicle_version: Optional[int] = None,
              when: Optional[datetime] = None) -> RentalOrder:
        """Confirmed -> InProgress. The vehicle goes Available -> Rented."""
        order = RentalOrderService.get(uow, order_id)
        target = RentalOrderService._target(order, "start")
        VehicleAvailabilityGuard.claim(
            uow,
            order.vehicle_id,
            expected_version=expected_vehicle_version,
            location=order.pickup_location,
            reference_id=order.order_id,
            description=f"Rental order {order.order_number} - vehicle picked up",
        )
        order.actual_start_date = when or utc_now()
        return RentalOrderService._apply(uow, order, target, actor, "Customer picked up vehicle")

    @staticmethod
    def complete(uow: UnitOfWork, order_id, *, actor: Optional[str] = None,
                 actual_end_date: Optional[datetime] = None,
                 return_location: Optional[str] = None) -> RentalOrder:
        """InProgress -> Completed. The vehicle goes back to Available."""
        order = RentalOrderService.get(uow, order_id)
        target = RentalOrderService._target(order, "complete")
        if return_location and return_location.strip():
            order.return_location = return_location.strip()
        VehicleAvailabilityGuard.release(
            uow,
            order.vehicle_id,
            action=VehicleHistoryAction.RETURNED,
            location=order.return_location,
            reference_id=order.order_id,
            description=f"Rental order {order.order_number} - vehicle returned",
        )
        order.actual_end_date = actual_end_date or utc_now()
        if order.actual_start_date and order.actual_end_date < order.actual_start_date:
            raise ValidationError(errors={"actualEndDate": "Actual end date is before the actual start date"})
        return RentalOrderService._apply(uow, order, target, actor, "Customer returned vehicle")

    @staticmethod
    def cancel(uow: UnitOfWork, order_id, *, actor: Optional[str] = None,
               reason: Optional[str] = None) -> RentalOrder:
        """
        Any non-terminal status -> Cancelled.
        Frees the vehicle if the rental was under way and gives back the
        promotion use taken at confirmation.
        """
        order = RentalOrderService.get(uow, order_id)
        target = RentalOrderService._target(order, "cancel")

        if order.status == RentalStatus.IN_PROGRESS:
            VehicleAvailabilityGuard.release(
                uow,
                order.vehicle_id,
                action=VehicleHistoryAction.RENTAL_CANCELLED,
                reference_id=order.order_id,
                description=f"Rental order {order.order_number} cancelled",
            )
        if order.promotion_consumed and order.promotion_code:
            uow.publish(PromotionReleased(order.order_id, order.promotion_code))
            order.promotion_consumed = False

        notes = (reason or "").strip() or "Rental order cancelled"
        return RentalOrderService._apply(uow, order, target, actor, notes)

    @staticmethod
    def mark_invoiced(uow: UnitOfWork, order: RentalOrder, *, actor: Optional[str] = None,
                      notes: Optional[str] = None) -> RentalOrder:
        """Completed -> Invoiced; called by InvoiceGenerator once the invoice exists."""
        target = RentalOrderService._target(order, "create_invoice")
        return RentalOrderService._apply(uow, order, target, actor, notes or "Invoice issued")

    @staticmethod
    def ensure_can_invoice(order: RentalOrder) -> None:
        RentalOrderService._target(order, "create_invoice")

    # --------------- internals ---------------
    @staticmethod
    def _target(order: RentalOrder, event: str) -> str:
        target = TRANSITIONS.get((order.status, event))
        if target is None:
            raise InvalidTransitionError(
                f"Error: cannot {event.replace('_', ' ')} a rental order in status {order.status}")
        return target

    @staticmethod
    def _apply(uow: UnitOfWork, order: RentalOrder, target: str, actor: Optional[str],
               notes: Optional[str]) -> RentalOrder:
        now = utc_now()
        old = order.status
        order.status = target
        order.modified_date = now
        order.modified_by = actor
        RentalOrderService._append_history(uow, order, old, target, actor, notes, now)
        logger.info("Rental order %s: %s -> %s", order.order_number, old, target)
        return order

    @staticmethod
    def _append_history(uow: UnitOfWork, order: RentalOrder, old: Optional[str], new: str,
                        actor: Optional[str], notes: Optional[str], when: datetime):
        uow.add("status_histories", RentalStatusHistory(
            history_id=uow.next_id("status_histories"),
            rental_order_id=order.order_id,
            old_status=old,
            new_status=new,
            changed_date=when,
            changed_by=actor,
            notes=notes,
        ))

    @staticmethod
    def _check_dates(start_date, end_date):
        if start_date is None or end_date is None:
            raise ValidationError(errors={"startDate": "Start and end dates are required"})
        if as_date(end_date) < as_date(start_date):
            raise ValidationError(errors={"endDate": "End date must not be before start date"})

    @staticmethod
    def _check_deposit(deposit_amount: Decimal):
        if deposit_amount < ZERO:
            raise ValidationError(errors={"depositAmount": "Deposit must not be negative"})
        if not in_money_range(deposit_amount):
            raise ValidationError(errors={"depositAmount": "Deposit is too large"})

    @staticmethod
    def _check_parties(uow: UnitOfWork, customer_id, employee_id):
        if uow.get("customers", customer_id) is None:
            raise CustomerNotFoundError(f"Error: customer with ID '{customer_id}' not found")
        if uow.get("employees", employee_id) is None:
            raise EmployeeNotFoundError(f"Error: employee with ID '{employee_id}' not found")
