# drivenow/utils/constants.py

"""
Global constants for roles, statuses, and document numbering.
These constants are imported by both models and services.
"""


class Role:
    ADMIN = "admin"
    STAFF = "staff"
    ACCOUNTANT = "accountant"


class RentalStatus:
    DRAFT = "Draft"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    INVOICED = "Invoiced"
    CANCELLED = "Cancelled"

    ALL = (DRAFT, CONFIRMED, IN_PROGRESS, COMPLETED, INVOICED, CANCELLED)
    TERMINAL = (INVOICED, CANCELLED)


class VehicleStatus:
    AVAILABLE = "Available"
    RENTED = "Rented"
    MAINTENANCE = "Maintenance"
    REPAIR = "Repair"
    OUT_OF_SERVICE = "OutOfService"
    IN_TRANSIT = "InTransit"


class VehicleHistoryAction:
    RENTED = "Rented"
    RETURNED = "Returned"
    RENTAL_CANCELLED = "RentalCancelled"


class InvoiceStatus:
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"

    ALL = (UNPAID, PARTIAL, PAID, OVERDUE, CANCELLED)
    EDITABLE = (UNPAID, PARTIAL)


class PaymentMethod:
    CASH = "Cash"
    BANK_TRANSFER = "BankTransfer"
    CREDIT_CARD = "CreditCard"

    ALL = (CASH, BANK_TRANSFER, CREDIT_CARD)


class PromotionType:
    PERCENTAGE = "Percentage"
    FIXED_AMOUNT = "FixedAmount"


class PromotionFailure:
    NOT_FOUND = "NotFound"
    EXPIRED = "Expired"
    BELOW_MINIMUM_AMOUNT = "BelowMinimumAmount"
    USAGE_LIMIT_REACHED = "UsageLimitReached"


class RecordStatus:
    ACTIVE = "Active"
    INACTIVE = "Inactive"


# --- Document number prefixes: <prefix><yyyymmdd><seq:03d> ---
ORDER_NUMBER_PREFIX = "RO"
INVOICE_NUMBER_PREFIX = "HD"
PAYMENT_NUMBER_PREFIX = "PT"
