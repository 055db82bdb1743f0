from dataclasses import dataclass
from typing import Optional


@dataclass
class Customer:
    """Read-only customer master data, referenced by id from orders and invoices."""
    customer_id: int
    full_name: str
    phone: str = ""
    address: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.customer_id,
            "fullName": self.full_name,
            "phone": self.phone,
            "address": self.address,
        }


@dataclass
class Employee:
    """Staff member handling a rental order."""
    employee_id: int
    full_name: str
    phone: str = ""

    def to_dict(self) -> dict:
        return {"id": self.employee_id, "fullName": self.full_name, "phone": self.phone}


@dataclass
class UserAccount:
    """
    Login account for the back office. The password is stored as a werkzeug
    hash; `role` gates the invoice/payment endpoints.
    """
    user_id: int
    username: str
    password_hash: str
    role: str  # "admin" | "staff" | "accountant"
    employee_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "username": self.username,
            "role": self.role,
            "employeeId": self.employee_id,
        }
