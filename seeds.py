from datetime import date
from decimal import Decimal

from drivenow import create_app
from drivenow.models.store import Store
from drivenow.services.user_service import UserService, generate_hash
from drivenow.utils.constants import PromotionType, Role
from drivenow.utils.context import current_store


def ensure_user(store: Store, username: str, password: str, role: str, employee_id=None):
    """
    Ensure a user with `username` exists in the store.
    - If exists: update password hash and role (idempotent).
    - If not:   create a new user.
    """
    u = store.find_user(username)
    if u:
        u.password_hash = generate_hash(password)
        u.role = role
        return u
    return UserService.create_user(store, username, password, role, employee_id)


def main():
    app = create_app()
    with app.app_context():
        store = current_store()

        # ---- People (create only if none exist) ----
        if not store.tables["employees"]:
            store.create_employee("Nguyen Van An", "0901000001")
            store.create_employee("Tran Thi Binh", "0901000002")
        if not store.tables["customers"]:
            store.create_customer("Le Van Cuong", "0912000001", "12 Le Loi, District 1, HCMC")
            store.create_customer("Pham Thi Dung", "0912000002", "45 Tran Hung Dao, District 5, HCMC")

        # ---- Back-office accounts ----
        ensure_user(store, "admin", "Admin123", Role.ADMIN)
        ensure_user(store, "staff", "Staff123", Role.STAFF, employee_id=1)
        ensure_user(store, "accountant", "Account123", Role.ACCOUNTANT, employee_id=2)

        # ---- Demo vehicles ----
        if not store.tables["vehicles"]:
            store.create_vehicle({"code": "51A-123.45", "model": "Toyota Vios",
                                  "daily_rental_price": "500000", "current_location": "HCMC - District 1"})
            store.create_vehicle({"code": "51G-678.90", "model": "Honda City",
                                  "daily_rental_price": "550000", "current_location": "HCMC - District 1"})
            store.create_vehicle({"code": "30E-246.80", "model": "Mazda CX-5",
                                  "daily_rental_price": "1200000", "current_location": "Hanoi - Hoan Kiem"})
            store.create_vehicle({"code": "43A-135.79", "model": "Ford Transit",
                                  "daily_rental_price": "1800000", "current_location": "Da Nang",
                                  "status": "Maintenance"})

        # ---- Promotions ----
        if not store.tables["promotions"]:
            year = date.today().year
            store.create_promotion({
                "type": PromotionType.PERCENTAGE, "code": "SUMMER10", "name": "Summer 10%",
                "value": Decimal("10"), "start_date": date(year, 1, 1), "end_date": date(year, 12, 31),
            })
            store.create_promotion({
                "type": PromotionType.FIXED_AMOUNT, "code": "BIGTRIP", "name": "200k off trips over 2M",
                "value": Decimal("200000"), "min_amount": Decimal("2000000"),
                "start_date": date(year, 1, 1), "end_date": date(year, 12, 31), "usage_limit": 50,
            })

        store.save()

        print("Seed complete.")
        print("Admin login:      admin / Admin123")
        print("Staff login:      staff / Staff123")
        print("Accountant login: accountant / Account123")


if __name__ == "__main__":
    main()
