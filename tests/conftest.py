import pathlib
import sys
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest

from drivenow import create_app
from drivenow.models.store import Store
from drivenow.services.invoice_service import InvoiceGenerator
from drivenow.services.payment_service import PaymentLedger
from drivenow.services.rental_service import RentalOrderService
from drivenow.utils.constants import PaymentMethod, PromotionType

# Three rental days: 2030-06-01 -> 2030-06-04
START = date(2030, 6, 1)
END = date(2030, 6, 4)


def seed(store: Store) -> SimpleNamespace:
    """One customer, one employee, a 500,000/day vehicle and a 10% promotion (no cap)."""
    customer = store.create_customer("Le Van Cuong", "0912000001", "12 Le Loi, HCMC")
    employee = store.create_employee("Nguyen Van An", "0901000001")
    vehicle = store.create_vehicle({
        "code": "51A-123.45", "model": "Toyota Vios", "daily_rental_price": "500000",
        "current_location": "HCMC",
    })
    promotion = store.create_promotion({
        "type": PromotionType.PERCENTAGE, "code": "SAVE10", "name": "Save 10%",
        "value": Decimal("10"), "start_date": date(2030, 1, 1), "end_date": date(2030, 12, 31),
    })
    return SimpleNamespace(
        customer_id=customer.customer_id,
        employee_id=employee.employee_id,
        vehicle_id=vehicle.vehicle_id,
        promotion_id=promotion.promotion_id,
    )


class Flow:
    """
    Drives orders through the lifecycle, one committed unit of work per step.
    Returns ids only: rows read before a rolled-back unit are stale copies.
    """

    def __init__(self, store: Store, ids: SimpleNamespace):
        self.store = store
        self.ids = ids

    def create(self, promotion_code=None, vehicle_id=None, start=START, end=END, **kw) -> int:
        with self.store.transaction() as uow:
            order = RentalOrderService.create(
                uow,
                customer_id=self.ids.customer_id,
                vehicle_id=vehicle_id or self.ids.vehicle_id,
                employee_id=self.ids.employee_id,
                start_date=start,
                end_date=end,
                pickup_location="HCMC - District 1",
                return_location="HCMC - District 1",
                promotion_code=promotion_code,
                actor="staff",
                **kw,
            )
            uow.commit()
            return order.order_id

    def step(self, name: str, order_id: int, **kw):
        with self.store.transaction() as uow:
            getattr(RentalOrderService, name)(uow, order_id, actor="staff", **kw)
            uow.commit()

    def completed(self, promotion_code=None) -> int:
        order_id = self.create(promotion_code)
        for name in ("confirm", "start", "complete"):
            self.step(name, order_id)
        return order_id

    def invoice(self, order_id: int, **kw) -> int:
        kw.setdefault("invoice_date", date(2030, 6, 5))
        kw.setdefault("due_date", date(2030, 6, 12))
        with self.store.transaction() as uow:
            inv = InvoiceGenerator.generate(uow, order_id, actor="accountant", **kw)
            uow.commit()
            return inv.invoice_id

    def pay(self, invoice_id: int, amount, method=PaymentMethod.CASH) -> int:
        with self.store.transaction() as uow:
            p = PaymentLedger.apply(uow, invoice_id, amount=Decimal(amount), payment_method=method,
                                    payment_date=date(2030, 6, 6), actor="accountant")
            uow.commit()
            return p.payment_id

    def read(self, table: str, row_id):
        with self.store.reading() as uow:
            return uow.get(table, row_id)


@pytest.fixture
def store():
    """A fresh in-memory store (no data file)."""
    return Store()


@pytest.fixture
def ids(store):
    return seed(store)


@pytest.fixture
def flow(store, ids):
    return Flow(store, ids)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATA_PATH": None,
        "LOGIN_DISABLED": True,
    })
    yield app


@pytest.fixture
def app_store(app):
    return app.extensions["drivenow.store"]


@pytest.fixture
def app_ids(app_store):
    return seed(app_store)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c
