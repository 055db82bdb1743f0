import copy
import logging
import os
import pickle
import threading
from collections import defaultdict
from typing import Callable, Optional

from .invoice import Invoice, InvoiceDetail, Payment
from .promotion import Promotion, promotion_class_for
from .rental import RentalOrder, RentalStatusHistory
from .user import Customer, Employee, UserAccount
from .vehicle import Vehicle, VehicleHistory
from ..utils.constants import VehicleStatus
from ..utils.money import to_decimal

logger = logging.getLogger(__name__)

# table name -> (row type, primary key attribute)
TABLES = {
    "users": (UserAccount, "user_id"),
    "customers": (Customer, "customer_id"),
    "employees": (Employee, "employee_id"),
    "vehicles": (Vehicle, "vehicle_id"),
    "vehicle_histories": (VehicleHistory, "history_id"),
    "promotions": (Promotion, "promotion_id"),
    "rental_orders": (RentalOrder, "order_id"),
    "status_histories": (RentalStatusHistory, "history_id"),
    "invoices": (Invoice, "invoice_id"),
    "invoice_details": (InvoiceDetail, "detail_id"),
    "payments": (Payment, "payment_id"),
}

# table name -> attributes that must be unique across live rows
UNIQUE = {
    "users": ("username",),
    "promotions": ("code",),
    "rental_orders": ("order_number",),
    "invoices": ("invoice_number", "rental_order_id"),
    "payments": ("payment_number",),
}

_handlers: dict = defaultdict(list)


def subscribe(event_type):
    """Register `fn(uow, event)` to run synchronously when `event_type` is published."""
    def deco(fn):
        _handlers[event_type].append(fn)
        return fn

    return deco


class IntegrityError(Exception):
    """A unique constraint was violated on insert."""

    def __init__(self, table: str, column: str, value) -> None:
        self.table = table
        self.column = column
        self.value = value
        super().__init__(f"duplicate {table}.{column}={value!r}")


class Store:
    """
    In-process tables of dataclass rows keyed by integer id, optionally
    persisted to a pickle file. Writers go through `transaction()`; the
    store lock is held for the whole unit of work, which gives every
    read-modify-write the same isolation as a row lock.
    """

    def __init__(self, path: Optional[str | os.PathLike] = None):
        self.path = str(path) if path else None
        self.tables: dict[str, dict] = {name: {} for name in TABLES}
        self.sequences: dict[str, int] = {name: 0 for name in TABLES}
        self._rw = threading.RLock()

        if self.path:
            logger.info("Using data file %s", self.path)
            self._load()

    # ---------- Persistence ----------
    def _load(self):
        """Load tables from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except Exception as e:
            logger.warning("Load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict) and isinstance(data.get("tables"), dict):
            for name in TABLES:
                self.tables[name] = data["tables"].get(name, {}) or {}
                self.sequences[name] = int(data.get("sequences", {}).get(name, 0) or 0)
            logger.info(
                "Loaded: %s",
                ", ".join(f"{name}={len(rows)}" for name, rows in self.tables.items() if rows),
            )
        else:
            # Incompatible data format: back up the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            logger.warning("Incompatible store (%s); backed up to %s. Starting empty.",
                           type(data).__name__, bak)

    def _dump(self):
        """Write the tables to the pickle file safely (atomic replace)."""
        if not self.path:
            return
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        tmp = self.path + ".tmp"
        payload = {"tables": self.tables, "sequences": self.sequences}
        with open(tmp, "wb") as f:
            pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save."""
        with self._rw:
            logger.debug("Saving to %s", self.path)
            self._dump()

    def clear(self):
        with self._rw:
            for name in TABLES:
                self.tables[name] = {}
                self.sequences[name] = 0
            self._dump()

    def _snapshot(self) -> tuple:
        return copy.deepcopy(self.tables), dict(self.sequences)

    def _restore(self, snapshot: tuple):
        tables, sequences = snapshot
        self.tables = tables
        self.sequences = sequences

    # ---------- Transactions ----------
    def transaction(self) -> "UnitOfWork":
        return UnitOfWork(self)

    def reading(self) -> "UnitOfWork":
        """Read-only unit: holds the lock for a consistent view, takes no snapshot."""
        return UnitOfWork(self, read_only=True)

    # ---------- Master data (seeding / admin scripts) ----------
    def _insert(self, table: str, build: Callable[[int], object]):
        with self.transaction() as uow:
            row = build(uow.next_id(table))
            uow.add(table, row)
            uow.commit()
        return row

    def create_customer(self, full_name: str, phone: str = "", address: str = "") -> Customer:
        return self._insert("customers", lambda i: Customer(i, full_name, phone, address))

    def create_employee(self, full_name: str, phone: str = "") -> Employee:
        return self._insert("employees", lambda i: Employee(i, full_name, phone))

    def create_user(self, username: str, password_hash: str, role: str,
                    employee_id: Optional[int] = None) -> UserAccount:
        return self._insert(
            "users", lambda i: UserAccount(i, username, password_hash, role, employee_id))

    def create_vehicle(self, data: dict) -> Vehicle:
        """Create a vehicle row from a plain dict (seeding and tests)."""
        return self._insert("vehicles", lambda i: Vehicle(
            vehicle_id=i,
            code=data.get("code", ""),
            model=data.get("model", ""),
            daily_rental_price=to_decimal(data.get("daily_rental_price") or 0),
            status=data.get("status", VehicleStatus.AVAILABLE),
            current_location=data.get("current_location"),
        ))

    def create_promotion(self, data: dict) -> Promotion:
        """Create a promotion row; `data["type"]` selects the subclass."""
        cls = promotion_class_for(data["type"])
        fields = {k: v for k, v in data.items() if k != "type"}
        return self._insert("promotions", lambda i: cls(promotion_id=i, **fields))

    def find_user(self, username: str) -> Optional[UserAccount]:
        """Find a user by username."""
        for u in self.tables["users"].values():
            if u.username == username:
                return u
        return None


class UnitOfWork:
    """
    Explicit transaction over a Store.

    Entering takes the store lock and a snapshot; `commit()` persists and
    ends the unit; leaving without a commit, or with an exception, restores
    the snapshot. Domain events published inside the unit are dispatched to
    subscribers immediately and roll back with everything else.

    A read-only unit skips the snapshot and refuses to commit.
    """

    def __init__(self, store: Store, read_only: bool = False):
        self.store = store
        self.read_only = read_only
        self._snapshot = None
        self._done = False

    def __enter__(self) -> "UnitOfWork":
        self.store._rw.acquire()
        if not self.read_only:
            self._snapshot = self.store._snapshot()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if not self._done:
                self.rollback()
        finally:
            self.store._rw.release()
        return False

    def commit(self):
        if self.read_only:
            raise RuntimeError("commit() on a read-only unit of work")
        self.store._dump()
        self._done = True
        self._snapshot = None

    def rollback(self):
        if self._done:
            return
        self._done = True
        if self.read_only:
            return
        self.store._restore(self._snapshot)
        logger.debug("Transaction rolled back")

    # ---------- reads ----------
    def get(self, table: str, row_id) -> Optional[object]:
        try:
            key = int(row_id)
        except (TypeError, ValueError):
            return None
        return self.store.tables[table].get(key)

    def query(self, table: str, predicate: Optional[Callable] = None) -> list:
        rows = self.store.tables[table].values()
        if predicate is None:
            return list(rows)
        return [r for r in rows if predicate(r)]

    def find_one(self, table: str, predicate: Callable) -> Optional[object]:
        for r in self.store.tables[table].values():
            if predicate(r):
                return r
        return None

    # ---------- writes ----------
    def next_id(self, table: str) -> int:
        self.store.sequences[table] += 1
        return self.store.sequences[table]

    def add(self, table: str, row) -> object:
        """Insert a row; enforces the table's unique columns."""
        _, pk = TABLES[table]
        rows = self.store.tables[table]
        for column in UNIQUE.get(table, ()):
            value = getattr(row, column)
            for other in rows.values():
                if getattr(other, "is_deleted", False):
                    continue
                if getattr(other, column) == value:
                    raise IntegrityError(table, column, value)
        rows[getattr(row, pk)] = row
        return row

    def publish(self, event):
        for handler in _handlers.get(type(event), ()):
            handler(self, event)

