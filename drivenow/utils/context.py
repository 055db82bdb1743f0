"""Per-app objects reachable from a request."""
from datetime import date
from decimal import Decimal

from flask import current_app

from ..models.store import Store
from .filters import local_today


def current_store() -> Store:
    return current_app.extensions["drivenow.store"]


def business_tz() -> str:
    return current_app.config["TIMEZONE"]


def business_today() -> date:
    return local_today(business_tz())


def default_tax_rate() -> Decimal:
    return Decimal(str(current_app.config["DEFAULT_TAX_RATE"]))
