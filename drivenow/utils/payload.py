"""Request body parsing.

Each accessor reads one camelCase field, converts it and records a field
error instead of raising, so a request reports every bad field at once.
Call `validate()` before touching any state.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from flask import current_app, request

from ..exceptions import ValidationError
from .money import to_decimal


def _as_date(raw) -> date:
    return date.fromisoformat(str(raw).split("T", 1)[0].strip())


def _as_datetime(raw) -> datetime:
    s = str(raw).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


class Payload:
    def __init__(self, data: Optional[dict]):
        self.data = data if isinstance(data, dict) else {}
        self.errors: dict = {}

    @classmethod
    def from_request(cls) -> "Payload":
        data = request.get_json(silent=True)
        if data is None and request.get_data():
            raise ValidationError("Error: request body must be a JSON object")
        return cls(data)

    def _raw(self, key: str, required: bool):
        value = self.data.get(key)
        if value is None or (isinstance(value, str) and not value.strip() and required):
            if required:
                self.errors[key] = f"{key} is required"
            return None
        return value

    def get_str(self, key: str, required: bool = False) -> Optional[str]:
        value = self._raw(key, required)
        if value is None:
            return None
        return str(value).strip()

    def get_int(self, key: str, required: bool = False) -> Optional[int]:
        value = self._raw(key, required)
        if value is None:
            return None
        if isinstance(value, bool):
            self.errors[key] = f"{key} must be an integer"
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            self.errors[key] = f"{key} must be an integer"
            return None

    def get_decimal(self, key: str, required: bool = False) -> Optional[Decimal]:
        value = self._raw(key, required)
        if value is None:
            return None
        try:
            return to_decimal(value)
        except ValueError:
            self.errors[key] = f"{key} must be a number"
            return None

    def get_date(self, key: str, required: bool = False) -> Optional[date]:
        value = self._raw(key, required)
        if value is None:
            return None
        try:
            return _as_date(value)
        except ValueError:
            self.errors[key] = f"{key} must be a date (YYYY-MM-DD)"
            return None

    def get_datetime(self, key: str, required: bool = False) -> Optional[datetime]:
        value = self._raw(key, required)
        if value is None:
            return None
        try:
            return _as_datetime(value)
        except ValueError:
            self.errors[key] = f"{key} must be an ISO-8601 date/time"
            return None

    def validate(self):
        if self.errors:
            raise ValidationError(errors=self.errors)


def list_args() -> dict:
    """Common query args of the paged list endpoints: ?search=&sortBy=&desc=&page=&pageSize="""
    args = request.args
    page_size = args.get("pageSize", current_app.config["PAGE_SIZE"], type=int)
    return {
        "search": args.get("search"),
        "sort_by": args.get("sortBy"),
        "descending": args.get("desc", "false").lower() in ("1", "true", "yes"),
        "page": args.get("page", 1, type=int) or 1,
        "page_size": min(max(page_size or 1, 1), 100),
    }


def status_arg(allowed) -> Optional[str]:
    status = (request.args.get("status") or "").strip() or None
    if status and status not in allowed:
        raise ValidationError(errors={"status": f"Status must be one of {', '.join(allowed)}"})
    return status
