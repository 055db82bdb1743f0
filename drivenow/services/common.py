"""Shared service helpers: date coercion and document numbering."""

from datetime import datetime, date
from typing import Optional

from drivenow.models.store import UnitOfWork
from drivenow.utils.filters import as_utc


def as_date(x) -> date:
    """Coerce any date-like to a naive date (supports 'YYYY-MM-DD' or ISO with T)."""
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    if isinstance(x, str):
        base = x.split("T", 1)[0].strip()
        return date.fromisoformat(base)
    raise ValueError(f"Unsupported date: {x!r}")


def as_datetime(x, tz_name: Optional[str] = None) -> datetime:
    """
    Coerce a datetime or ISO string to aware UTC.
    A trailing 'Z' is accepted; naive values are business-local time.
    """
    if isinstance(x, datetime):
        return as_utc(x, tz_name)
    if isinstance(x, date):
        return as_utc(datetime(x.year, x.month, x.day), tz_name)
    if isinstance(x, str):
        s = x.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        return as_utc(datetime.fromisoformat(s), tz_name)
    raise ValueError(f"Unsupported datetime: {x!r}")


def next_document_number(uow: UnitOfWork, table: str, attr: str, prefix: str, today: date) -> str:
    """
    Next number of the form <prefix><yyyymmdd><seq:03d>; the sequence restarts daily.
    Must run inside the unit of work that inserts the row.
    """
    day_prefix = f"{prefix}{today:%Y%m%d}"
    last_seq = 0
    for row in uow.query(table):
        number = getattr(row, attr) or ""
        if not number.startswith(day_prefix):
            continue
        tail = number[len(day_prefix):]
        if tail.isdigit():
            last_seq = max(last_seq, int(tail))
    return f"{day_prefix}{last_seq + 1:03d}"


def paginate(rows: list, page: int, page_size: int) -> tuple[list, int]:
    """Slice one page (1-based) and return it with the total row count."""
    page = max(1, page)
    start = (page - 1) * page_size
    return rows[start:start + page_size], len(rows)
