"""Date/time helpers: business timezone, ISO rendering and display formats."""
from datetime import datetime, date, timezone
from typing import Optional, Union

import pytz

DEFAULT_TZ = "Asia/Ho_Chi_Minh"


def get_timezone(name: Optional[str] = None):
    """Return a pytz timezone; unknown names fall back to UTC."""
    try:
        return pytz.timezone(name or DEFAULT_TZ)
    except pytz.UnknownTimeZoneError:
        return pytz.utc


def utc_now() -> datetime:
    """Timezone-aware current UTC time. Wrapper for easier testing/mocking."""
    return datetime.now(timezone.utc)


def local_today(tz_name: Optional[str] = None) -> date:
    """Today's date in the business timezone."""
    return utc_now().astimezone(get_timezone(tz_name)).date()


def as_utc(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Normalize a datetime to aware UTC.
    Naive values are taken to be business-local wall-clock time.
    """
    if value.tzinfo is None:
        value = get_timezone(tz_name).localize(value)
    return value.astimezone(timezone.utc)


def fmt_iso(value: Optional[Union[datetime, date]]) -> Optional[str]:
    """ISO-8601 string for JSON output; None stays None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="seconds")
    return value.isoformat()


def fmt_local_date(value: Optional[Union[datetime, date]], tz_name: Optional[str] = None) -> str:
    """
    Format a date/datetime as dd/mm/YYYY in the business timezone.
    Aware datetimes are converted first; plain dates are shown as-is.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(get_timezone(tz_name))
        value = value.date()
    return value.strftime("%d/%m/%Y")
