"""Local wall-clock parsing for extracted itinerary times."""

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as dateutil_parser

_LOCAL_DATETIME = re.compile(r'(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})')


def parse_local_datetime(raw: Union[str, datetime, None]) -> Optional[datetime]:
    """Find "YYYY-MM-DDTHH:MM" anywhere in ``raw``, keeping the digits verbatim.

    The result is labelled UTC but carries the local clock time as written in
    the document. Surrounding text, seconds and zone designators are ignored. Returns
    None for missing, malformed or impossible values.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str):
        return None

    m = _LOCAL_DATETIME.search(raw)
    if not m:
        return None
    year, month, day, hour, minute = (int(g) for g in m.groups())
    try:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None


def format_local_datetime(dt: Optional[datetime]) -> str:
    """Inverse of parse_local_datetime, to minute precision."""
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%dT%H:%M")


def combine_local(date_str: Optional[str], time_str: Optional[str]) -> Optional[datetime]:
    """Join a provider's separate local date ("2024-03-15") and time ("10:30")."""
    if not date_str or not time_str:
        return None
    return parse_local_datetime(f"{date_str}T{time_str}")


def iso_date(raw: Union[str, datetime, None]) -> str:
    """Reduce a date or datetime hint to YYYY-MM-DD, or "" if unparsable.

    Accepts bare dates ("2024-03-15") as well as full local datetimes.
    """
    if raw is None or raw == "":
        return ""
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()

    parsed = parse_local_datetime(raw)
    if parsed:
        return parsed.date().isoformat()
    try:
        return dateutil_parser.isoparse(raw.strip()).date().isoformat()
    except (ValueError, OverflowError, AttributeError):
        return ""
