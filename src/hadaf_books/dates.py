"""
Hadaf Books - Calendar Date Helpers

All dates handled by the bookkeeping engine are plain calendar dates stored as
``YYYY-MM-DD`` strings. Nothing here looks at time zones: "today" is the local
calendar day of the machine running the server, and arithmetic happens on
``datetime.date`` values so there is no DST drift.

Month and year steps use ``dateutil.relativedelta``, which clamps to the last
day of the target month:

    advance("2026-01-31", "monthly")  -> "2026-02-28"
    advance("2024-02-29", "yearly")   -> "2025-02-28"
"""

import datetime
import re

from dateutil.relativedelta import relativedelta

ISO_DATE_FORMAT = "%Y-%m-%d"

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")

# YYYY-MM-DD, optionally followed by an ISO 8601 time and offset
ISO_DATE_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?"
)

_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}


def parse_iso_date(value):
    """
    Parse a calendar date.

    Accepts ``date``/``datetime`` objects and ISO strings. A timestamp such as
    ``2026-01-15T00:00:00Z`` is cut down to its date part, which is how web
    clients usually send due dates.

    Raises:
        ValueError: if the value is not a valid calendar date
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    value = value.strip()
    if not ISO_DATE_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid date: {value!r}")
    date_part = value.split("T")[0]
    return datetime.datetime.strptime(date_part, ISO_DATE_FORMAT).date()


def to_iso_date(value):
    """Return ``value`` as a ``YYYY-MM-DD`` string."""
    return parse_iso_date(value).strftime(ISO_DATE_FORMAT)


def today():
    return datetime.date.today()


def today_iso():
    return today().strftime(ISO_DATE_FORMAT)


def advance(current, frequency):
    """
    Return the next occurrence after ``current`` for the given frequency.

    Args:
        current (str | date): the current due date
        frequency (str): one of daily, weekly, monthly, yearly

    Returns:
        str: the next due date as ``YYYY-MM-DD``
    """
    step = _STEPS.get(frequency)
    if step is None:
        raise ValueError(f"Invalid frequency: {frequency!r}")
    return (parse_iso_date(current) + step).strftime(ISO_DATE_FORMAT)
