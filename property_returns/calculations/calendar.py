"""
Calendar Utilities

Month stepping and Actual/365 day counting shared by the amortization
engine and the ledger builder.

Month stepping always counts from an anchor date rather than from the
previous step, so the anchor's day-of-month is preserved: a schedule
anchored on the 31st lands on the last day of shorter months and returns
to the 31st whenever the month has one (Jan 31 -> Feb 29 -> Mar 31).
"""

from typing import List
from datetime import date
from dateutil.relativedelta import relativedelta

DAYS_PER_YEAR = 365.0


def add_months(anchor: date, months: int) -> date:
    """Return the date `months` calendar months after `anchor`, clamped at month-end."""
    return anchor + relativedelta(months=months)


def monthly_dates(anchor: date, count: int, first_offset: int = 1) -> List[date]:
    """Generate `count` monthly dates starting `first_offset` months after anchor."""
    return [add_months(anchor, first_offset + i) for i in range(count)]


def months_elapsed(start: date, end: date) -> int:
    """
    Count whole monthly steps from start that fall on or before end.

    Uses the same clamping as add_months, so Jan 31 -> Feb 28 counts
    as one full month.
    """
    if end <= start:
        return 0

    months = (end.year - start.year) * 12 + (end.month - start.month)
    while months > 0 and add_months(start, months) > end:
        months -= 1
    return months


def days_between(date1: date, date2: date) -> int:
    """Calculate the number of days between two dates."""
    return (date2 - date1).days


def years_between(date1: date, date2: date) -> float:
    """Year fraction between two dates on an Actual/365 basis."""
    return days_between(date1, date2) / DAYS_PER_YEAR
