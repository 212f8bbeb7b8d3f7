"""Date manipulation utilities"""

import math
from datetime import date, datetime, timedelta

ANALYTICS_PERIODS = {
    "1month": 30,
    "3months": 90,
    "6months": 180,
    "1year": 365,
}


def window_start(reference: date, days: int) -> datetime:
    """Midnight `days` days before `reference`"""
    start = reference - timedelta(days=days)
    return datetime(start.year, start.month, start.day)


def elapsed_days(start: datetime, end: datetime) -> int:
    """Whole days between two instants, rounded up, never less than 1"""
    return max(1, math.ceil((end - start).total_seconds() / 86400))


def period_start(period: str, end: datetime) -> datetime:
    """Start of an analytics period ending at `end`; unknown periods mean 6 months"""
    return end - timedelta(days=ANALYTICS_PERIODS.get(period, 180))
