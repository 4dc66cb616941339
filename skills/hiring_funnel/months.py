"""Calendar-month windows the dashboard reports on."""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone
from typing import Optional

from skills.hiring_funnel.types import MonthWindow

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def month_window(year: int, month: int) -> MonthWindow:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {month}, expected 1-12")
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, 0, 0, 0, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999000, tzinfo=timezone.utc)
    return MonthWindow(key=f"{year:04d}-{month:02d}", label=MONTH_ABBR[month - 1], start=start, end=end)


def parse_month(raw: str) -> tuple[int, int]:
    match = re.fullmatch(r"\s*(\d{4})-(\d{1,2})\s*", raw or "")
    if not match:
        raise ValueError(f"Invalid month '{raw}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{raw}', expected YYYY-MM")
    return year, month


def months_to_date(now: Optional[datetime] = None) -> list[MonthWindow]:
    """Current month back to January of the current year, newest first."""
    now = now or datetime.now(timezone.utc)
    return [month_window(now.year, m) for m in range(now.month, 0, -1)]


def month_range(start: str, end: str) -> list[MonthWindow]:
    """Windows for an inclusive YYYY-MM range, newest first."""
    start_year, start_month = parse_month(start)
    end_year, end_month = parse_month(end)
    first = start_year * 12 + (start_month - 1)
    last = end_year * 12 + (end_month - 1)
    if first > last:
        raise ValueError("end month must be >= start month")
    return [month_window(idx // 12, idx % 12 + 1) for idx in range(last, first - 1, -1)]


def resolve_windows(start: Optional[str] = None, end: Optional[str] = None, *, now: Optional[datetime] = None) -> list[MonthWindow]:
    if not start and not end:
        return months_to_date(now)
    if not start or not end:
        raise ValueError("Provide both start and end months, or neither")
    return month_range(start, end)
