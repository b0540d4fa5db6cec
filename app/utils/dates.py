from datetime import datetime
from typing import List, Tuple


def month_start(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(dt: datetime, months: int) -> datetime:
    """Move a first-of-month datetime by `months` (negative goes back)."""
    index = dt.year * 12 + (dt.month - 1) + months
    return dt.replace(year=index // 12, month=index % 12 + 1)


def trailing_months(now: datetime, window_months: int) -> List[Tuple[int, int]]:
    """
    (year, month) pairs for the `window_months` months ending with the month
    of `now`, oldest first. The current month is always the last entry.
    """
    current = month_start(now)
    return [
        (d.year, d.month)
        for d in (shift_months(current, -offset) for offset in range(window_months - 1, -1, -1))
    ]
