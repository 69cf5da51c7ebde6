from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union

from shared.schemas import TradeRecord

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}
DATE_RANGES = ("7d", "30d", "90d", "all", "custom")


def parse_timestamp(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Parse ISO strings (with or without 'Z') into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _is_date_only(value) -> bool:
    if isinstance(value, datetime):
        return False
    return isinstance(value, date) or (isinstance(value, str) and len(value) == 10)


def filter_by_range(
    trades: List[TradeRecord],
    date_range: str,
    start: Union[str, datetime, date, None] = None,
    end: Union[str, datetime, date, None] = None,
    now: Optional[datetime] = None,
) -> List[TradeRecord]:
    """
    Keep trades whose created_at falls in the window.
    'custom' is inclusive on both ends and returns everything if a bound is missing.
    """
    if date_range not in DATE_RANGES:
        raise ValueError(f"Unknown date range: {date_range}")

    if date_range == "all":
        return list(trades)

    if date_range == "custom":
        start_dt, end_dt = parse_timestamp(start), parse_timestamp(end)
        if start_dt is None or end_dt is None:
            return list(trades)
        if _is_date_only(end):
            end_dt = end_dt + timedelta(days=1) - timedelta(microseconds=1)
        return [
            t
            for t in trades
            if t.created_at and start_dt <= parse_timestamp(t.created_at) <= end_dt
        ]

    now = parse_timestamp(now) if now else datetime.now(timezone.utc)
    cutoff = now - timedelta(days=RANGE_DAYS[date_range])
    return [
        t for t in trades if t.created_at and parse_timestamp(t.created_at) >= cutoff
    ]
