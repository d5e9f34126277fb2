from datetime import datetime, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO timestamp as stored by Postgres; naive values are treated as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def month_bounds(when: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return [start, end) of the calendar month containing ``when``."""
    when = when or utcnow()
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    start = when.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def previous_month(when: Optional[datetime] = None) -> str:
    start, _ = month_bounds(when)
    if start.month == 1:
        return f"{start.year - 1}-12"
    return f"{start.year}-{start.month - 1:02d}"
