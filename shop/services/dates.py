"""Day-granular date helpers shared by the calendar, the booking flow and the routes."""
import calendar
from datetime import date, datetime, timedelta, timezone

from shop.errors import ValidationError


def utcnow():
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_day(value):
    """Reduce a date, datetime or ISO string to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_day(value)
    raise ValidationError(f'Not a date: {value!r}')


def parse_day(value):
    """Parse an ISO date; a trailing time after 'T' or a space is allowed and dropped."""
    try:
        value = value.strip()
        if value[10:11] not in ('', 'T', ' '):
            raise ValueError(value)
        return datetime.fromisoformat(value).date()
    except (AttributeError, ValueError):
        raise ValidationError(f'Invalid date {value!r}, expected YYYY-MM-DD')


def parse_month(value):
    """Parse ``YYYY-MM`` (or a full ISO date) into the first day of that month."""
    try:
        value = value.strip()
        if len(value) > 7:
            return parse_day(value).replace(day=1)
        return datetime.strptime(value, '%Y-%m').date()
    except (AttributeError, ValueError, ValidationError):
        raise ValidationError(f'Invalid month {value!r}, expected YYYY-MM')


def day_range(start, end):
    """Every calendar day from start to end, both included, in whole-day steps."""
    start, end = as_day(start), as_day(end)
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def month_bounds(month):
    """First and last day of the month containing ``month``."""
    month = as_day(month)
    last = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last)
