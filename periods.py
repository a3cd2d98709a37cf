import calendar
from datetime import datetime, timedelta, timezone

from errors import InvalidPeriod

PERIODS = ("week", "month", "quarter", "year")
DEFAULT_PERIOD = "month"


def utc_now() -> datetime:
    # naive UTC, matching what pymongo hands back for stored dates
    return datetime.now(timezone.utc).replace(tzinfo=None)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping to the end of a shorter month."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_period(period: str, now: datetime) -> datetime:
    """Return the start of the named window ending at ``now``."""
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return subtract_months(now, 1)
    if period == "quarter":
        return subtract_months(now, 3)
    if period == "year":
        return subtract_months(now, 12)
    raise InvalidPeriod(period)
