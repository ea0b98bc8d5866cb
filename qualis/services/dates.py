import enum
from datetime import date, datetime, time, timedelta, timezone

UPCOMING_WINDOW = timedelta(days=30)


class DateUrgency(enum.Enum):
    overdue = "overdue"
    upcoming = "upcoming"
    normal = "normal"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: date | datetime) -> datetime:
    """Normalise a date or datetime to an aware UTC datetime.

    Plain dates are read as midnight UTC. Naive datetimes (SQLite drops the
    offset on read) are taken to already be UTC.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify_by_date(
    value: date | datetime | None,
    now: datetime | None = None,
    window: timedelta = UPCOMING_WINDOW,
) -> DateUrgency:
    """Bucket a due/review date relative to ``now``.

    ``overdue`` when the date has been reached (``value <= now``),
    ``upcoming`` within the following window, ``normal`` otherwise or when
    there is no date at all.
    """
    if value is None:
        return DateUrgency.normal
    now = as_utc(now or utcnow())
    moment = as_utc(value)
    if moment <= now:
        return DateUrgency.overdue
    if moment <= now + window:
        return DateUrgency.upcoming
    return DateUrgency.normal


def due_cutoff(now: datetime | None = None) -> date:
    """Latest calendar date that counts as due for date-only columns."""
    return as_utc(now or utcnow()).date()


def upcoming_range(
    now: datetime | None = None, window: timedelta = UPCOMING_WINDOW
) -> tuple[date, date]:
    """Exclusive start and inclusive end of the upcoming window for dates."""
    moment = as_utc(now or utcnow())
    return moment.date(), (moment + window).date()
