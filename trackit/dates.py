from datetime import datetime, date, timedelta, timezone
from enum import Enum
from typing import List, Optional, Union

from .errors import ValidationError

DayLike = Union[date, datetime, str]


class Weekday(Enum):
    SUN = "sunday"
    MON = "monday"
    TUE = "tuesday"
    WED = "wednesday"
    THU = "thursday"
    FRI = "friday"
    SAT = "saturday"

    @classmethod
    def parse(cls, value: Union["Weekday", str]) -> "Weekday":
        if isinstance(value, Weekday):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"Unknown weekday: {value!r}")
        label = value.strip().lower()
        for day in cls:
            if label in (day.value, day.value[:3], day.name.lower()):
                return day
        raise ValidationError(f"Unknown weekday: {value!r}")


# date.weekday() is Monday-first
_PY_WEEKDAYS = [
    Weekday.MON,
    Weekday.TUE,
    Weekday.WED,
    Weekday.THU,
    Weekday.FRI,
    Weekday.SAT,
    Weekday.SUN,
]
MONDAY_FIRST = list(_PY_WEEKDAYS)


def utc_now() -> datetime:
    now = datetime.now(timezone.utc)
    # persisted timestamps carry millisecond precision
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        if value.endswith("Z"):
            return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def format_iso_datetime(value: datetime) -> str:
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_day(value: DayLike) -> date:
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if len(value) == 10:
            try:
                return datetime.strptime(value, "%Y-%m-%d").date()
            except ValueError:
                raise ValidationError(f"Malformed date: {value!r}")
        parsed = parse_iso_datetime(value)
        if parsed is not None:
            return parsed.date()
    raise ValidationError(f"Malformed date: {value!r}")


def day_key(value: DayLike) -> str:
    """Canonical YYYY-MM-DD key of a day, computed in UTC.

    Every component derives day keys through this function; aware
    datetimes are converted to UTC first and naive ones are taken as UTC.
    """
    return parse_day(value).isoformat()


def weekday_of(value: DayLike) -> Weekday:
    return _PY_WEEKDAYS[parse_day(value).weekday()]


def today_key(now: Optional[datetime] = None) -> str:
    return day_key(now if now is not None else utc_now())


def midnight_utc(value: DayLike) -> datetime:
    day = parse_day(value)
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def date_range(start_date: date, end_date: date) -> List[date]:
    if end_date < start_date:
        return []
    span = (end_date - start_date).days
    return [start_date + timedelta(days=offset) for offset in range(span + 1)]


def window_dates(end_date: date, days: int) -> List[date]:
    return [end_date - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def first_of_month(value: DayLike) -> date:
    return parse_day(value).replace(day=1)


def add_months(value: date, months: int) -> date:
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_key(value: DayLike) -> str:
    return day_key(value)[:7]
