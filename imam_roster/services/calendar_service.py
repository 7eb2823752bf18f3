import datetime
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from imam_roster.core.config import settings
from imam_roster.core.exceptions import ValidationError

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTH_ABBREVIATIONS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

StartDate = Union[datetime.date, str, None]
DATE_KEY_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


@dataclass(frozen=True)
class CalendarDay:
    date: datetime.date
    date_key: str
    weekday: str
    cycle_day: int
    hijri_day: int
    hijri_month: str
    hijri_year: int

    @property
    def gregorian_day(self) -> int:
        return self.date.day

    @property
    def gregorian_month(self) -> str:
        return MONTH_ABBREVIATIONS[self.date.month - 1]

    @property
    def gregorian_year(self) -> int:
        return self.date.year


def parse_date_key(value: str) -> datetime.date:
    """
    Parse an ISO `YYYY-MM-DD` string.
    Raises ValidationError for anything else, including datetimes.
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date: {value!r}")
    try:
        if not DATE_KEY_PATTERN.fullmatch(value.strip()):
            raise ValueError(value)
        return datetime.date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD.")


def _coerce_start(start_date: StartDate) -> Optional[datetime.date]:
    if start_date is None or start_date == "":
        return None
    if isinstance(start_date, datetime.datetime):
        return start_date.date()
    if isinstance(start_date, datetime.date):
        return start_date
    return parse_date_key(start_date)


def generate_days(start_date: StartDate, length: Optional[int] = None) -> Iterator[CalendarDay]:
    """
    Yield `length` consecutive days (default SCHEDULE_DAYS) beginning at `start_date`.

    Without a start date nothing is yielded: the schedule is simply not configured yet.
    The Hijri fields are a fixed-offset placeholder (cycle day N of the configured month),
    not a real lunar calendar.
    """
    start = _coerce_start(start_date)
    if start is None:
        return
    if length is None:
        length = settings.SCHEDULE_DAYS

    for offset in range(length):
        day = start + datetime.timedelta(days=offset)
        yield CalendarDay(
            date=day,
            date_key=day.isoformat(),
            weekday=WEEKDAY_NAMES[day.weekday()],
            cycle_day=offset + 1,
            hijri_day=offset + 1,
            hijri_month=settings.HIJRI_MONTH,
            hijri_year=settings.HIJRI_YEAR,
        )


def window_keys(start_date: StartDate, length: Optional[int] = None) -> set:
    """Day-keys of the bookable window, empty when not configured."""
    return {day.date_key for day in generate_days(start_date, length)}
