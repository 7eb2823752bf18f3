import datetime
import types

import pytest

from imam_roster.core.exceptions import ValidationError
from imam_roster.services.calendar_service import generate_days, parse_date_key, window_keys


def test_thirty_days_from_start():
    days = list(generate_days("2025-03-01"))

    assert len(days) == 30
    assert days[0].date_key == "2025-03-01"
    assert days[29].date_key == "2025-03-30"
    assert [day.cycle_day for day in days] == list(range(1, 31))


def test_day_descriptor_fields():
    first = next(generate_days(datetime.date(2025, 3, 1)))

    assert first.weekday == "Saturday"
    assert first.hijri_day == 1
    assert first.hijri_month == "Ramadhan"
    assert first.hijri_year == 1446
    assert (first.gregorian_day, first.gregorian_month, first.gregorian_year) == (1, "Mar", 2025)


def test_window_crosses_month_boundary():
    days = list(generate_days("2025-02-15"))

    assert days[13].date_key == "2025-02-28"
    assert days[14].date_key == "2025-03-01"
    assert days[14].cycle_day == 15


@pytest.mark.parametrize("start", [None, ""])
def test_not_configured_is_empty(start):
    assert list(generate_days(start)) == []
    assert window_keys(start) == set()


def test_generator_is_lazy():
    assert isinstance(generate_days("2025-03-01"), types.GeneratorType)


def test_datetime_start_uses_its_date():
    days = list(generate_days(datetime.datetime(2025, 3, 1, 18, 30), length=2))
    assert [day.date_key for day in days] == ["2025-03-01", "2025-03-02"]


@pytest.mark.parametrize("bad", ["2025-13-01", "01/03/2025", "2025-03-01T00:00:00", "tomorrow", "2025-W09-6", "20250301", "2025-3-1"])
def test_bad_start_date_rejected(bad):
    with pytest.raises(ValidationError):
        list(generate_days(bad))


def test_parse_date_key_strips_whitespace():
    assert parse_date_key(" 2025-03-05 ") == datetime.date(2025, 3, 5)
