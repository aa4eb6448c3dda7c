from datetime import date, datetime, timedelta

import pytest

from birthday_tracker.models import BirthRecord
from birthday_tracker.recurrence import (
    InvalidBirthdayError,
    age_turning,
    days_until_next_occurrence,
    format_display_date,
    is_today,
    month_label,
    next_occurrence,
    occurrence_in_year,
    sort_upcoming,
)


def _record(day: int, month: int, year: int | None = None, name: str = "A") -> BirthRecord:
    return BirthRecord(
        identifier=f"id-{name}",
        name=name,
        day=day,
        month=month,
        year=year,
        timezone="Asia/Tokyo",
    )


def test_days_until_a_few_days_ahead() -> None:
    record = _record(5, 5, 1985)
    reference = datetime(2024, 5, 1, 18, 30)

    assert days_until_next_occurrence(record, reference) == 4
    assert age_turning(record, reference) == 39


def test_anniversary_today_is_zero_days() -> None:
    record = _record(5, 5, 1985)
    reference = datetime(2024, 5, 5, 23, 59)

    assert days_until_next_occurrence(record, reference) == 0
    assert age_turning(record, reference) == 39
    assert is_today(record, reference) is True


def test_day_after_rolls_to_next_year() -> None:
    record = _record(5, 5, 1985)
    reference = datetime(2024, 5, 6)

    assert days_until_next_occurrence(record, reference) == 364
    assert age_turning(record, reference) == 40
    assert next_occurrence(record, reference) == date(2025, 5, 5)


def test_unknown_year_has_no_age() -> None:
    record = _record(15, 8)

    assert age_turning(record, datetime(2024, 1, 1)) is None
    assert age_turning(record, datetime(2024, 8, 15)) is None
    assert format_display_date(record) == "15 August"


def test_accepts_plain_dates_as_reference() -> None:
    record = _record(14, 3)

    assert days_until_next_occurrence(record, date(2026, 3, 1)) == 13


def test_results_stay_within_a_year() -> None:
    reference = datetime(2023, 1, 1)
    for offset in range(0, 800, 37):
        today = reference + timedelta(days=offset)
        for month in range(1, 13):
            for day in (1, 15, 28, 29, 30, 31):
                days = days_until_next_occurrence(_record(day, month), today)
                assert 0 <= days <= 366


def test_same_target_one_year_later() -> None:
    record = _record(20, 9)
    first = date(2023, 4, 10)
    second = first + timedelta(days=366)  # crosses 29 Feb 2024

    first_target = first + timedelta(days=days_until_next_occurrence(record, first))
    second_target = second + timedelta(days=days_until_next_occurrence(record, second))

    assert (second_target - first_target).days == 366


def test_repeated_calls_agree() -> None:
    record = _record(5, 5, 1985)
    reference = datetime(2024, 5, 1)

    assert age_turning(record, reference) == age_turning(record, reference)
    assert days_until_next_occurrence(record, reference) == days_until_next_occurrence(record, reference)


def test_leap_day_rolls_into_march_by_default() -> None:
    record = _record(29, 2, 2000)

    assert occurrence_in_year(record, 2025) == date(2025, 3, 1)
    assert occurrence_in_year(record, 2028) == date(2028, 2, 29)
    assert days_until_next_occurrence(record, date(2025, 2, 27)) == 2


def test_leap_day_feb28_rule() -> None:
    record = _record(29, 2, 2000)

    assert next_occurrence(record, date(2025, 2, 27), "feb28") == date(2025, 2, 28)
    assert days_until_next_occurrence(record, date(2025, 2, 27), "feb28") == 1


def test_day_past_month_end_overflows() -> None:
    assert occurrence_in_year(_record(31, 4), 2024) == date(2024, 5, 1)


def test_out_of_range_month_rejected_by_arithmetic() -> None:
    with pytest.raises(InvalidBirthdayError):
        days_until_next_occurrence(_record(1, 13), date(2024, 1, 1))


def test_unknown_leap_day_rule_rejected() -> None:
    with pytest.raises(InvalidBirthdayError):
        occurrence_in_year(_record(29, 2), 2025, "mar31")


def test_month_label_fallback() -> None:
    assert month_label(13) == "Month 13"
    assert month_label(0) == "Month 0"
    assert format_display_date(_record(5, 13)) == "5 Month 13"
    assert format_display_date(_record(5, 5)) == "5 May"


def test_sort_upcoming_orders_by_days_then_name() -> None:
    records = [
        _record(1, 1, name="January"),
        _record(10, 6, name="bob"),
        _record(10, 6, name="Alice"),
        _record(2, 6, name="Soon"),
    ]

    ordered = sort_upcoming(records, date(2024, 6, 1))

    assert [record.name for record in ordered] == ["Soon", "Alice", "bob", "January"]
