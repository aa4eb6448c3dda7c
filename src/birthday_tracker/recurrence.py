from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable

from birthday_tracker.models import BirthRecord

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

ALLOWED_LEAP_DAY_RULES = {"feb28", "mar1"}


class InvalidBirthdayError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(month: int, year: int) -> int:
    if month == 2:
        return 29 if is_leap_year(year) else 28
    if month in (4, 6, 9, 11):
        return 30
    return 31


def occurrence_in_year(record: BirthRecord, year: int, leap_day_rule: str = "mar1") -> date:
    """Anniversary of ``record`` in ``year``.

    Days past the end of the month overflow into the next month, so 29 Feb
    lands on 1 Mar in common years unless ``leap_day_rule`` is ``"feb28"``.
    """
    if record.month < 1 or record.month > 12:
        raise InvalidBirthdayError(f"Invalid month: {record.month}")
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise InvalidBirthdayError(f"Unsupported leap day rule: {leap_day_rule}")

    if record.month == 2 and record.day == 29 and not is_leap_year(year) and leap_day_rule == "feb28":
        return date(year, 2, 28)
    return date(year, record.month, 1) + timedelta(days=record.day - 1)


def _reference_date(reference: datetime | date | None) -> date:
    if reference is None:
        return datetime.now().date()
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def next_occurrence(
    record: BirthRecord,
    reference: datetime | date | None = None,
    leap_day_rule: str = "mar1",
) -> date:
    today = _reference_date(reference)
    candidate = occurrence_in_year(record, today.year, leap_day_rule)
    if candidate < today:
        candidate = occurrence_in_year(record, today.year + 1, leap_day_rule)
    return candidate


def days_until_next_occurrence(
    record: BirthRecord,
    reference: datetime | date | None = None,
    leap_day_rule: str = "mar1",
) -> int:
    today = _reference_date(reference)
    return (next_occurrence(record, today, leap_day_rule) - today).days


def age_turning(
    record: BirthRecord,
    reference: datetime | date | None = None,
    leap_day_rule: str = "mar1",
) -> int | None:
    """Age at the next anniversary, counting today's as the next one.

    Returns None when the birth year is unknown.
    """
    if record.year is None:
        return None
    return next_occurrence(record, reference, leap_day_rule).year - record.year


def is_today(
    record: BirthRecord,
    reference: datetime | date | None = None,
    leap_day_rule: str = "mar1",
) -> bool:
    return days_until_next_occurrence(record, reference, leap_day_rule) == 0


def month_label(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return f"Month {month}"


def format_display_date(record: BirthRecord) -> str:
    return f"{record.day} {month_label(record.month)}"


def sort_upcoming(
    records: Iterable[BirthRecord],
    reference: datetime | date | None = None,
    leap_day_rule: str = "mar1",
) -> list[BirthRecord]:
    today = _reference_date(reference)
    return sorted(
        records,
        key=lambda record: (
            days_until_next_occurrence(record, today, leap_day_rule),
            record.name.lower(),
        ),
    )
