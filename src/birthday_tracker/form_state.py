from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from birthday_tracker.models import DEFAULT_TIMEZONE, BirthRecord, new_identifier
from birthday_tracker.recurrence import days_in_month, format_display_date

LOGGER = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in name, day and month."

EDITABLE_FIELDS = ("name", "day", "month", "year", "timezone", "photo_url")


class FormValidationError(ValueError):
    pass


@dataclass(frozen=True)
class FormState:
    """Raw text of the add/edit form, exactly as the user typed it."""

    name: str = ""
    day: str = ""
    month: str = ""
    year: str = ""
    timezone: str = DEFAULT_TIMEZONE
    photo_url: str = ""
    editing_id: str | None = None
    error: str | None = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None


def reset(default_timezone: str = DEFAULT_TIMEZONE) -> FormState:
    return FormState(timezone=default_timezone)


def set_field(state: FormState, field: str, value: str) -> FormState:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Unknown form field: {field}")
    return replace(state, **{field: value})


def with_error(state: FormState, message: str | None) -> FormState:
    return replace(state, error=message)


def start_edit(record: BirthRecord) -> FormState:
    return FormState(
        name=record.name,
        day=str(record.day),
        month=str(record.month),
        year=str(record.year) if record.year is not None else "",
        timezone=record.timezone,
        photo_url=record.photo_url or "",
        editing_id=record.identifier,
    )


def _parse_int(value: str, label: str) -> int:
    cleaned = value.strip()
    try:
        return int(cleaned)
    except ValueError as exc:
        raise FormValidationError(f"{label} must be a whole number") from exc


def build_record(state: FormState) -> BirthRecord:
    name = state.name.strip()
    if not name or not state.day.strip() or not state.month.strip():
        raise FormValidationError(REQUIRED_FIELDS_MESSAGE)

    day = _parse_int(state.day, "Day")
    month = _parse_int(state.month, "Month")
    if month < 1 or month > 12:
        raise FormValidationError(f"Month must be between 1 and 12, got {month}")
    if day < 1 or day > 31:
        raise FormValidationError(f"Day must be between 1 and 31, got {day}")

    year = _parse_int(state.year, "Year") if state.year.strip() else None

    record = BirthRecord(
        identifier=state.editing_id or new_identifier(),
        name=name,
        day=day,
        month=month,
        year=year,
        timezone=state.timezone.strip(),
        photo_url=state.photo_url.strip() or None,
    )

    # Only the 1-31 range is enforced; later days roll into the next month.
    if day > days_in_month(month, year if year is not None else 2000):
        LOGGER.warning(
            "Accepted %s for %s although that month is shorter; it will roll over",
            format_display_date(record),
            record.name,
        )
    return record

