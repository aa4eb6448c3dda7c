from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any


DEFAULT_TIMEZONE = "Asia/Tokyo"


@dataclass(frozen=True)
class BirthRecord:
    identifier: str
    name: str
    day: int
    month: int
    year: int | None
    timezone: str
    photo_url: str | None = None


def new_identifier() -> str:
    return str(uuid.uuid4())


def merge_record(existing: BirthRecord, changes: BirthRecord) -> BirthRecord:
    """Replace every field of ``existing`` except its identifier."""
    return replace(changes, identifier=existing.identifier)


def record_to_row(record: BirthRecord) -> dict[str, Any]:
    return {
        "id": record.identifier,
        "name": record.name,
        "day": record.day,
        "month": record.month,
        "year": record.year,
        "timezone": record.timezone,
        "photo_url": record.photo_url,
    }


def record_from_row(row: dict[str, Any]) -> BirthRecord:
    if not isinstance(row, dict):
        raise TypeError(f"Birthday row must be a mapping, got {type(row).__name__}")

    day = int(row["day"])
    month = int(row["month"])
    if month < 1 or month > 12:
        raise ValueError(f"Invalid month in birthday row: {month}")
    if day < 1 or day > 31:
        raise ValueError(f"Invalid day in birthday row: {day}")

    year = row.get("year")
    photo_url = row.get("photo_url")
    return BirthRecord(
        identifier=str(row["id"]),
        name=str(row["name"]),
        day=day,
        month=month,
        year=int(year) if year is not None else None,
        timezone=str(row.get("timezone") or ""),
        photo_url=str(photo_url) if photo_url else None,
    )
