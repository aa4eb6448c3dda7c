from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from birthday_tracker.models import BirthRecord, record_from_row, record_to_row

LOGGER = logging.getLogger(__name__)

CACHE_VERSION = 1
PENDING_OPERATIONS = {"insert", "update", "delete"}


@dataclass(frozen=True)
class PendingWrite:
    operation: str
    identifier: str


def _read_payload(path: Path | None) -> dict:
    if path is None or not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as file_obj:
            data = json.load(file_obj)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Ignoring unreadable birthday cache %s: %s", path, exc)
        return {}

    if not isinstance(data, dict):
        LOGGER.warning("Ignoring birthday cache %s with unexpected layout", path)
        return {}
    return data


def load_records(path: Path | None) -> list[BirthRecord]:
    rows = _read_payload(path).get("birthdays", [])
    if not isinstance(rows, list):
        return []

    records: list[BirthRecord] = []
    for row in rows:
        try:
            records.append(record_from_row(row))
        except (KeyError, TypeError, ValueError, AttributeError):
            LOGGER.warning("Skipping malformed cached birthday row: %r", row)
    return records


def load_unsynced(path: Path | None) -> list[PendingWrite]:
    rows = _read_payload(path).get("unsynced", [])
    if not isinstance(rows, list):
        return []

    pending: list[PendingWrite] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        operation = row.get("operation")
        identifier = row.get("id")
        if operation in PENDING_OPERATIONS and isinstance(identifier, str):
            pending.append(PendingWrite(operation=operation, identifier=identifier))
    return pending


def save_records(
    path: Path | None,
    records: Iterable[BirthRecord],
    unsynced: Iterable[PendingWrite] = (),
) -> None:
    if path is None:
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "version": CACHE_VERSION,
        "birthdays": [record_to_row(record) for record in records],
        "unsynced": [
            {"operation": item.operation, "id": item.identifier} for item in unsynced
        ],
    }

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        json.dump(payload, temp_file, indent=2, ensure_ascii=False)
        temp_file.write("\n")
        temp_name = temp_file.name

    os.replace(temp_name, path)
