from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from birthday_tracker.local_cache import PendingWrite, load_records, load_unsynced, save_records
from birthday_tracker.models import BirthRecord, merge_record
from birthday_tracker.recurrence import sort_upcoming
from birthday_tracker.remote_store import RemoteStoreError, SupabaseStore

LOGGER = logging.getLogger(__name__)

STATUS_CHECKING = "Checking Supabase…"
STATUS_LOADED = "✅ Loaded from Supabase"
STATUS_LOAD_FAILED = "❌ Could not load from Supabase (showing local data)"
STATUS_NOT_CONFIGURED = "Supabase is not configured (showing local data)"

FAILURE_STATUS = {
    "insert": "❌ Cloud save failed",
    "update": "❌ Cloud update failed",
    "delete": "❌ Cloud delete failed",
}


@dataclass(frozen=True)
class SyncReport:
    succeeded: int
    remaining: int


class BirthdayBook:
    """In-memory birthday list written through to the cache and the remote table.

    A remote write that fails leaves the local change in place and queues the
    record as unsynced until ``retry_unsynced`` pushes it again.
    """

    def __init__(
        self,
        *,
        cache_path: Path | None,
        store: SupabaseStore | None,
        leap_day_rule: str = "mar1",
    ) -> None:
        self._cache_path = cache_path
        self._store = store
        self._leap_day_rule = leap_day_rule
        self._records: list[BirthRecord] = []
        self._pending: dict[str, str] = {}
        self.status = STATUS_CHECKING

    @property
    def leap_day_rule(self) -> str:
        return self._leap_day_rule

    @property
    def records(self) -> list[BirthRecord]:
        return list(self._records)

    def get(self, identifier: str) -> BirthRecord:
        return self._records[self._index_of(identifier)]

    def is_unsynced(self, identifier: str) -> bool:
        return identifier in self._pending

    @property
    def unsynced_count(self) -> int:
        return len(self._pending)

    def upcoming(self, reference: datetime | date | None = None) -> list[BirthRecord]:
        return sort_upcoming(self._records, reference, self._leap_day_rule)

    async def load(self) -> list[BirthRecord]:
        self._records = load_records(self._cache_path)
        self._pending = {
            item.identifier: item.operation for item in load_unsynced(self._cache_path)
        }

        if self._store is None:
            self.status = STATUS_NOT_CONFIGURED
            return self.records

        try:
            remote_records = await self._store.list_all()
        except RemoteStoreError:
            LOGGER.exception("Loading birthdays from Supabase failed")
            self.status = STATUS_LOAD_FAILED
            return self.records

        self._records = self._overlay_pending(remote_records)
        self._save_cache()
        self.status = STATUS_LOADED
        LOGGER.info("Loaded %s birthdays from Supabase", len(self._records))
        return self.records

    async def add(self, record: BirthRecord) -> BirthRecord:
        self._records.append(record)
        self._save_cache()
        await self._write("insert", record.identifier)
        LOGGER.info("Added birthday for %s", record.name)
        return record

    async def update(self, record: BirthRecord) -> BirthRecord:
        index = self._index_of(record.identifier)
        merged = merge_record(self._records[index], record)
        self._records[index] = merged
        self._save_cache()

        # A record that never reached the remote table still needs an insert.
        operation = "insert" if self._pending.get(merged.identifier) == "insert" else "update"
        await self._write(operation, merged.identifier)
        LOGGER.info("Updated birthday for %s", merged.name)
        return merged

    async def delete(self, identifier: str) -> None:
        index = self._index_of(identifier)
        removed = self._records.pop(index)

        if self._pending.get(identifier) == "insert":
            del self._pending[identifier]
            self._save_cache()
        else:
            self._save_cache()
            await self._write("delete", identifier)
        LOGGER.info("Deleted birthday for %s", removed.name)

    async def retry_unsynced(self) -> SyncReport:
        if self._store is None:
            self.status = STATUS_NOT_CONFIGURED
            return SyncReport(succeeded=0, remaining=len(self._pending))

        succeeded = 0
        for identifier, operation in list(self._pending.items()):
            if operation != "delete" and self._find(identifier) is None:
                del self._pending[identifier]
                continue
            try:
                await self._push(operation, identifier)
            except RemoteStoreError:
                LOGGER.exception("Retrying %s for %s failed", operation, identifier)
                continue
            del self._pending[identifier]
            succeeded += 1

        self._save_cache()
        remaining = len(self._pending)
        if remaining:
            self.status = f"❌ {remaining} change(s) still unsynced"
        else:
            self.status = "✅ All changes synced to Supabase"
        LOGGER.info("Retried unsynced writes: %s succeeded, %s remaining", succeeded, remaining)
        return SyncReport(succeeded=succeeded, remaining=remaining)

    async def _write(self, operation: str, identifier: str) -> None:
        if self._store is None:
            return

        try:
            await self._push(operation, identifier)
        except RemoteStoreError:
            LOGGER.exception("Cloud %s failed for %s", operation, identifier)
            self._pending[identifier] = operation
            self._save_cache()
            self.status = FAILURE_STATUS[operation]
            return

        if self._pending.pop(identifier, None) is not None:
            self._save_cache()

    async def _push(self, operation: str, identifier: str) -> None:
        if operation == "delete":
            await self._store.delete_by_id(identifier)
        elif operation == "insert":
            await self._store.insert(self.get(identifier))
        else:
            await self._store.update(self.get(identifier))

    def _overlay_pending(self, remote_records: list[BirthRecord]) -> list[BirthRecord]:
        local_by_id = {record.identifier: record for record in self._records}
        merged: list[BirthRecord] = []
        seen: set[str] = set()

        for record in remote_records:
            operation = self._pending.get(record.identifier)
            if operation == "delete":
                continue
            if operation is not None and record.identifier in local_by_id:
                record = local_by_id[record.identifier]
            merged.append(record)
            seen.add(record.identifier)

        for identifier, operation in self._pending.items():
            if operation != "delete" and identifier not in seen and identifier in local_by_id:
                merged.append(local_by_id[identifier])
        return merged

    def _find(self, identifier: str) -> BirthRecord | None:
        for record in self._records:
            if record.identifier == identifier:
                return record
        return None

    def _index_of(self, identifier: str) -> int:
        for index, record in enumerate(self._records):
            if record.identifier == identifier:
                return index
        raise KeyError(identifier)

    def _save_cache(self) -> None:
        save_records(
            self._cache_path,
            self._records,
            [PendingWrite(operation=op, identifier=ident) for ident, op in self._pending.items()],
        )
