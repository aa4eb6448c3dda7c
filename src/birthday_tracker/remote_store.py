from __future__ import annotations

import logging
from typing import Any

import httpx

from birthday_tracker.models import BirthRecord, record_from_row, record_to_row

LOGGER = logging.getLogger(__name__)

DEFAULT_TABLE = "birthdays"


class RemoteStoreError(RuntimeError):
    pass


class SupabaseStore:
    """Birthday table behind a Supabase (PostgREST) REST endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        table: str = DEFAULT_TABLE,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._table = table
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/{self._table}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteStoreError(
                f"{method} {self._table} failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {self._table} failed: {exc}") from exc
        return response

    async def list_all(self) -> list[BirthRecord]:
        response = await self._request(
            "GET",
            params={"select": "*", "order": "month.asc,day.asc"},
        )
        try:
            rows = response.json()
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
            return [record_from_row(row) for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            raise RemoteStoreError(f"Unexpected rows from {self._table}: {exc}") from exc

    async def insert(self, record: BirthRecord) -> None:
        await self._request(
            "POST",
            json=[record_to_row(record)],
            headers={"Prefer": "return=minimal"},
        )
        LOGGER.info("Inserted birthday %s remotely", record.identifier)

    async def update(self, record: BirthRecord) -> None:
        row = record_to_row(record)
        row.pop("id")
        await self._request(
            "PATCH",
            params={"id": f"eq.{record.identifier}"},
            json=row,
            headers={"Prefer": "return=minimal"},
        )
        LOGGER.info("Updated birthday %s remotely", record.identifier)

    async def delete_by_id(self, identifier: str) -> None:
        await self._request(
            "DELETE",
            params={"id": f"eq.{identifier}"},
            headers={"Prefer": "return=minimal"},
        )
        LOGGER.info("Deleted birthday %s remotely", identifier)
