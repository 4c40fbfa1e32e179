# chatrooms/services/supabase_store.py
"""
Supabase (PostgREST) implementation of the Data Store.

Every operation is a single HTTP request against ``/rest/v1/<table>``.
Equality filters are encoded the PostgREST way (``room_id=eq.<id>``) and
Postgres unique violations (SQLSTATE 23505) are surfaced as UniqueViolation
so callers can treat duplicate memberships as success.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx

from chatrooms.core.logging import get_logger
from chatrooms.services.data_store import (
    Collection,
    DataStore,
    Filters,
    Record,
    StoreError,
    UniqueViolation,
)

logger = get_logger(__name__)

TABLES: Dict[str, str] = {
    Collection.ACCOUNTS: "user_profiles",
    Collection.ROOMS: "chat_rooms",
    Collection.MESSAGES: "messages",
    Collection.MEMBERSHIPS: "room_members",
    Collection.SETTINGS: "user_settings",
}

UNIQUE_VIOLATION_CODE = "23505"


def _encode(value: Any) -> Any:
    """Make a record JSON-safe (datetimes to ISO strings, enums to values)."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{_encode(value)}"


class SupabaseDataStore(DataStore):
    """
    Data Store backed by a Supabase project.

    Args:
        url: project URL, e.g. https://xyz.supabase.co
        api_key: anon or service-role key
        client: optional pre-built httpx.AsyncClient (tests inject a MockTransport)
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url or not api_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the Supabase store")
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, collection: str) -> str:
        table = TABLES.get(collection)
        if table is None:
            raise StoreError(f"Unknown collection: {collection}")
        return f"{self.base_url}/{table}"

    @staticmethod
    def _params(filters: Optional[Filters]) -> List[Tuple[str, str]]:
        return [(field, _filter_value(value)) for field, value in (filters or {}).items()]

    async def _request(
        self,
        method: str,
        collection: str,
        params: List[Tuple[str, str]],
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = await self.client.request(
                method, self._url(collection), params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Supabase {method} {collection} failed: {e}")
            raise StoreError(str(e)) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text}
            message = body.get("message") or response.text
            if body.get("code") == UNIQUE_VIOLATION_CODE:
                raise UniqueViolation(message)
            logger.error(f"Supabase {method} {collection} -> {response.status_code}: {message}")
            raise StoreError(message)

        if not response.content:
            return []
        return response.json()

    async def insert(self, collection: str, record: Record) -> Record:
        rows = await self._request(
            "POST", collection, [], json=_encode(record), prefer="return=representation"
        )
        if not rows:
            raise StoreError(f"Insert into {collection} returned no row")
        return rows[0]

    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        params = [("select", "*")] + self._params(filters)
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        return await self._request("GET", collection, params)

    async def update(self, collection: str, filters: Filters, patch: Record) -> List[Record]:
        return await self._request(
            "PATCH",
            collection,
            self._params(filters),
            json=_encode(patch),
            prefer="return=representation",
        )

    async def delete(
        self,
        collection: str,
        filters: Filters,
        *,
        older_than: Optional[Tuple[str, datetime]] = None,
    ) -> int:
        params = self._params(filters)
        if older_than is not None:
            field, cutoff = older_than
            params.append((field, f"lt.{cutoff.isoformat()}"))
        rows = await self._request(
            "DELETE", collection, params, prefer="return=representation"
        )
        return len(rows)

    async def close(self) -> None:
        await self.client.aclose()
