# chatrooms/services/data_store.py
"""
Data Store abstraction.

The store owns every persisted record. It exposes the same small query surface
for each collection (accounts, rooms, messages, memberships, settings): insert, select,
update and delete, each filtered by equality on named fields. The Room Access
Service only talks to this interface, so the in-memory store used in
development and tests is interchangeable with the Supabase one.
"""

from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from chatrooms.core.logging import get_logger

logger = get_logger(__name__)

Record = Dict[str, Any]
Filters = Dict[str, Any]


class Collection:
    ACCOUNTS = "accounts"
    ROOMS = "rooms"
    MESSAGES = "messages"
    MEMBERSHIPS = "memberships"
    SETTINGS = "settings"

    ALL = (ACCOUNTS, ROOMS, MESSAGES, MEMBERSHIPS, SETTINGS)


# Fields stamped by the store on insert when the caller leaves them out
TIMESTAMP_FIELDS: Dict[str, Tuple[str, ...]] = {
    Collection.ACCOUNTS: ("created_at", "updated_at"),
    Collection.ROOMS: ("created_at", "updated_at"),
    Collection.MESSAGES: ("created_at",),
    Collection.MEMBERSHIPS: ("joined_at",),
    Collection.SETTINGS: ("created_at", "updated_at"),
}

# Field combinations that must be unique within a collection
UNIQUE_CONSTRAINTS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    Collection.ACCOUNTS: (("email",),),
    Collection.ROOMS: (),
    Collection.MESSAGES: (),
    Collection.MEMBERSHIPS: (("room_id", "user_id"),),
    Collection.SETTINGS: (("user_id",),),
}


class StoreError(Exception):
    """Any failure reported by the underlying store."""


class UniqueViolation(StoreError):
    """An insert collided with a uniqueness constraint."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DataStore(ABC):
    """Abstract record store keyed by equality predicates."""

    @abstractmethod
    async def insert(self, collection: str, record: Record) -> Record:
        pass

    @abstractmethod
    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        pass

    @abstractmethod
    async def update(self, collection: str, filters: Filters, patch: Record) -> List[Record]:
        pass

    @abstractmethod
    async def delete(
        self,
        collection: str,
        filters: Filters,
        *,
        older_than: Optional[Tuple[str, datetime]] = None,
    ) -> int:
        """Delete matching records and return how many were removed.

        ``older_than`` adds a strict ``field < value`` predicate.
        """
        pass

    async def select_one(self, collection: str, filters: Filters) -> Optional[Record]:
        rows = await self.select(collection, filters, limit=1)
        return rows[0] if rows else None

    async def close(self) -> None:
        pass


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return None


class InMemoryDataStore(DataStore):
    """
    Dict-backed store for development and tests.

    Records are copied on the way in and out so callers never share state
    with the store. Uniqueness constraints mirror the database schema; each
    call completes without suspending, so concurrent coroutines cannot
    interleave inside one operation.

    Attributes:
        tables: collection name -> {record id -> record}
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Record]] = {name: {} for name in Collection.ALL}

    def _table(self, collection: str) -> Dict[str, Record]:
        if collection not in self.tables:
            raise StoreError(f"Unknown collection: {collection}")
        return self.tables[collection]

    @staticmethod
    def _matches(record: Record, filters: Optional[Filters]) -> bool:
        return all(record.get(k) == v for k, v in (filters or {}).items())

    async def insert(self, collection: str, record: Record) -> Record:
        table = self._table(collection)
        row = copy.deepcopy(record)
        row.setdefault("id", str(uuid.uuid4()))
        now = utcnow()
        for field in TIMESTAMP_FIELDS.get(collection, ()):
            if row.get(field) is None:
                row[field] = now

        if row["id"] in table:
            raise UniqueViolation(f"duplicate key value violates unique constraint \"{collection}_pkey\"")
        for fields in UNIQUE_CONSTRAINTS.get(collection, ()):
            key = {f: row.get(f) for f in fields}
            if any(self._matches(existing, key) for existing in table.values()):
                raise UniqueViolation(
                    f"duplicate key value violates unique constraint \"{collection}_{'_'.join(fields)}_key\""
                )

        table[row["id"]] = row
        return copy.deepcopy(row)

    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        rows = [r for r in self._table(collection).values() if self._matches(r, filters)]
        if order_by:
            # Records missing the field sort first; ties keep insertion order
            rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by) or 0))
            if descending:
                rows.reverse()
        if limit is not None:
            rows = rows[:limit]
        return [copy.deepcopy(r) for r in rows]

    async def update(self, collection: str, filters: Filters, patch: Record) -> List[Record]:
        updated = []
        for row in self._table(collection).values():
            if self._matches(row, filters):
                row.update(copy.deepcopy(patch))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(
        self,
        collection: str,
        filters: Filters,
        *,
        older_than: Optional[Tuple[str, datetime]] = None,
    ) -> int:
        table = self._table(collection)
        doomed = []
        for record_id, row in table.items():
            if not self._matches(row, filters):
                continue
            if older_than is not None:
                field, cutoff = older_than
                value = _as_datetime(row.get(field))
                if value is None or value >= cutoff:
                    continue
            doomed.append(record_id)

        for record_id in doomed:
            del table[record_id]
        if doomed:
            logger.debug("Deleted %d record(s) from %s", len(doomed), collection)
        return len(doomed)
