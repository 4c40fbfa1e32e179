import json
from datetime import datetime, timezone

import httpx
import pytest

from chatrooms.services.data_store import Collection, StoreError, UniqueViolation
from chatrooms.services.supabase_store import SupabaseDataStore

URL = "https://project.supabase.co"


def make_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseDataStore(URL, "anon-key", client=client)


async def test_insert_posts_record_and_returns_row():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["prefer"] = request.headers.get("prefer")
        seen["apikey"] = request.headers.get("apikey")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "m1", **seen["body"]}])

    store = make_store(handler)
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    row = await store.insert(Collection.MESSAGES, {"room_id": "r1", "timestamp": stamp})

    assert seen["method"] == "POST"
    assert seen["path"] == "/rest/v1/messages"
    assert seen["prefer"] == "return=representation"
    assert seen["apikey"] == "anon-key"
    assert seen["body"]["timestamp"] == stamp.isoformat()
    assert row["id"] == "m1"


async def test_select_encodes_filters_order_and_limit():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["params"] = list(request.url.params.multi_items())
        return httpx.Response(200, json=[{"id": "r1"}])

    store = make_store(handler)
    rows = await store.select(
        Collection.ROOMS,
        {"type": "private", "owner_id": None, "created_by_authenticated_user": True},
        order_by="created_at",
        descending=True,
        limit=5,
    )

    assert rows == [{"id": "r1"}]
    assert seen["path"] == "/rest/v1/chat_rooms"
    assert ("select", "*") in seen["params"]
    assert ("type", "eq.private") in seen["params"]
    assert ("owner_id", "is.null") in seen["params"]
    assert ("created_by_authenticated_user", "eq.true") in seen["params"]
    assert ("order", "created_at.desc") in seen["params"]
    assert ("limit", "5") in seen["params"]


async def test_select_one_returns_none_when_empty():
    store = make_store(lambda request: httpx.Response(200, json=[]))
    assert await store.select_one(Collection.ROOMS, {"id": "missing"}) is None


async def test_unique_violation_is_mapped():
    def handler(request):
        return httpx.Response(
            409,
            json={"code": "23505", "message": "duplicate key value violates unique constraint"},
        )

    store = make_store(handler)
    with pytest.raises(UniqueViolation):
        await store.insert(Collection.MEMBERSHIPS, {"room_id": "r1", "user_id": "u1"})


async def test_other_errors_are_store_errors():
    store = make_store(lambda request: httpx.Response(500, json={"message": "boom"}))
    with pytest.raises(StoreError, match="boom"):
        await store.select(Collection.ROOMS)


async def test_transport_errors_are_store_errors():
    def handler(request):
        raise httpx.ConnectError("unreachable")

    store = make_store(handler)
    with pytest.raises(StoreError):
        await store.select(Collection.ROOMS)


async def test_delete_with_older_than_counts_rows():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["params"] = list(request.url.params.multi_items())
        return httpx.Response(200, json=[{"id": "a"}, {"id": "b"}])

    store = make_store(handler)
    cutoff = datetime(2024, 5, 1, tzinfo=timezone.utc)
    deleted = await store.delete(
        Collection.MESSAGES, {"room_id": "r1"}, older_than=("created_at", cutoff)
    )

    assert deleted == 2
    assert seen["method"] == "DELETE"
    assert ("room_id", "eq.r1") in seen["params"]
    assert ("created_at", f"lt.{cutoff.isoformat()}") in seen["params"]


async def test_update_sends_patch():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"id": "r1", "name": "New"}])

    store = make_store(handler)
    rows = await store.update(Collection.ROOMS, {"id": "r1"}, {"name": "New"})
    assert seen["method"] == "PATCH"
    assert seen["body"] == {"name": "New"}
    assert rows[0]["name"] == "New"


def test_requires_credentials():
    with pytest.raises(ValueError):
        SupabaseDataStore("", "")


async def test_settings_live_in_user_settings_table():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["params"] = list(request.url.params.multi_items())
        return httpx.Response(200, json=[])

    store = make_store(handler)
    assert await store.select(Collection.SETTINGS, {"auto_clear_history": True}) == []

    assert seen["path"] == "/rest/v1/user_settings"
    assert ("auto_clear_history", "eq.true") in seen["params"]
