from tests.conftest import signup


def create_private(client, headers, name="Vault", password="4821"):
    response = client.post("/rooms/private", json={"name": name, "password": password}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["room"]["id"]


def test_root_and_health(client):
    assert client.get("/").json()["endpoints"]["rooms"] == "/rooms"

    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["data_store"] == "memory"
    assert body["connections"] == 0


def test_default_public_room_is_seeded(client):
    rooms = client.get("/rooms").json()
    assert [r["type"] for r in rooms] == ["public"]
    assert "password_hash" not in rooms[0]


def test_auth_flow(client):
    headers = signup(client, "alice@example.com", display_name="Alice")
    me = client.get("/auth/me", headers=headers).json()
    assert me["user"]["display_name"] == "Alice"

    login = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret-pass"})
    assert login.status_code == 200
    assert "session_token" in login.cookies

    bad = client.post("/auth/login", json={"email": "alice@example.com", "password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "authentication_failed"

    client.post("/auth/logout", headers=headers)
    client.cookies.clear()
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_private_room_requires_sign_in(client):
    response = client.post("/rooms/private", json={"name": "Vault", "password": "4821"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_private_room_generates_password(client):
    headers = signup(client, "alice@example.com")
    body = client.post("/rooms/private", json={"name": "Vault"}, headers=headers).json()
    assert len(body["password"]) == 4
    assert body["room"]["type"] == "private"
    assert "password_hash" not in body["room"]


def test_malformed_password_rejected(client):
    headers = signup(client, "alice@example.com")
    response = client.post("/rooms/private", json={"name": "Vault", "password": "12ab"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "invalid_credential"


def test_vault_scenario_over_http(client):
    alice = signup(client, "alice@example.com")
    bob = signup(client, "bob@example.com")
    client.cookies.clear()

    room_id = create_private(client, alice)

    assert client.post(f"/rooms/{room_id}/join", json={"password": "4821"}, headers=alice).status_code == 200
    assert client.get(f"/rooms/{room_id}/membership", headers=alice).json() == {
        "room_id": room_id,
        "is_member": True,
        "is_owner": True,
    }

    wrong = client.post(f"/rooms/{room_id}/join", json={"password": "0000"}, headers=bob)
    assert wrong.status_code == 403
    assert wrong.json()["error"] == "invalid_credential"

    denied = client.post(f"/rooms/{room_id}/messages", json={"content": "let me in"}, headers=bob)
    assert denied.status_code == 403
    assert denied.json()["error"] == "not_member"
    assert client.get(f"/rooms/{room_id}/messages", headers=bob).status_code == 403

    sent = client.post(f"/rooms/{room_id}/messages", json={"content": "hello"}, headers=alice)
    assert sent.status_code == 200
    assert sent.json()["user_name"] == "alice"

    forbidden = client.delete(f"/rooms/{room_id}/messages", headers=bob)
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "forbidden"
    assert len(client.get(f"/rooms/{room_id}/messages", headers=alice).json()) == 1

    cleared = client.delete(f"/rooms/{room_id}/messages", headers=alice)
    assert cleared.json() == {"status": "cleared", "room_id": room_id, "deleted": 1}
    assert client.get(f"/rooms/{room_id}/messages", headers=alice).json() == []


def test_join_twice_and_leave(client):
    alice = signup(client, "alice@example.com")
    bob = signup(client, "bob@example.com")
    client.cookies.clear()
    room_id = create_private(client, alice)

    first = client.post(f"/rooms/{room_id}/join", json={"password": "4821"}, headers=bob).json()
    second = client.post(f"/rooms/{room_id}/join", json={"password": "4821"}, headers=bob).json()
    assert first["id"] == second["id"]

    assert client.post(f"/rooms/{room_id}/leave", headers=bob).json()["status"] == "left"
    assert client.get(f"/rooms/{room_id}/membership", headers=bob).json()["is_member"] is False


def test_join_public_room_is_wrong_kind(client):
    public_id = client.get("/rooms").json()[0]["id"]
    response = client.post(f"/rooms/{public_id}/join", json={"password": "1234"})
    assert response.status_code == 409
    assert response.json()["error"] == "wrong_room_kind"


def test_unknown_room(client):
    assert client.get("/rooms/missing").status_code == 404
    assert client.post("/rooms/missing/messages", json={"content": "hi"}).status_code == 404


def test_anonymous_public_messages(client):
    public_id = client.get("/rooms").json()[0]["id"]
    sent = client.post(f"/rooms/{public_id}/messages", json={"content": "hi", "user_name": "Guest"})
    assert sent.status_code == 200
    assert sent.json()["user_id"] is None

    history = client.get(f"/rooms/{public_id}/messages").json()
    assert [m["content"] for m in history] == ["hi"]


def test_create_public_room(client):
    response = client.post("/rooms", json={"name": "Lobby 2"})
    assert response.status_code == 200
    assert response.json()["type"] == "public"

    assert client.post("/rooms", json={"name": "  "}).status_code == 400


def test_websocket_receives_public_messages(client):
    public_id = client.get("/rooms").json()[0]["id"]

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"action": "subscribe", "room_id": public_id})
        subscribed = ws.receive_json()
        assert subscribed["type"] == "subscribed"
        assert subscribed["subscribers"] == 1

        client.post(f"/rooms/{public_id}/messages", json={"content": "live"})
        event = ws.receive_json()
        assert event["type"] == "message"
        assert event["message"]["content"] == "live"


def test_websocket_private_room_requires_membership(client):
    alice = signup(client, "alice@example.com")
    client.cookies.clear()
    room_id = create_private(client, alice)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "subscribe", "room_id": room_id})
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["error"] == "not_member"

    token = alice["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"action": "subscribe", "room_id": room_id})
        assert ws.receive_json()["type"] == "subscribed"

        client.delete(f"/rooms/{room_id}/messages", headers=alice)
        assert ws.receive_json() == {"type": "history_cleared", "room_id": room_id}


def test_websocket_rejects_bad_input(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["message"] == "Invalid JSON"
        ws.send_json({"action": "dance"})
        assert "Unknown action" in ws.receive_json()["message"]


def test_leaving_a_private_room_stops_websocket_delivery(client):
    alice = signup(client, "alice@example.com")
    bob = signup(client, "bob@example.com")
    client.cookies.clear()
    room_id = create_private(client, alice)
    client.post(f"/rooms/{room_id}/join", json={"password": "4821"}, headers=bob)

    token = bob["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"action": "subscribe", "room_id": room_id})
        assert ws.receive_json()["type"] == "subscribed"

        assert client.post(f"/rooms/{room_id}/leave", headers=bob).status_code == 200
        assert ws.receive_json() == {"type": "unsubscribed", "room_id": room_id}

        client.post(f"/rooms/{room_id}/messages", json={"content": "after you left"}, headers=alice)
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}


class FailingBroadcaster:
    async def broadcast_to_room(self, room_id, event):
        raise ConnectionError("redis is down")

    async def close(self):
        pass


def test_message_is_stored_when_broadcast_fails(client):
    client.app.state.chat.broadcaster = FailingBroadcaster()
    public_id = client.get("/rooms").json()[0]["id"]

    sent = client.post(f"/rooms/{public_id}/messages", json={"content": "still here"})
    assert sent.status_code == 200
    assert sent.json()["content"] == "still here"

    history = client.get(f"/rooms/{public_id}/messages").json()
    assert [m["id"] for m in history] == [sent.json()["id"]]


def test_clear_own_messages_over_http(client):
    alice = signup(client, "alice@example.com")
    bob = signup(client, "bob@example.com")
    client.cookies.clear()
    public_id = client.get("/rooms").json()[0]["id"]
    room_id = create_private(client, alice)
    client.post(f"/rooms/{room_id}/join", json={"password": "4821"}, headers=bob)

    client.post(f"/rooms/{public_id}/messages", json={"content": "bob public"}, headers=bob)
    client.post(f"/rooms/{room_id}/messages", json={"content": "bob private"}, headers=bob)
    client.post(f"/rooms/{room_id}/messages", json={"content": "alice private"}, headers=alice)

    mine = client.delete(f"/rooms/{room_id}/messages/mine", headers=bob)
    assert mine.json()["deleted"] == 1
    history = client.get(f"/rooms/{room_id}/messages", headers=alice).json()
    assert [m["content"] for m in history] == ["alice private"]

    everywhere = client.delete("/messages/mine", headers=bob)
    assert everywhere.json() == {"status": "cleared", "deleted": 1}
    assert client.get(f"/rooms/{public_id}/messages").json() == []

    assert client.delete("/messages/mine").status_code == 401


def test_history_settings_over_http(client):
    headers = signup(client, "alice@example.com")
    client.cookies.clear()

    assert client.get("/settings", headers=headers).json()["auto_clear_history"] is False

    saved = client.put(
        "/settings", json={"auto_clear_history": True, "clear_after_days": 7}, headers=headers
    )
    assert saved.status_code == 200
    assert saved.json()["clear_after_days"] == 7
    assert client.get("/settings", headers=headers).json()["auto_clear_history"] is True

    bad = client.put(
        "/settings", json={"auto_clear_history": True, "clear_after_days": 0}, headers=headers
    )
    assert bad.status_code == 422

    assert client.post("/settings/auto-clear", headers=headers).json() == {"status": "ok", "deleted": 0}
    assert client.get("/settings").status_code == 401


def test_update_profile_over_http(client):
    headers = signup(client, "alice@example.com", display_name="Alice")
    client.cookies.clear()

    updated = client.patch("/auth/me", json={"display_name": "Ally"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["display_name"] == "Ally"

    public_id = client.get("/rooms").json()[0]["id"]
    sent = client.post(f"/rooms/{public_id}/messages", json={"content": "hi"}, headers=headers)
    assert sent.json()["user_name"] == "Ally"

    assert client.patch("/auth/me", json={"display_name": "Ally"}).status_code == 401
