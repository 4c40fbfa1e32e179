# chatrooms/services/connection_manager.py

from __future__ import annotations

from typing import Dict, Optional, Set

from fastapi import WebSocket

from chatrooms.core.logging import get_logger
from chatrooms.models.models import Account

logger = get_logger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Tracks which WebSocket connections are subscribed to which rooms.

    Access checks happen before ``subscribe`` is called; this class only
    does bookkeeping and delivery.

    Data Structures:
        rooms: room_id -> Set of WebSocket connections subscribed to it
        connection_rooms: WebSocket -> Set of room_ids it is subscribed to
        connection_accounts: WebSocket -> Account (None for anonymous clients)
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.connection_rooms: Dict[WebSocket, Set[str]] = {}
        self.connection_accounts: Dict[WebSocket, Optional[Account]] = {}

    async def connect(self, websocket: WebSocket, account: Optional[Account] = None) -> None:
        await websocket.accept()
        self.connection_rooms[websocket] = set()
        self.connection_accounts[websocket] = account

        who = account.id if account else "anonymous"
        logger.info("✓ %s connected. Total: %d", who, len(self.connection_rooms))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket not in self.connection_rooms:
            return

        for room_id in self.connection_rooms[websocket]:
            if room_id in self.rooms:
                self.rooms[room_id].discard(websocket)
                if not self.rooms[room_id]:
                    del self.rooms[room_id]

        del self.connection_rooms[websocket]
        account = self.connection_accounts.pop(websocket, None)

        who = account.id if account else "anonymous"
        logger.info("✗ %s disconnected. Total: %d", who, len(self.connection_rooms))

    def account_for(self, websocket: WebSocket) -> Optional[Account]:
        return self.connection_accounts.get(websocket)

    def subscribe(self, websocket: WebSocket, room_id: str) -> int:
        """Add the connection to a room. Returns the room's subscriber count."""
        if websocket not in self.connection_rooms:
            return 0  # Connection already closed
        self.rooms.setdefault(room_id, set()).add(websocket)
        self.connection_rooms[websocket].add(room_id)
        return len(self.rooms[room_id])

    def unsubscribe(self, websocket: WebSocket, room_id: str) -> int:
        if websocket in self.connection_rooms:
            self.connection_rooms[websocket].discard(room_id)
        if room_id not in self.rooms:
            return 0
        self.rooms[room_id].discard(websocket)
        count = len(self.rooms[room_id])
        if not count:
            del self.rooms[room_id]
        return count

    async def unsubscribe_account(self, room_id: str, account_id: str) -> int:
        """
        Drop every connection of ``account_id`` from a room.

        Called when the account loses access (e.g. leaves a private room).
        Each dropped connection is told so. Returns how many were dropped.
        """
        dropped = [
            ws
            for ws, account in list(self.connection_accounts.items())
            if account is not None
            and account.id == account_id
            and room_id in self.connection_rooms.get(ws, set())
        ]
        for ws in dropped:
            self.unsubscribe(ws, room_id)
            try:
                await ws.send_json({"type": "unsubscribed", "room_id": room_id})
            except Exception as e:
                logger.error(f"Send error: {e}")
                self.disconnect(ws)
        if dropped:
            logger.info("← %s unsubscribed from %s (%d connections)", account_id, room_id, len(dropped))
        return len(dropped)

    async def broadcast_to_room(self, room_id: str, message: dict) -> None:
        """
        Send a JSON payload to every connection subscribed to ``room_id``.

        Connections that fail to receive are dropped. A ``member_left``
        event first unsubscribes the leaving account's own connections, so
        the leave takes effect on every instance that hears it.
        """
        if message.get("type") == "member_left" and message.get("user_id"):
            await self.unsubscribe_account(room_id, message["user_id"])

        if room_id not in self.rooms:
            logger.debug("[routing] Skipped broadcast: room=%s has 0 subscribers", room_id)
            return

        disconnected = set()
        connections = self.rooms[room_id].copy()

        logger.info("📨 Broadcasting to room %s: %d clients", room_id, len(connections))

        for connection in connections:
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Send error: {e}")
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)

    def stats(self) -> Dict[str, int]:
        return {
            "connections": len(self.connection_rooms),
            "active_rooms_with_subscribers": len(self.rooms),
        }
