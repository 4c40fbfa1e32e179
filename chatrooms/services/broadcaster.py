# chatrooms/services/broadcaster.py
"""
Realtime fan-out of room events to subscribed WebSocket clients.

LocalBroadcaster delivers straight to this process's ConnectionManager.
RedisBroadcaster publishes to a per-room Redis channel (``room:<id>``) and a
background listener forwards everything it hears to the local
ConnectionManager, so several backend instances can share one room.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis

from chatrooms.core.logging import get_logger
from chatrooms.services.connection_manager import ConnectionManager

logger = get_logger(__name__)

CHANNEL_PREFIX = "room:"


class Broadcaster(ABC):
    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager

    @abstractmethod
    async def broadcast_to_room(self, room_id: str, event: dict) -> None:
        pass

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass


class LocalBroadcaster(Broadcaster):
    async def broadcast_to_room(self, room_id: str, event: dict) -> None:
        await self.connection_manager.broadcast_to_room(room_id, event)


class RedisBroadcaster(Broadcaster):
    def __init__(self, connection_manager: ConnectionManager, url: str):
        super().__init__(connection_manager)
        self.url = url
        self.client: Optional[redis.Redis] = None
        self.pubsub = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Connect and start the ``room:*`` listener in the background."""
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info("✓ Connected to Redis")

        self.pubsub = self.client.pubsub()
        await self.pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        logger.info(f"✓ Subscribed to Redis pattern '{CHANNEL_PREFIX}*'")
        self._listener = asyncio.create_task(self.listen())

    async def broadcast_to_room(self, room_id: str, event: dict) -> None:
        if self.client is None:
            raise RuntimeError("RedisBroadcaster.start() was not awaited")
        channel = f"{CHANNEL_PREFIX}{room_id}"
        await self.client.publish(channel, json.dumps({"room_id": room_id, "event": event}, default=str))
        logger.debug(f"📤 Published to Redis channel '{channel}'")

    async def listen(self) -> None:
        async for message in self.pubsub.listen():
            if message["type"] not in ("message", "pmessage"):
                continue
            try:
                data = json.loads(message["data"])
            except (TypeError, ValueError) as e:
                logger.error(f"Error decoding Redis message: {e}")
                continue

            room_id = data.get("room_id")
            if not room_id:
                logger.warning("Redis message without room_id - ignoring")
                continue
            await self.connection_manager.broadcast_to_room(room_id, data.get("event", {}))

    async def close(self) -> None:
        if self._listener:
            self._listener.cancel()
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
