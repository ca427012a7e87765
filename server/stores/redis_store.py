"""
Snapshot store backed by Redis.

Combines StateCache (versioned writes) with GamePubSub (change
notifications) behind the SnapshotStore interface, so several server
processes can share one game document.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from .pubsub import GamePubSub, MessageType, PubSubMessage
from .snapshot_store import SnapshotHandler, SnapshotStore, Unsubscribe
from .state_cache import StateCache

logger = logging.getLogger(__name__)


class RedisSnapshotStore(SnapshotStore):
    """SnapshotStore over a shared Redis instance."""

    def __init__(self, state_cache: StateCache, pubsub: GamePubSub):
        self.state_cache = state_cache
        self.pubsub = pubsub

    @classmethod
    async def create(cls, redis_url: str, server_id: str = "default") -> "RedisSnapshotStore":
        """
        Connect to Redis and start the pub/sub listener.

        Args:
            redis_url: Redis connection URL.
            server_id: Unique ID of this process.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        await client.ping()
        logger.info(f"RedisSnapshotStore connected to Redis as {server_id}")

        pubsub = GamePubSub(client, server_id=server_id)
        await pubsub.start()
        return cls(StateCache(client, server_id=server_id), pubsub)

    async def load_snapshot(self, game_id: str) -> Optional[dict]:
        snapshot = await self.state_cache.get_snapshot(game_id)
        if snapshot is not None:
            await self.state_cache.touch_game(game_id)
        return snapshot

    async def save_snapshot(self, game_id: str, snapshot: dict) -> int:
        return await self.state_cache.save_snapshot(game_id, snapshot)

    async def subscribe(self, game_id: str, handler: SnapshotHandler) -> Unsubscribe:
        async def on_message(msg: PubSubMessage) -> None:
            if msg.type == MessageType.SNAPSHOT_CHANGED:
                await handler(msg.data)

        return await self.pubsub.subscribe(game_id, on_message)

    async def delete_snapshot(self, game_id: str) -> None:
        await self.state_cache.delete_snapshot(game_id)

    async def close(self) -> None:
        await self.pubsub.stop()
        await self.state_cache.close()
