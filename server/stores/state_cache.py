"""
Redis-backed game snapshot cache.

Each game is one JSON document. Writes are a compare-and-swap on the
document's version: the key is WATCHed, the stored version compared with
the writer's, and the new document SET and PUBLISHed in one MULTI/EXEC
transaction. A concurrent write in between aborts the transaction with a
WatchError, reported as StaleWriteError.

Key patterns:
- golf:game:{game_id}        -> JSON (latest snapshot)
- golf:snapshots:{game_id}   -> pub/sub channel (accepted snapshots)
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

from config import config
from models.snapshot import snapshot_version
from .pubsub import MessageType, PubSubMessage, channel_for
from .snapshot_store import StaleWriteError

logger = logging.getLogger(__name__)


class StateCache:
    """Redis-backed snapshot storage with versioned writes."""

    # Key patterns
    GAME_KEY = "golf:game:{game_id}"

    GAME_TTL = timedelta(hours=config.SNAPSHOT_TTL_HOURS)

    def __init__(self, redis_client: redis.Redis, server_id: str = "default"):
        """
        Initialize state cache with Redis client.

        Args:
            redis_client: Async Redis client.
            server_id: ID stamped on published change messages.
        """
        self.redis = redis_client
        self.server_id = server_id

    @classmethod
    async def create(cls, redis_url: str, server_id: str = "default") -> "StateCache":
        """
        Create a StateCache with a new Redis connection.

        Args:
            redis_url: Redis connection URL.
            server_id: ID stamped on published change messages.

        Returns:
            Configured StateCache instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("StateCache connected to Redis")
        return cls(client, server_id)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.aclose()

    def _key(self, game_id: str) -> str:
        return self.GAME_KEY.format(game_id=game_id)

    @staticmethod
    def _decode(raw) -> Optional[dict]:
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return json.loads(raw)

    # -------------------------------------------------------------------------
    # Snapshot Operations
    # -------------------------------------------------------------------------

    async def get_snapshot(self, game_id: str) -> Optional[dict]:
        """
        Get the latest snapshot of a game.

        Args:
            game_id: Game UUID.

        Returns:
            Snapshot dict, or None if not found.
        """
        return self._decode(await self.redis.get(self._key(game_id)))

    async def get_version(self, game_id: str) -> int:
        """Stored version of a game (0 if missing)."""
        snapshot = await self.get_snapshot(game_id)
        return snapshot["version"] if snapshot else 0

    async def save_snapshot(self, game_id: str, snapshot: dict) -> int:
        """
        Store a snapshot if it was derived from the stored version.

        Args:
            game_id: Game UUID.
            snapshot: Snapshot dict carrying the version it was read at.

        Returns:
            The new version number.

        Raises:
            StaleWriteError: If the stored version differs, or another
                writer commits between WATCH and EXEC.
        """
        key = self._key(game_id)
        expected = snapshot_version(snapshot)

        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                stored = self._decode(await pipe.get(key))
                current = stored["version"] if stored else 0
                if current != expected:
                    raise StaleWriteError(game_id, expected, current)

                accepted = dict(snapshot, version=current + 1)
                message = PubSubMessage(
                    type=MessageType.SNAPSHOT_CHANGED,
                    game_id=game_id,
                    data=accepted,
                    sender_id=self.server_id,
                )

                pipe.multi()
                pipe.set(key, json.dumps(accepted), ex=int(self.GAME_TTL.total_seconds()))
                pipe.publish(channel_for(game_id), message.to_json())
                await pipe.execute()
            except redis.WatchError:
                current = await self.get_version(game_id)
                logger.debug(f"Concurrent write on {game_id} during transaction")
                raise StaleWriteError(game_id, expected, current)

        logger.debug(f"Stored {game_id} at version {current + 1}")
        return current + 1

    async def delete_snapshot(self, game_id: str) -> None:
        """
        Delete a game and tell its subscribers.

        Args:
            game_id: Game UUID.
        """
        message = PubSubMessage(
            type=MessageType.GAME_CLOSED,
            game_id=game_id,
            data={},
            sender_id=self.server_id,
        )
        pipe = self.redis.pipeline()
        pipe.delete(self._key(game_id))
        pipe.publish(channel_for(game_id), message.to_json())
        await pipe.execute()

    async def touch_game(self, game_id: str) -> None:
        """
        Refresh game TTL on any activity.

        Args:
            game_id: Game UUID to refresh.
        """
        await self.redis.expire(self._key(game_id), int(self.GAME_TTL.total_seconds()))
