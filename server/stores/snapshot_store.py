"""
Versioned snapshot stores.

A store holds one JSON snapshot per game and accepts a write only if the
writer saw the latest version (compare-and-swap on ``version``). Accepted
writes are stored with ``version + 1`` and pushed to every subscriber of
the game, the writer included.

Two implementations share the same contract:
- MemorySnapshotStore: in-process, used for tests and single-node servers
- RedisSnapshotStore (stores.redis_store): WATCH/MULTI on Redis + pub/sub
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from models.snapshot import snapshot_version

logger = logging.getLogger(__name__)


class StaleWriteError(Exception):
    """Raised when a snapshot write is based on an outdated version."""

    def __init__(self, game_id: str, expected: int, current: int):
        self.game_id = game_id
        self.expected = expected
        self.current = current
        super().__init__(
            f"Stale write for game {game_id}: "
            f"written against version {expected}, store is at {current}"
        )


SnapshotHandler = Callable[[dict], Awaitable[None]]
Unsubscribe = Callable[[], Awaitable[None]]


class SnapshotStore(ABC):
    """Interface between the game clients and the shared document."""

    @abstractmethod
    async def load_snapshot(self, game_id: str) -> Optional[dict]:
        """
        Fetch the latest snapshot of a game.

        Returns:
            The snapshot dict, or None if the game does not exist.
        """

    @abstractmethod
    async def save_snapshot(self, game_id: str, snapshot: dict) -> int:
        """
        Store a snapshot if it was derived from the latest version.

        The snapshot's ``version`` must equal the stored version (0 for a
        game that does not exist yet).

        Args:
            game_id: Game to write.
            snapshot: Snapshot dict carrying the version it was read at.

        Returns:
            The new version number.

        Raises:
            StaleWriteError: If another write got there first.
        """

    @abstractmethod
    async def subscribe(self, game_id: str, handler: SnapshotHandler) -> Unsubscribe:
        """
        Register a handler for every snapshot accepted for a game.

        Returns:
            Async callable that removes the handler again.
        """

    @abstractmethod
    async def delete_snapshot(self, game_id: str) -> None:
        """Remove a game document."""

    async def close(self) -> None:
        """Release connections. Nothing to do by default."""


class MemorySnapshotStore(SnapshotStore):
    """
    In-process snapshot store.

    Writes are serialized with an asyncio lock; subscribers get their own
    copy of each accepted snapshot.
    """

    def __init__(self):
        self._snapshots: dict[str, dict] = {}
        self._handlers: dict[str, list[SnapshotHandler]] = {}
        self._lock = asyncio.Lock()

    async def load_snapshot(self, game_id: str) -> Optional[dict]:
        snapshot = self._snapshots.get(game_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    async def save_snapshot(self, game_id: str, snapshot: dict) -> int:
        expected = snapshot_version(snapshot)

        async with self._lock:
            stored = self._snapshots.get(game_id)
            current = stored["version"] if stored is not None else 0
            if expected != current:
                logger.debug(f"Rejected stale write for {game_id}: {expected} != {current}")
                raise StaleWriteError(game_id, expected, current)

            new_version = current + 1
            accepted = copy.deepcopy(snapshot)
            accepted["version"] = new_version
            self._snapshots[game_id] = accepted
            handlers = list(self._handlers.get(game_id, []))

        logger.debug(f"Stored {game_id} at version {new_version}")
        for handler in handlers:
            try:
                await handler(copy.deepcopy(accepted))
            except Exception as e:
                logger.error(f"Error in snapshot handler for {game_id}: {e}", exc_info=True)
        return new_version

    async def subscribe(self, game_id: str, handler: SnapshotHandler) -> Unsubscribe:
        self._handlers.setdefault(game_id, []).append(handler)

        async def unsubscribe() -> None:
            handlers = self._handlers.get(game_id, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(game_id, None)

        return unsubscribe

    async def delete_snapshot(self, game_id: str) -> None:
        async with self._lock:
            self._snapshots.pop(game_id, None)

    def subscriber_count(self, game_id: str) -> int:
        return len(self._handlers.get(game_id, []))
