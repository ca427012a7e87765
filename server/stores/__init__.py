"""Stores package for versioned game snapshots."""

from .snapshot_store import MemorySnapshotStore, SnapshotStore, StaleWriteError
from .state_cache import StateCache
from .pubsub import GamePubSub, PubSubMessage, MessageType
from .redis_store import RedisSnapshotStore

__all__ = [
    # Snapshot store
    "SnapshotStore",
    "MemorySnapshotStore",
    "StaleWriteError",
    # Redis
    "StateCache",
    "RedisSnapshotStore",
    # Pub/sub
    "GamePubSub",
    "PubSubMessage",
    "MessageType",
]
