"""Models package: the snapshot document exchanged with the store."""

from .snapshot import (
    CardSnapshot,
    GameSnapshot,
    PlayerSnapshot,
    SnapshotError,
    from_snapshot,
    snapshot_version,
    to_snapshot,
)

__all__ = [
    "CardSnapshot",
    "GameSnapshot",
    "PlayerSnapshot",
    "SnapshotError",
    "from_snapshot",
    "snapshot_version",
    "to_snapshot",
]
