"""
Client side of the snapshot sync protocol.

A GameClient keeps a local copy of one game and talks to a SnapshotStore:

    1. Actions run against the local state first (optimistic update).
    2. The resulting snapshot is written with the version it was read at.
    3. If another client wrote first, the store rejects the write; the client
       refetches the latest snapshot and replays the action on it, up to
       max_retries times before giving up with ActionError.STALE_WRITE.
    4. Every accepted snapshot is pushed to all subscribers, this client
       included. An incoming snapshot replaces the local state wholesale,
       but only if its version is newer than the local one.

Usage:
    client = GameClient(store, game_id, player_id="alice")
    await client.connect()
    await client.seat("Alice")
    await client.ready()
    result = await client.draw_card("deck")
    await client.close()
"""

import dataclasses
import random
from typing import Callable, Optional, Union

from constants import SYNC_MAX_RETRIES
from game import (
    ActionError,
    ActionResult,
    Discard,
    DrawSource,
    GameOptions,
    GameState,
    Swap,
    deal_new_game,
    draw_card,
    flip_card,
    flip_initial_card,
    new_game,
    resolve_draw,
    seat_player,
    set_ready,
)
from logging_config import get_logger
from models.snapshot import SnapshotError, from_snapshot, to_snapshot
from stores.snapshot_store import SnapshotStore, StaleWriteError, Unsubscribe

logger = get_logger(__name__)

Action = Callable[[GameState], ActionResult]
StateListener = Callable[[GameState], None]


class GameNotFoundError(Exception):
    """Raised when acting on a game the store does not hold."""
    pass


class GameClient:
    """
    One participant's synchronized view of a game.

    Attributes:
        game_id: Game this client follows.
        player_id: Identity used for seating and turn checks.
        state: Latest known state (None until loaded).
    """

    def __init__(
        self,
        store: SnapshotStore,
        game_id: str,
        player_id: str,
        max_retries: int = SYNC_MAX_RETRIES,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.game_id = game_id
        self.player_id = player_id
        self.max_retries = max_retries
        self.rng = rng
        self.state: Optional[GameState] = None
        self._listeners: list[StateListener] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self.log = logger.with_context(game_id=game_id, player_id=player_id)

    @property
    def player_index(self) -> Optional[int]:
        if self.state is None:
            return None
        return self.state.player_index(self.player_id)

    @property
    def version(self) -> int:
        return self.state.version if self.state else 0

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> Optional[GameState]:
        """Subscribe to the game and load its latest snapshot."""
        if self._unsubscribe is None:
            self._unsubscribe = await self.store.subscribe(self.game_id, self._on_change)
        return await self.refresh()

    async def close(self) -> None:
        """Stop receiving updates."""
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> "GameClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def on_state(self, listener: StateListener) -> None:
        """Register a callback for every state this client adopts."""
        self._listeners.append(listener)

    async def refresh(self) -> Optional[GameState]:
        """
        Replace the local state with the stored snapshot.

        Raises:
            SnapshotError: If the stored snapshot is malformed.
        """
        snapshot = await self.store.load_snapshot(self.game_id)
        if snapshot is not None:
            self._adopt(from_snapshot(snapshot))
        return self.state

    async def _on_change(self, snapshot: dict) -> None:
        """Handle a snapshot pushed by the store."""
        try:
            incoming = from_snapshot(snapshot)
        except SnapshotError as e:
            self.log.error(f"Dropped invalid snapshot: {e}")
            return

        if self.state is not None and incoming.version <= self.state.version:
            self.log.debug(f"Ignored version {incoming.version}, already at {self.state.version}")
            return
        self._adopt(incoming)

    def _adopt(self, state: GameState) -> None:
        self.state = state
        for listener in self._listeners:
            listener(state)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_game(self, options: Optional[GameOptions] = None) -> GameState:
        """
        Write a fresh SETUP document for this game id.

        If the game already exists the stored one is loaded instead.
        """
        state = new_game(self.game_id, options)
        try:
            version = await self.store.save_snapshot(self.game_id, to_snapshot(state))
        except StaleWriteError:
            self.log.info("Game already exists, loading it")
            await self.refresh()
            return self.state

        self.log.info(f"Created game at version {version}")
        if self.version < version:
            self._adopt(dataclasses.replace(state, version=version))
        return self.state

    async def perform(self, action: Action) -> ActionResult:
        """
        Apply an action locally and publish the result.

        Args:
            action: Engine reducer bound to its arguments.

        Returns:
            The engine result. On success its state carries the stored
            version. STALE_WRITE if every attempt lost a race.

        Raises:
            GameNotFoundError: If the store has no such game.
            Exception: Any other store failure, after the local state
                has been rolled back to the last stored one.
        """
        for attempt in range(self.max_retries + 1):
            if self.state is None:
                await self.refresh()
            if self.state is None:
                raise GameNotFoundError(self.game_id)

            base = self.state
            result = action(base)
            if not result.ok:
                return result

            # Optimistic: show the outcome before the store confirms it
            self._adopt(result.state)
            try:
                version = await self.store.save_snapshot(self.game_id, to_snapshot(result.state))
            except StaleWriteError as e:
                self.log.warning(f"Write lost race: {e}", extra={"attempt": attempt + 1})
                await self.refresh()
                continue
            except Exception as e:
                # Roll back the optimistic state unless a newer one arrived meanwhile
                self.log.error(f"Save failed, rolling back: {e}")
                if self.state is result.state:
                    self._adopt(base)
                raise

            if self.version < version:
                self._adopt(dataclasses.replace(result.state, version=version))
            return ActionResult(state=self.state, notices=result.notices)

        self.log.warning(f"Giving up after {self.max_retries + 1} stale writes")
        return ActionResult(state=self.state, error=ActionError.STALE_WRITE)

    def _seated(self, action: Callable[[GameState, int], ActionResult]) -> Action:
        """Bind an action to this client's seat, resolved against each base state."""

        def bound(state: GameState) -> ActionResult:
            index = state.player_index(self.player_id)
            if index is None:
                return ActionResult(state=state, error=ActionError.NOT_SEATED)
            return action(state, index)

        return bound

    # -------------------------------------------------------------------------
    # Game Actions
    # -------------------------------------------------------------------------

    async def seat(self, name: str) -> ActionResult:
        return await self.perform(lambda s: seat_player(s, self.player_id, name))

    async def ready(self, ready: bool = True) -> ActionResult:
        return await self.perform(lambda s: set_ready(s, self.player_id, ready))

    async def deal(self) -> ActionResult:
        return await self.perform(lambda s: deal_new_game(s, self.rng))

    async def flip_initial_card(self, cell: int) -> ActionResult:
        return await self.perform(self._seated(lambda s, i: flip_initial_card(s, i, cell)))

    async def draw_card(self, source: Union[DrawSource, str]) -> ActionResult:
        return await self.perform(self._seated(lambda s, i: draw_card(s, i, source, self.rng)))

    async def swap(self, cell: int) -> ActionResult:
        return await self.perform(self._seated(lambda s, i: resolve_draw(s, i, Swap(cell))))

    async def discard(self) -> ActionResult:
        return await self.perform(self._seated(lambda s, i: resolve_draw(s, i, Discard())))

    async def flip_card(self, cell: int) -> ActionResult:
        return await self.perform(self._seated(lambda s, i: flip_card(s, i, cell)))
