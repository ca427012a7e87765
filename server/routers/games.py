"""
Game snapshot API router.

Exposes the snapshot store over HTTP and WebSocket:
- POST /api/games                 - create an empty game
- GET  /api/games/{id}            - latest snapshot
- GET  /api/games/{id}/scores     - running scores of both players
- PUT  /api/games/{id}            - versioned save of a client-computed snapshot
- POST /api/games/{id}/actions    - apply one engine action server-side
- WS   /api/games/{id}/ws         - current snapshot, then every change
"""

import asyncio
import dataclasses
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Body, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from cards import parse_joker_suits
from constants import GRID_SIZE
from game import ActionError, DrawSource, FlipMode, GameOptions, legal_actions, new_game, score_board
from logging_config import log_context
from models.snapshot import SnapshotError, from_snapshot, to_snapshot
from stores.snapshot_store import SnapshotStore, StaleWriteError
from sync import GameClient, GameNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["games"])

# Store reference (set during app initialization)
_store: Optional[SnapshotStore] = None


def set_snapshot_store(store: Optional[SnapshotStore]) -> None:
    """Set the snapshot store instance."""
    global _store
    _store = store


def get_store() -> SnapshotStore:
    """Get the snapshot store, or fail with 503 before startup finished."""
    if _store is None:
        raise HTTPException(status_code=503, detail="Snapshot store not initialized")
    return _store


# =============================================================================
# Request Models
# =============================================================================


class CreateGameRequest(BaseModel):
    """Options for a new game. Unset fields use the configured defaults."""
    game_id: Optional[str] = None
    include_jokers: Optional[bool] = None
    joker_suits: Optional[list[str]] = None
    flip_mode: Optional[FlipMode] = None


class ActionRequest(BaseModel):
    """One engine action taken on behalf of a player."""
    player_id: str
    action: Literal["seat", "ready", "deal", "flip_initial", "draw", "swap", "discard", "flip"]
    name: Optional[str] = None
    ready: bool = True
    cell: Optional[int] = Field(default=None, ge=0, lt=GRID_SIZE)
    source: Optional[DrawSource] = None


def _options(request: CreateGameRequest) -> GameOptions:
    options = GameOptions()
    if request.include_jokers is not None:
        options.include_jokers = request.include_jokers
    if request.joker_suits is not None:
        options.joker_suits = parse_joker_suits(request.joker_suits)
    if request.flip_mode is not None:
        options.flip_mode = request.flip_mode
    return options


def _require(value, field_name: str, action: str):
    if value is None:
        raise HTTPException(status_code=422, detail=f"'{field_name}' is required for {action}")
    return value


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", status_code=201)
async def create_game(request: Optional[CreateGameRequest] = None):
    """Create an empty game in the setup phase."""
    store = get_store()
    request = request or CreateGameRequest()
    try:
        options = _options(request)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    state = new_game(request.game_id, options)
    try:
        version = await store.save_snapshot(state.game_id, to_snapshot(state))
    except StaleWriteError:
        raise HTTPException(status_code=409, detail=f"Game {state.game_id} already exists")

    logger.info(f"Created game {state.game_id}")
    return to_snapshot(dataclasses.replace(state, version=version))


@router.get("/{game_id}")
async def get_game(game_id: str):
    """Get the latest snapshot of a game."""
    snapshot = await get_store().load_snapshot(game_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return snapshot


@router.get("/{game_id}/scores")
async def get_scores(game_id: str):
    """Running scores of both players (full breakdown once a grid is revealed)."""
    snapshot = await get_store().load_snapshot(game_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Game not found")
    try:
        state = from_snapshot(snapshot)
    except SnapshotError as e:
        raise HTTPException(status_code=500, detail=f"Stored snapshot is invalid: {e}")
    return {"version": state.version, "scores": score_board(state)}


@router.put("/{game_id}")
async def put_game(game_id: str, snapshot: dict = Body(...)):
    """
    Store a snapshot computed by a client.

    The body must carry the version it was derived from. Returns the new
    version, 409 if another write got there first, 422 if the snapshot is
    malformed or inconsistent.
    """
    store = get_store()
    try:
        state = from_snapshot(snapshot)
    except SnapshotError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if state.game_id != game_id:
        raise HTTPException(status_code=422, detail="gameId does not match the URL")

    try:
        version = await store.save_snapshot(game_id, to_snapshot(state))
    except StaleWriteError as e:
        raise HTTPException(
            status_code=409,
            detail={"error": ActionError.STALE_WRITE.value, "expected": e.expected, "current": e.current},
        )
    return {"version": version}


@router.post("/{game_id}/actions")
async def perform_action(game_id: str, request: ActionRequest):
    """
    Apply one engine action and save the result.

    Rule violations return 400 with the error kind; a write that kept
    losing races returns 409.
    """
    with log_context(game_id=game_id, player_id=request.player_id):
        client = GameClient(get_store(), game_id, request.player_id)
        try:
            await client.refresh()
        except SnapshotError as e:
            raise HTTPException(status_code=500, detail=f"Stored snapshot is invalid: {e}")
        if client.state is None:
            raise HTTPException(status_code=404, detail="Game not found")

        try:
            result = await _dispatch(client, request)
        except GameNotFoundError:
            raise HTTPException(status_code=404, detail="Game not found")

        if result.error == ActionError.STALE_WRITE:
            raise HTTPException(status_code=409, detail={"error": result.error.value})
        if result.error:
            logger.info(f"Rejected {request.action}: {result.error.value}")
            raise HTTPException(status_code=400, detail={"error": result.error.value})

        index = result.state.player_index(request.player_id)
        return {
            "snapshot": to_snapshot(result.state),
            "notices": [n.value for n in result.notices],
            "legalActions": legal_actions(result.state, index) if index is not None else [],
            "scores": score_board(result.state),
        }


async def _dispatch(client: GameClient, request: ActionRequest):
    action = request.action
    if action == "seat":
        return await client.seat(request.name or request.player_id)
    if action == "ready":
        return await client.ready(request.ready)
    if action == "deal":
        return await client.deal()
    if action == "flip_initial":
        return await client.flip_initial_card(_require(request.cell, "cell", action))
    if action == "draw":
        return await client.draw_card(_require(request.source, "source", action))
    if action == "swap":
        return await client.swap(_require(request.cell, "cell", action))
    if action == "discard":
        return await client.discard()
    return await client.flip_card(_require(request.cell, "cell", action))


@router.websocket("/{game_id}/ws")
async def game_updates(websocket: WebSocket, game_id: str):
    """
    Push the current snapshot, then every accepted change.

    Messages are {"type": "snapshot", "snapshot": {...}} in version order.
    Anything the client sends is ignored; the socket stays open until the
    client disconnects or a send fails.
    """
    store = get_store()
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()

    async def on_change(snapshot: dict) -> None:
        await queue.put(snapshot)

    async def forward_changes(sent_version: int) -> None:
        while True:
            snapshot = await queue.get()
            if snapshot["version"] <= sent_version:
                continue
            await websocket.send_json({"type": "snapshot", "snapshot": snapshot})
            sent_version = snapshot["version"]

    async def drain_client() -> None:
        while True:
            await websocket.receive_text()

    unsubscribe = await store.subscribe(game_id, on_change)
    tasks: list[asyncio.Task] = []
    try:
        current = await store.load_snapshot(game_id)
        if current is None:
            await websocket.send_json({"type": "error", "message": "Game not found"})
            await websocket.close(code=4004, reason="Game not found")
            return

        await websocket.send_json({"type": "snapshot", "snapshot": current})

        tasks = [
            asyncio.create_task(forward_changes(current["version"])),
            asyncio.create_task(drain_client()),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if isinstance(error, WebSocketDisconnect):
                logger.debug(f"WebSocket for game {game_id} disconnected")
            elif error is not None:
                logger.error(f"WebSocket for game {game_id} failed: {error}", exc_info=error)
    finally:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await unsubscribe()
