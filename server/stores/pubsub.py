"""
Redis pub/sub for snapshot change notifications.

Every accepted snapshot write is published on the game's channel, inside
the same MULTI block that stores it (see StateCache.save_snapshot). Each
process subscribes to the games its clients are looking at and hands the
messages to local handlers. The writer's own handlers are called as well;
version gating on the receiving side makes that harmless.

Usage:
    pubsub = GamePubSub(redis_client, server_id="a1b2c3d4")
    await pubsub.start()

    async def on_message(msg: PubSubMessage):
        print(f"{msg.game_id} is now at version {msg.data['version']}")

    remove = await pubsub.subscribe(game_id, on_message)
    ...
    await remove()
    await pubsub.stop()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Kinds of notification sent on a game channel."""

    # A new snapshot version was stored; data is the full snapshot
    SNAPSHOT_CHANGED = "snapshot_changed"

    # The game document was deleted
    GAME_CLOSED = "game_closed"


@dataclass(frozen=True)
class PubSubMessage:
    """
    One notification on a game channel.

    Attributes:
        type: What happened.
        game_id: Game the message is about.
        data: Payload; the stored snapshot for SNAPSHOT_CHANGED.
        sender_id: Server that published it.
    """

    type: MessageType
    game_id: str
    data: dict
    sender_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({
            "type": self.type.value,
            "game_id": self.game_id,
            "data": self.data,
            "sender_id": self.sender_id,
        })

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "PubSubMessage":
        """Parse a published message. Raises ValueError on malformed input."""
        d = json.loads(raw)
        try:
            return cls(
                type=MessageType(d["type"]),
                game_id=d["game_id"],
                data=d.get("data") or {},
                sender_id=d.get("sender_id"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed pubsub message: {e}") from e


MessageHandler = Callable[[PubSubMessage], Awaitable[None]]
RemoveHandler = Callable[[], Awaitable[None]]


def channel_for(game_id: str) -> str:
    """Redis channel name for a game."""
    return f"{GamePubSub.CHANNEL_PREFIX}{game_id}"


def _text(value: Union[str, bytes]) -> str:
    return value.decode() if isinstance(value, bytes) else value


class GamePubSub:
    """
    Per-game channel subscriptions over one Redis pub/sub connection.

    A channel is joined when its first handler registers and left when
    its last handler goes away.
    """

    CHANNEL_PREFIX = "golf:snapshots:"
    POLL_TIMEOUT = 1.0
    RECONNECT_DELAY = 1.0

    def __init__(self, redis_client: redis.Redis, server_id: str = "default"):
        self.server_id = server_id
        self.pubsub = redis_client.pubsub()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(self, game_id: str, handler: MessageHandler) -> RemoveHandler:
        """
        Register a handler for a game's messages.

        Returns:
            Coroutine function that removes this handler again.
        """
        channel = channel_for(game_id)
        handlers = self._handlers.get(channel)
        if handlers is None:
            handlers = self._handlers[channel] = []
            await self.pubsub.subscribe(channel)
            logger.debug(f"Joined {channel}")
        handlers.append(handler)

        async def remove() -> None:
            await self.remove_handler(game_id, handler)

        return remove

    async def remove_handler(self, game_id: str, handler: MessageHandler) -> None:
        """Remove one handler, leaving the channel if it was the last."""
        handlers = self._handlers.get(channel_for(game_id))
        if handlers is None:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            await self.unsubscribe(game_id)

    async def unsubscribe(self, game_id: str) -> None:
        """Drop every handler for a game and leave its channel."""
        channel = channel_for(game_id)
        if self._handlers.pop(channel, None) is not None:
            await self.pubsub.unsubscribe(channel)
            logger.debug(f"Left {channel}")

    # -------------------------------------------------------------------------
    # Listener
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background listener."""
        if self.running:
            return
        self._task = asyncio.create_task(self._listen())
        logger.info(f"GamePubSub listener started ({self.server_id})")

    async def stop(self) -> None:
        """Stop the listener and close the pub/sub connection."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._handlers.clear()
        await self.pubsub.aclose()
        logger.info("GamePubSub listener stopped")

    async def _listen(self) -> None:
        while True:
            if not self._handlers:
                # get_message needs at least one subscribed channel
                await asyncio.sleep(0.1)
                continue
            try:
                raw = await self.pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.POLL_TIMEOUT,
                )
            except redis.ConnectionError as e:
                logger.error(f"PubSub connection error: {e}")
                await asyncio.sleep(self.RECONNECT_DELAY)
                continue

            if raw and raw["type"] == "message":
                await self._handle_message(raw)

    async def _handle_message(self, raw: dict) -> None:
        """Decode one Redis message and pass it to the channel's handlers."""
        channel = _text(raw["channel"])
        try:
            msg = PubSubMessage.from_json(_text(raw["data"]))
        except ValueError as e:
            logger.warning(f"Ignoring bad message on {channel}: {e}")
            return

        handlers = list(self._handlers.get(channel, ()))
        results = await asyncio.gather(*(h(msg) for h in handlers), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Error in pubsub handler for {channel}: {result}", exc_info=result)
