"""
Cart signals shared by every view of one shopper.

Two channels:
- storage: the cart store was written, possibly by another process
- messages: a shop's hosted checkout posted a window message

Signals stay in-process, or travel through Redis pub/sub so that processes
sharing a Redis-backed cart store see each other's writes.
"""
import asyncio
import contextlib
import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import redis.asyncio as aioredis

from mallcart.core.constants import CHECKOUT_THANK_YOU_PAGE, MESSAGES_CHANNEL, STORAGE_CHANNEL

logger = logging.getLogger(__name__)


class SignalType(str, Enum):
    """Types of cart signals."""

    # Persisted cart state was written
    STORAGE_CHANGED = "storage_changed"

    # Explicit "sync cart" request
    SYNC_CART = "sync_cart"

    # A shop's checkout reached its thank-you page
    CHECKOUT_COMPLETED = "checkout_completed"


@dataclass
class CartSignal:
    type: SignalType
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def requires_resync(self) -> bool:
        return self.type in (SignalType.SYNC_CART, SignalType.CHECKOUT_COMPLETED)

    @property
    def storage_key(self) -> str | None:
        """Cart store key a STORAGE_CHANGED signal refers to."""
        if self.type is not SignalType.STORAGE_CHANGED:
            return None
        return self.data.get("key") if isinstance(self.data, dict) else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "created_at": self.created_at.isoformat(),
        }

    def to_json(self) -> str:
        """Wire format shared with RedisCartStore's sync publisher."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartSignal":
        created_at = data.get("created_at")
        return cls(
            type=SignalType(data["type"]),
            data=data.get("data", {}),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(timezone.utc),
        )


def decode_signal(raw: Any) -> CartSignal | None:
    """Parse a signal published by any process; foreign payloads are dropped."""
    try:
        return CartSignal.from_dict(json.loads(raw))
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Dropping malformed cart signal %r: %s", raw, exc)
        return None


def parse_window_message(raw: Any) -> CartSignal | None:
    """Translate a posted window message into a resync signal.

    Shop checkouts post JSON strings; anything that does not parse is ignored.
    """
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            data = {}
        if not isinstance(data, dict):
            data = {}

    if data.get("syncCart"):
        return CartSignal(type=SignalType.SYNC_CART, data=data)
    if data.get("current_checkout_page") == CHECKOUT_THANK_YOU_PAGE:
        return CartSignal(type=SignalType.CHECKOUT_COMPLETED, data=data)
    return None


SignalHandler = Callable[[CartSignal], Awaitable[None]]


class PubSubBackend(ABC):
    """Transport for cart signals. Handlers run in subscription order, once each."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[SignalHandler]] = {}

    def _add(self, channel: str, handler: SignalHandler) -> bool:
        """Register a handler; True when it is the channel's first one."""
        handlers = self._handlers.setdefault(channel, [])
        first = not handlers
        if handler not in handlers:
            handlers.append(handler)
        return first

    def _remove(self, channel: str, handler: SignalHandler) -> bool:
        """Unregister a handler; True when the channel has none left."""
        handlers = self._handlers.get(channel)
        if not handlers:
            return False
        if handler in handlers:
            handlers.remove(handler)
        if handlers:
            return False
        del self._handlers[channel]
        return True

    async def _dispatch(self, channel: str, signal: CartSignal) -> None:
        # A failing view must not keep the others stale
        for handler in list(self._handlers.get(channel, ())):
            try:
                await handler(signal)
            except Exception as exc:
                logger.error("Cart signal handler failed on %s: %s", channel, exc)

    @abstractmethod
    async def publish(self, channel: str, signal: CartSignal) -> None: ...

    @abstractmethod
    async def subscribe(self, channel: str, handler: SignalHandler) -> None: ...

    @abstractmethod
    async def unsubscribe(self, channel: str, handler: SignalHandler) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...


class InMemoryPubSub(PubSubBackend):
    """Signals between views of this process only."""

    async def publish(self, channel: str, signal: CartSignal) -> None:
        await self._dispatch(channel, signal)

    async def subscribe(self, channel: str, handler: SignalHandler) -> None:
        self._add(channel, handler)

    async def unsubscribe(self, channel: str, handler: SignalHandler) -> None:
        self._remove(channel, handler)

    async def close(self) -> None:
        self._handlers.clear()


class RedisPubSub(PubSubBackend):
    """
    Signals shared by every process using the same Redis as the cart store.

    RedisCartStore publishes its writes with the sync client in the same
    JSON shape, so those reach storage subscribers here as well. The reader
    task runs only while at least one handler is subscribed.
    """

    POLL_TIMEOUT_SECONDS = 1.0

    def __init__(self, redis_url: str):
        super().__init__()
        self._redis_url = redis_url
        self._client = None
        self._pubsub = None
        self._reader: asyncio.Task | None = None

    def _connection(self):
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
            self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        return self._client

    def _start_reader(self) -> None:
        if self._reader is None or self._reader.done():
            self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        while self._handlers:
            try:
                message = await self._pubsub.get_message(timeout=self.POLL_TIMEOUT_SECONDS)
            except Exception as exc:
                logger.error("Cart signal reader failed: %s", exc)
                await asyncio.sleep(self.POLL_TIMEOUT_SECONDS)
                continue
            if not message or message.get("type") != "message":
                continue
            signal = decode_signal(message["data"])
            if signal is not None:
                await self._dispatch(message["channel"], signal)

    async def publish(self, channel: str, signal: CartSignal) -> None:
        await self._connection().publish(channel, signal.to_json())

    async def subscribe(self, channel: str, handler: SignalHandler) -> None:
        self._connection()
        if self._add(channel, handler):
            await self._pubsub.subscribe(channel)
        self._start_reader()

    async def unsubscribe(self, channel: str, handler: SignalHandler) -> None:
        if self._remove(channel, handler) and self._pubsub is not None:
            await self._pubsub.unsubscribe(channel)

    async def close(self) -> None:
        self._handlers.clear()
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
        if self._client is not None:
            await self._client.aclose()
        self._client = None
        self._pubsub = None


class CartSignals:
    """
    Channel-level API used by the views.

    Badges subscribe to storage to re-read the counter written by other
    processes; cart pages subscribe to messages to resync after a checkout.
    """

    _instance: Optional["CartSignals"] = None

    def __init__(self, backend: PubSubBackend | None = None):
        self._backend = backend or InMemoryPubSub()

    @classmethod
    def get_instance(cls, redis_url: str | None = None) -> "CartSignals":
        if cls._instance is None:
            backend = RedisPubSub(redis_url) if redis_url else InMemoryPubSub()
            cls._instance = cls(backend)
        return cls._instance

    async def subscribe_storage(self, handler: SignalHandler) -> None:
        await self._backend.subscribe(STORAGE_CHANNEL, handler)

    async def unsubscribe_storage(self, handler: SignalHandler) -> None:
        await self._backend.unsubscribe(STORAGE_CHANNEL, handler)

    async def subscribe_messages(self, handler: SignalHandler) -> None:
        await self._backend.subscribe(MESSAGES_CHANNEL, handler)

    async def unsubscribe_messages(self, handler: SignalHandler) -> None:
        await self._backend.unsubscribe(MESSAGES_CHANNEL, handler)

    async def post_message(self, raw: Any) -> CartSignal | None:
        """Relay a window-style message; returns the signal when it was relevant."""
        signal = parse_window_message(raw)
        if signal is None:
            logger.debug("Ignoring unrelated window message")
            return None
        await self._backend.publish(MESSAGES_CHANNEL, signal)
        return signal

    async def close(self) -> None:
        await self._backend.close()


def get_cart_signals(redis_url: str | None = None) -> CartSignals:
    """Process-wide signals, on Redis when REDIS_URL is set."""
    if redis_url is None:
        redis_url = os.getenv("REDIS_URL")
    return CartSignals.get_instance(redis_url)
