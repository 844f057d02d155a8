"""Redis-backed shop -> cart map and cross-shop item counter."""
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

import redis

from mallcart.core.constants import (
    CART_COUNT_KEY,
    CARTS_KEY,
    DEFAULT_KEY_PREFIX,
    STORAGE_CHANNEL,
    STORE_LOCK_TTL_SECONDS,
    STORE_LOCK_WAIT_SECONDS,
)
from mallcart.core.notifications import CartSignal, SignalType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CartStoreChange:
    """Published after every write; subscribers re-read the store."""

    key: str
    value: Any


StoreListener = Callable[[CartStoreChange], None]


class RedisCartStore:
    """Persisted CartMap and ItemCounter with an in-memory fallback.

    Every process pointed at the same Redis shares the state. Without Redis
    the state lives in this instance only.
    """

    LOCK_TTL_SECONDS = STORE_LOCK_TTL_SECONDS
    LOCK_WAIT_SECONDS = STORE_LOCK_WAIT_SECONDS

    def __init__(self, redis_url: str | None = None, key_prefix: str = DEFAULT_KEY_PREFIX):
        self._redis_url = redis_url or os.getenv("REDIS_URL")
        self._key_prefix = key_prefix
        self._client = self._init_client()
        self._memory: dict[str, str] = {}
        self._listeners: list[StoreListener] = []

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis cart store fallback to memory mode: %s", reason)
        self._client = None

    def _init_client(self):
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; cart store uses in-memory fallback")
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis cart store enabled")
            return client
        except Exception as exc:
            logger.warning("Redis cart store init failed, fallback to in-memory: %s", exc)
            return None

    @property
    def is_persistent(self) -> bool:
        return self._client is not None

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}{name}"

    def _lock_key(self) -> str:
        return self._key(f"lock:{CARTS_KEY}")

    def _get_raw(self, name: str) -> str | None:
        if self._client:
            try:
                return self._client.get(self._key(name))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        return self._memory.get(name)

    def _set_raw(self, name: str, value: str) -> None:
        if self._client:
            try:
                self._client.set(self._key(name), value)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory[name] = value

    def _delete_raw(self, name: str) -> None:
        if self._client:
            try:
                self._client.delete(self._key(name))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory.pop(name, None)

    @contextmanager
    def _store_lock(self) -> Iterator[None]:
        if not self._client:
            yield
            return

        lock_key = self._lock_key()
        token = str(uuid.uuid4())
        deadline = time.monotonic() + self.LOCK_WAIT_SECONDS
        acquired = False

        while time.monotonic() < deadline:
            try:
                acquired = bool(self._client.set(lock_key, token, nx=True, ex=self.LOCK_TTL_SECONDS))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
                break
            if acquired:
                break
            time.sleep(0.05)

        if not acquired:
            logger.warning("Cart store lock timeout; proceeding without lock")
            yield
            return

        try:
            yield
        finally:
            if self._client:
                try:
                    unlock_lua = (
                        "if redis.call('get', KEYS[1]) == ARGV[1] "
                        "then return redis.call('del', KEYS[1]) else return 0 end"
                    )
                    self._client.eval(unlock_lua, 1, lock_key, token)
                except Exception as exc:
                    logger.warning("Cart store unlock failed, lock expires in %ss: %s", self.LOCK_TTL_SECONDS, exc)

    def _publish(self, key: str, value: Any) -> None:
        change = CartStoreChange(key=key, value=value)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as exc:
                logger.error("Cart store listener failed for %s: %s", key, exc)

        if self._client:
            signal = CartSignal(type=SignalType.STORAGE_CHANGED, data={"key": key, "value": value})
            try:
                self._client.publish(STORAGE_CHANNEL, signal.to_json())
            except Exception as exc:
                self._switch_to_memory_fallback(exc)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _load_carts(self) -> dict[str, str] | None:
        raw = self._get_raw(CARTS_KEY)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cart map: %r", raw)
            return None
        if not isinstance(payload, dict):
            return None
        return {str(domain): str(cart_id) for domain, cart_id in payload.items() if cart_id}

    def read(self) -> dict[str, str]:
        """Return the shop domain -> cart id map, initializing it when absent."""
        carts = self._load_carts()
        if carts is None:
            carts = {}
            self._set_raw(CARTS_KEY, json.dumps(carts))
        return carts

    def get_cart_id(self, shop_domain: str) -> str | None:
        return self.read().get(shop_domain)

    def set_cart_id_for_shop(self, shop_domain: str, cart_id: str) -> None:
        with self._store_lock():
            # Re-read right before writing so other shops' entries survive
            carts = self._load_carts() or {}
            carts[shop_domain] = cart_id
            self._set_raw(CARTS_KEY, json.dumps(carts))
        logger.info("Tracking cart %s for shop %s", cart_id, shop_domain)
        self._publish(CARTS_KEY, carts)

    def get_item_count(self) -> int | None:
        """Last known counter, or None when it must be recomputed."""
        raw = self._get_raw(CART_COUNT_KEY)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return max(value, 0)

    def set_item_count(self, count: int) -> None:
        count = max(int(count), 0)
        self._set_raw(CART_COUNT_KEY, json.dumps(count))
        self._publish(CART_COUNT_KEY, count)

    def increase_item_count(self, amount: int = 1) -> int:
        with self._store_lock():
            count = (self.get_item_count() or 0) + int(amount)
            count = max(count, 0)
            self._set_raw(CART_COUNT_KEY, json.dumps(count))
        self._publish(CART_COUNT_KEY, count)
        return count

    def clear(self) -> None:
        """Forget every tracked cart and the counter."""
        with self._store_lock():
            self._delete_raw(CARTS_KEY)
            self._delete_raw(CART_COUNT_KEY)
        self._publish(CARTS_KEY, {})
        self._publish(CART_COUNT_KEY, None)


_store: RedisCartStore | None = None


def get_cart_store(redis_url: str | None = None, key_prefix: str = DEFAULT_KEY_PREFIX) -> RedisCartStore:
    """Shared store used by every view of the process."""
    global _store
    if _store is None:
        _store = RedisCartStore(redis_url=redis_url, key_prefix=key_prefix)
    return _store
