"""Header badge showing the cross-shop item count."""
from __future__ import annotations

import logging
from collections.abc import Callable

from mallcart.core.constants import CART_COUNT_KEY, CARTS_KEY
from mallcart.core.notifications import CartSignal, CartSignals
from mallcart.integrations.redis_cart import CartStoreChange, RedisCartStore

logger = logging.getLogger(__name__)

WATCHED_KEYS = (CART_COUNT_KEY, CARTS_KEY)


class CartBadge:
    """Re-reads the counter on every store change and re-renders.

    Writes from this process arrive through the store's listeners; writes
    from other processes arrive as storage signals once `listen` is called.
    """

    def __init__(self, store: RedisCartStore, on_change: Callable[[int], None] | None = None):
        self._store = store
        self._on_change = on_change
        self.count = self._read()
        self._unsubscribe = store.subscribe(self._handle_change)

    def _read(self) -> int:
        return self._store.get_item_count() or 0

    def _handle_change(self, change: CartStoreChange) -> None:
        if change.key not in WATCHED_KEYS:
            return
        count = self._read()
        if count == self.count:
            return
        self.count = count
        logger.debug("Cart badge now shows %s", count)
        if self._on_change:
            self._on_change(count)

    def refresh(self) -> int:
        self._handle_change(CartStoreChange(CART_COUNT_KEY, None))
        return self.count

    async def handle_signal(self, signal: CartSignal) -> None:
        if signal.storage_key in WATCHED_KEYS:
            self.refresh()

    async def listen(self, signals: CartSignals) -> None:
        await signals.subscribe_storage(self.handle_signal)

    async def stop_listening(self, signals: CartSignals) -> None:
        await signals.unsubscribe_storage(self.handle_signal)

    def close(self) -> None:
        self._unsubscribe()
