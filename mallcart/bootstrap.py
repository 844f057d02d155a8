"""Session bootstrap wiring settings, the cart store, the directory and shop connections."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mallcart.core.config import Settings, load_settings
from mallcart.core.notifications import CartSignals, InMemoryPubSub, RedisPubSub
from mallcart.domain.models import Shop
from mallcart.integrations.redis_cart import RedisCartStore
from mallcart.integrations.shop_directory import ShopDirectory
from mallcart.integrations.storefront import ShopConnections
from mallcart.services.cart_aggregator import CartAggregator
from mallcart.services.cart_badge import CartBadge
from mallcart.services.cart_mutator import CartMutator
from mallcart.services.product_page import ProductPage

logger = logging.getLogger(__name__)


@dataclass
class ShoppingSession:
    """Everything one shopper's views share for the lifetime of a session."""

    settings: Settings
    store: RedisCartStore
    directory: ShopDirectory
    connections: ShopConnections
    signals: CartSignals
    _badges: list[CartBadge] = field(default_factory=list)

    def mutator(self, shop: Shop) -> CartMutator:
        return CartMutator.for_shop(shop, self.connections, self.store)

    def cart_page(self) -> CartAggregator:
        return CartAggregator(
            self.store,
            self.directory,
            self.connections,
            default_currency=self.settings.default_currency,
        )

    async def product_page(self, shop_id: int) -> ProductPage:
        shop = await self.directory.get_shop(shop_id)
        return ProductPage(shop, self.connections.get(shop), self.store)

    async def badge(self, on_change=None) -> CartBadge:
        """Badge kept current by local writes and by other processes' writes."""
        badge = CartBadge(self.store, on_change)
        await badge.listen(self.signals)
        self._badges.append(badge)
        return badge

    async def close(self) -> None:
        for badge in self._badges:
            await badge.stop_listening(self.signals)
            badge.close()
        self._badges.clear()
        await self.connections.close()
        await self.directory.close()
        await self.signals.close()

    async def __aenter__(self) -> ShoppingSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def build_session(settings: Settings | None = None) -> ShoppingSession:
    """Create session components from configuration."""
    settings = settings or load_settings()
    store = RedisCartStore(redis_url=settings.redis_url, key_prefix=settings.key_prefix)

    # Signals follow the store: shared Redis when the store persists there
    if store.is_persistent and settings.redis_url:
        signals = CartSignals(RedisPubSub(settings.redis_url))
        logger.info("Using Redis for cart signals")
    else:
        signals = CartSignals(InMemoryPubSub())
        logger.info("Using in-memory cart signals; other processes will not be notified")

    return ShoppingSession(
        settings=settings,
        store=store,
        directory=ShopDirectory.from_settings(settings),
        connections=ShopConnections.from_settings(settings),
        signals=signals,
    )
