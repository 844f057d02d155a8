"""Cart mutations for one shop, keeping the cart store in step with the backend."""
from __future__ import annotations

import logging

from mallcart.core.constants import MIN_LINE_QUANTITY
from mallcart.core.exceptions import StaleCartException, ValidationException
from mallcart.domain.cart_state import CartState, ShopCartState
from mallcart.domain.models import RemoteCart, Shop
from mallcart.integrations.redis_cart import RedisCartStore
from mallcart.integrations.storefront import ShopConnection, ShopConnections

logger = logging.getLogger(__name__)


def validate_quantity(quantity: object, minimum: int = MIN_LINE_QUANTITY) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationException(f"Quantity must be an integer, got {quantity!r}")
    if quantity < minimum:
        raise ValidationException(f"Quantity must be at least {minimum}, got {quantity}")
    return quantity


class CartMutator:
    """
    Create/add/update/remove operations bound to one (shop domain, connection) pair.

    Every operation holds the connection's mutation lock, so calls against
    the same shop never overlap. A cart the backend no longer accepts is
    replaced transparently when adding to it.
    """

    def __init__(self, shop_domain: str, connection: ShopConnection, store: RedisCartStore):
        self.shop_domain = shop_domain
        self._connection = connection
        self._store = store

    @classmethod
    def for_shop(cls, shop: Shop, connections: ShopConnections, store: RedisCartStore) -> CartMutator:
        return cls(shop.domain, connections.get(shop), store)

    def cart_state(self) -> ShopCartState:
        return ShopCartState.from_cart_id(self.shop_domain, self._store.get_cart_id(self.shop_domain))

    async def _create_cart_locked(
        self, variant_id: str, quantity: int, state: ShopCartState | None = None
    ) -> RemoteCart:
        state = state or ShopCartState(self.shop_domain)
        cart = await self._connection.create_cart(variant_id, quantity)
        self._store.set_cart_id_for_shop(self.shop_domain, cart.cart_id)
        state.created(cart.cart_id)
        logger.info("Created cart %s for %s with variant %s", cart.cart_id, self.shop_domain, variant_id)
        return cart

    async def _add_line_locked(self, cart_id: str, variant_id: str) -> RemoteCart:
        state = ShopCartState(self.shop_domain, CartState.ACTIVE, cart_id)
        try:
            cart = await self._connection.add_lines(cart_id, variant_id)
        except StaleCartException:
            state.invalidated()
            logger.warning("Cart %s for %s is stale; provisioning a new one", cart_id, self.shop_domain)
            return await self._create_cart_locked(variant_id, MIN_LINE_QUANTITY, state)
        state.mutated()
        return cart

    async def create_cart(self, variant_id: str, quantity: int = 1) -> RemoteCart:
        """New cart seeded with one line; its id becomes the shop's tracked cart."""
        validate_quantity(quantity)
        async with self._connection.mutation_lock:
            return await self._create_cart_locked(variant_id, quantity)

    async def add_line(self, cart_id: str, variant_id: str) -> RemoteCart:
        async with self._connection.mutation_lock:
            return await self._add_line_locked(cart_id, variant_id)

    async def add_to_cart(self, variant_id: str) -> None:
        async with self._connection.mutation_lock:
            state = self.cart_state()
            if state.needs_new_cart:
                await self._create_cart_locked(variant_id, MIN_LINE_QUANTITY, state)
            else:
                await self._add_line_locked(state.cart_id, variant_id)
        self._store.increase_item_count()

    async def buy_now(self, variant_id: str) -> str:
        """Fresh single-item cart; returns the URL of its hosted checkout."""
        cart = await self.create_cart(variant_id)
        return cart.checkout_url

    async def remove_line(self, cart_id: str, line_id: str) -> RemoteCart:
        async with self._connection.mutation_lock:
            return await self._connection.remove_lines(cart_id, [line_id])

    async def set_line_quantity(self, cart_id: str, line_id: str, quantity: int) -> RemoteCart:
        """Update a line's quantity; zero removes the line instead."""
        validate_quantity(quantity, minimum=0)
        if quantity == 0:
            return await self.remove_line(cart_id, line_id)
        async with self._connection.mutation_lock:
            return await self._connection.update_lines(cart_id, {line_id: quantity})
