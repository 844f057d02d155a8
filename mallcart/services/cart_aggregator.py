"""
Unified cross-shop cart view.

Loads every cart tracked in the cart store, fetches the shops concurrently,
and reduces them into one summary: per-shop subtotals, a grand total and
the cross-shop item count that the header badge shows.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from mallcart.core.constants import CHECKED_OUT_MESSAGE, DEFAULT_CURRENCY, UNAVAILABLE_MESSAGE
from mallcart.core.exceptions import (
    RemoteCallException,
    ShopUnavailableException,
    StaleCartException,
    ValidationException,
)
from mallcart.core.money import Money
from mallcart.core.notifications import CartSignal, CartSignals, parse_window_message
from mallcart.domain.models import RemoteCart, Shop
from mallcart.integrations.redis_cart import RedisCartStore
from mallcart.integrations.shop_directory import ShopDirectory
from mallcart.integrations.storefront import ShopConnections
from mallcart.services.cart_mutator import CartMutator

logger = logging.getLogger(__name__)


class ShopCartStatus:
    ACTIVE = "active"
    CHECKED_OUT = "checked_out"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ShopCartView:
    """One shop's section of the cart page."""

    shop_domain: str
    cart_id: str
    status: str
    shop: Shop | None = None
    cart: RemoteCart | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return self.shop.name if self.shop else self.shop_domain

    @property
    def is_active(self) -> bool:
        return self.status == ShopCartStatus.ACTIVE and self.cart is not None

    @property
    def item_count(self) -> int:
        return self.cart.item_count if self.is_active else 0

    @property
    def subtotal(self) -> Money | None:
        return self.cart.subtotal if self.is_active else None

    @property
    def total(self) -> Money | None:
        return self.cart.total if self.is_active else None

    @property
    def checkout_url(self) -> str | None:
        return self.cart.checkout_url if self.is_active else None

    @property
    def message(self) -> str | None:
        if self.status == ShopCartStatus.CHECKED_OUT:
            return CHECKED_OUT_MESSAGE
        if self.status == ShopCartStatus.UNAVAILABLE:
            return UNAVAILABLE_MESSAGE
        return None

    def items_info(self) -> list[str]:
        return self.cart.items_info() if self.is_active else []


@dataclass(frozen=True)
class CartSummary:
    """Aggregates over every shop that answered with a cart."""

    shops: list[ShopCartView] = field(default_factory=list)
    grand_total: Money = field(default_factory=lambda: Money.zero(DEFAULT_CURRENCY))
    total_items: int = 0
    mixed_currencies: bool = False
    complete: bool = True

    def shop(self, shop_domain: str) -> ShopCartView | None:
        return next((view for view in self.shops if view.shop_domain == shop_domain), None)

    @property
    def active_shops(self) -> list[ShopCartView]:
        return [view for view in self.shops if view.is_active]


class CartAggregator:
    def __init__(
        self,
        store: RedisCartStore,
        directory: ShopDirectory,
        connections: ShopConnections,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self._store = store
        self._directory = directory
        self._connections = connections
        self._default_currency = default_currency.upper()
        self._load_lock = asyncio.Lock()
        self.summary: CartSummary | None = None

    async def load(self) -> CartSummary:
        """Full reload: re-read the cart map and fetch every shop again."""
        async with self._load_lock:
            carts = self._store.read()
            try:
                shops = await self._directory.get_shops(carts.keys())
            except (ShopUnavailableException, RemoteCallException) as exc:
                logger.warning("Shop directory lookup failed: %s", exc)
                views = [
                    ShopCartView(domain, cart_id, ShopCartStatus.UNAVAILABLE, error=str(exc))
                    for domain, cart_id in carts.items()
                ]
                return self._summarize(views)

            views = await asyncio.gather(
                *(
                    self._load_shop(domain, cart_id, shops.get(domain))
                    for domain, cart_id in carts.items()
                )
            )
            return self._summarize(list(views))

    async def _load_shop(self, shop_domain: str, cart_id: str, shop: Shop | None) -> ShopCartView:
        if shop is None:
            return ShopCartView(
                shop_domain, cart_id, ShopCartStatus.UNAVAILABLE, error="shop not found in directory"
            )

        connection = self._connections.get(shop)
        try:
            cart = await connection.get_cart(cart_id)
        except (ShopUnavailableException, RemoteCallException) as exc:
            logger.warning("Could not load cart %s from %s: %s", cart_id, shop_domain, exc)
            return ShopCartView(shop_domain, cart_id, ShopCartStatus.UNAVAILABLE, shop=shop, error=str(exc))

        if cart is None:
            logger.info("Cart %s of %s no longer resolves; checkout already completed", cart_id, shop_domain)
            return ShopCartView(shop_domain, cart_id, ShopCartStatus.CHECKED_OUT, shop=shop)
        return ShopCartView(shop_domain, cart_id, ShopCartStatus.ACTIVE, shop=shop, cart=cart)

    def _summarize(self, views: list[ShopCartView]) -> CartSummary:
        active = [view for view in views if view.is_active]
        currencies = {view.cart.total.currency for view in active}
        mixed = len(currencies) > 1
        if len(currencies) == 1:
            currency = next(iter(currencies))
        else:
            currency = self._default_currency
        if mixed:
            # Known limitation: totals are added without currency conversion
            logger.warning("Summing cart totals across currencies %s without conversion", sorted(currencies))

        summary = CartSummary(
            shops=views,
            grand_total=Money.sum((view.cart.total for view in active), currency),
            total_items=sum(view.item_count for view in active),
            mixed_currencies=mixed,
            complete=all(view.status != ShopCartStatus.UNAVAILABLE for view in views),
        )
        self.summary = summary

        if summary.complete and self._store.get_item_count() != summary.total_items:
            self._store.set_item_count(summary.total_items)
        return summary

    def _require_active(self, shop_domain: str) -> ShopCartView:
        view = self.summary.shop(shop_domain) if self.summary else None
        if view is None:
            raise ValidationException(f"No cart loaded for {shop_domain}")
        if not view.is_active:
            raise ValidationException(f"Cart for {shop_domain} is {view.status}")
        return view

    def _replace_view(self, updated: ShopCartView) -> CartSummary:
        views = [updated if view.shop_domain == updated.shop_domain else view for view in self.summary.shops]
        return self._summarize(views)

    async def _edit_line(self, shop_domain: str, line_id: str, quantity: int | None) -> CartSummary:
        # Edits and reloads never interleave
        async with self._load_lock:
            return await self._edit_line_locked(shop_domain, line_id, quantity)

    async def _edit_line_locked(self, shop_domain: str, line_id: str, quantity: int | None) -> CartSummary:
        view = self._require_active(shop_domain)
        mutator = CartMutator.for_shop(view.shop, self._connections, self._store)
        try:
            if quantity is None:
                cart = await mutator.remove_line(view.cart_id, line_id)
            else:
                cart = await mutator.set_line_quantity(view.cart_id, line_id, quantity)
        except StaleCartException:
            return self._replace_view(replace(view, status=ShopCartStatus.CHECKED_OUT, cart=None))
        except (ShopUnavailableException, RemoteCallException) as exc:
            logger.warning("Line edit on %s failed: %s", shop_domain, exc)
            return self._replace_view(replace(view, status=ShopCartStatus.UNAVAILABLE, cart=None, error=str(exc)))
        return self._replace_view(replace(view, cart=cart))

    async def remove_line(self, shop_domain: str, line_id: str) -> CartSummary:
        return await self._edit_line(shop_domain, line_id, None)

    async def set_line_quantity(self, shop_domain: str, line_id: str, quantity: int) -> CartSummary:
        return await self._edit_line(shop_domain, line_id, quantity)

    async def handle_signal(self, signal: CartSignal) -> CartSummary | None:
        if not signal.requires_resync:
            return None
        logger.info("Resyncing cart after %s", signal.type.value)
        return await self.load()

    async def handle_message(self, raw: Any) -> CartSummary | None:
        """Window-style message from a checkout page; resyncs when it is relevant."""
        signal = parse_window_message(raw)
        if signal is None:
            return None
        return await self.handle_signal(signal)

    async def listen(self, signals: CartSignals) -> None:
        await signals.subscribe_messages(self.handle_signal)

    async def stop_listening(self, signals: CartSignals) -> None:
        await signals.unsubscribe_messages(self.handle_signal)
