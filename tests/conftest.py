"""Shared fakes and fixtures for the cart tests."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import pytest
import redis

from mallcart.core.exceptions import ShopNotFoundException, ShopUnavailableException, StaleCartException
from mallcart.core.money import Money
from mallcart.core.notifications import CartSignals
from mallcart.domain.models import CartLine, Product, RemoteCart, Shop
from mallcart.integrations.redis_cart import RedisCartStore
from mallcart.integrations.storefront import ShopConnections

ENV_VARS = (
    "REDIS_URL",
    "MALLCART_DIRECTORY_URL",
    "MALLCART_STOREFRONT_API_VERSION",
    "MALLCART_REQUEST_TIMEOUT",
    "MALLCART_KEY_PREFIX",
    "MALLCART_DEFAULT_CURRENCY",
    "MALLCART_CART_LINES_PAGE_SIZE",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    import mallcart.integrations.redis_cart as redis_cart_module

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(redis_cart_module, "_store", None)
    monkeypatch.setattr(CartSignals, "_instance", None)


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    published: list[tuple[str, str]] = field(default_factory=list)
    broken: bool = False

    def _check(self) -> None:
        if self.broken:
            raise redis.exceptions.ConnectionError("connection reset")

    def ping(self) -> bool:
        self._check()
        return True

    def get(self, key: str):
        self._check()
        return self.data.get(key)

    def delete(self, key: str) -> int:
        self._check()
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed

    def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        self._check()
        if nx and key in self.data:
            return False
        self.data[key] = value
        if ex is not None:
            self.expiry[key] = ex
        return True

    def eval(self, _script: str, _keys_count: int, key: str, token: str) -> int:
        if self.data.get(key) == token:
            self.delete(key)
            return 1
        return 0

    def publish(self, channel: str, message: str) -> int:
        self._check()
        self.published.append((channel, message))
        return 0


@pytest.fixture
def fake_redis(monkeypatch):
    import mallcart.integrations.redis_cart as redis_cart_module

    client = FakeRedisClient()
    monkeypatch.setattr(redis_cart_module.redis, "from_url", lambda *args, **kwargs: client)
    return client


@pytest.fixture
def store() -> RedisCartStore:
    """In-memory store (REDIS_URL is cleared for every test)."""
    return RedisCartStore()


class FakeShopConnection:
    """Stands in for ShopConnection with carts kept in a dict."""

    def __init__(self, shop: Shop, currency: str = "CAD", tax: str = "0"):
        self.shop = shop
        self.currency = currency
        self.tax = Decimal(tax)
        self.prices: dict[str, str] = {}
        self.carts: dict[str, list[list[Any]]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.product: Product | None = None
        self.unavailable = False
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False
        self.mutation_lock = asyncio.Lock()
        self._cart_ids = itertools.count(1)
        self._line_ids = itertools.count(1)

    @property
    def domain(self) -> str:
        return self.shop.domain

    async def _call(self, name: str, *args: Any) -> None:
        if self.unavailable:
            raise ShopUnavailableException(self.domain, "connection refused")
        self.calls.append((name, *args))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _new_line(self, variant_id: str, quantity: int) -> list[Any]:
        return [f"gid://shopify/CartLine/{next(self._line_ids)}", variant_id, quantity]

    def snapshot(self, cart_id: str) -> RemoteCart:
        lines = tuple(
            CartLine(
                line_id=line_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=Money(Decimal(self.prices.get(variant_id, "10.00")), self.currency),
                product_title=f"Product {variant_id}",
            )
            for line_id, variant_id, quantity in self.carts[cart_id]
        )
        subtotal = Money.sum((line.line_total for line in lines), self.currency)
        return RemoteCart(
            cart_id=cart_id,
            checkout_url=f"https://{self.domain}/cart/c/{cart_id.rsplit('/', 1)[-1]}",
            subtotal=subtotal,
            total=Money(subtotal.amount + (self.tax if lines else Decimal("0")), self.currency),
            lines=lines,
        )

    def seed_cart(self, *lines: tuple[str, int]) -> str:
        cart_id = f"gid://shopify/Cart/{self.domain}-{next(self._cart_ids)}"
        self.carts[cart_id] = [self._new_line(variant_id, quantity) for variant_id, quantity in lines]
        return cart_id

    def complete_checkout(self, cart_id: str) -> None:
        self.carts.pop(cart_id, None)

    async def create_cart(self, variant_id: str, quantity: int = 1) -> RemoteCart:
        await self._call("create_cart", variant_id, quantity)
        return self.snapshot(self.seed_cart((variant_id, quantity)))

    async def add_lines(self, cart_id: str, variant_id: str, quantity: int | None = None) -> RemoteCart:
        await self._call("add_lines", cart_id, variant_id)
        if cart_id not in self.carts:
            raise StaleCartException(cart_id)
        lines = self.carts[cart_id]
        for line in lines:
            if line[1] == variant_id:
                line[2] += quantity or 1
                break
        else:
            lines.append(self._new_line(variant_id, quantity or 1))
        return self.snapshot(cart_id)

    async def remove_lines(self, cart_id: str, line_ids: list[str]) -> RemoteCart:
        await self._call("remove_lines", cart_id, tuple(line_ids))
        if cart_id not in self.carts:
            raise StaleCartException(cart_id)
        self.carts[cart_id] = [line for line in self.carts[cart_id] if line[0] not in line_ids]
        return self.snapshot(cart_id)

    async def update_lines(self, cart_id: str, quantities: dict[str, int]) -> RemoteCart:
        await self._call("update_lines", cart_id, dict(quantities))
        if cart_id not in self.carts:
            raise StaleCartException(cart_id)
        for line in self.carts[cart_id]:
            if line[0] in quantities:
                line[2] = quantities[line[0]]
        return self.snapshot(cart_id)

    async def get_cart(self, cart_id: str) -> RemoteCart | None:
        await self._call("get_cart", cart_id)
        if cart_id not in self.carts:
            return None
        return self.snapshot(cart_id)

    async def get_product(self, handle: str) -> Product | None:
        await self._call("get_product", handle)
        if self.product is not None and self.product.handle == handle:
            return self.product
        return None

    async def close(self) -> None:
        self.closed = True


class FakeDirectory:
    def __init__(self, shops: list[Shop]):
        self.shops = {shop.domain: shop for shop in shops}
        self.calls: list[list[str]] = []
        self.failing = False

    async def get_shops(self, domains) -> dict[str, Shop]:
        domains = list(domains)
        self.calls.append(domains)
        if self.failing:
            raise ShopUnavailableException("shop-directory", "HTTP 502")
        return {domain: self.shops[domain] for domain in domains if domain in self.shops}

    async def get_shop(self, shop_id) -> Shop:
        for shop in self.shops.values():
            if shop.id == shop_id:
                return shop
        raise ShopNotFoundException(shop_id)

    async def close(self) -> None:
        pass


@pytest.fixture
def alpha() -> Shop:
    return Shop(id=1, domain="alpha.myshopify.com", name="Alpha Outfitters", access_token="token-alpha")


@pytest.fixture
def beta() -> Shop:
    return Shop(id=2, domain="beta.myshopify.com", name="Beta Books", access_token="token-beta")


@pytest.fixture
def fake_connections(alpha, beta) -> dict[str, FakeShopConnection]:
    return {shop.domain: FakeShopConnection(shop) for shop in (alpha, beta)}


@pytest.fixture
def connections(fake_connections) -> ShopConnections:
    def factory(shop: Shop) -> FakeShopConnection:
        if shop.domain not in fake_connections:
            fake_connections[shop.domain] = FakeShopConnection(shop)
        return fake_connections[shop.domain]

    return ShopConnections(factory=factory)


@pytest.fixture
def directory(alpha, beta) -> FakeDirectory:
    return FakeDirectory([alpha, beta])


@pytest.fixture
def product_payload() -> dict[str, Any]:
    """Tee with Size x Color; M/Blue is not offered and S/Red is sold out."""

    def variant(variant_id: str, size: str, color: str, price: str, available: bool) -> dict[str, Any]:
        return {
            "node": {
                "id": variant_id,
                "title": f"{size} / {color}",
                "availableForSale": available,
                "priceV2": {"amount": price, "currencyCode": "CAD"},
                "selectedOptions": [
                    {"name": "Size", "value": size},
                    {"name": "Color", "value": color},
                ],
                "image": {"originalSrc": f"https://cdn.example.com/{variant_id[-1]}.jpg", "altText": color}
                if color == "Blue"
                else None,
            }
        }

    return {
        "id": "gid://shopify/Product/1",
        "handle": "classic-tee",
        "title": "Classic Tee",
        "description": "Plain cotton tee.",
        "options": [
            {"name": "Size", "values": ["S", "M"]},
            {"name": "Color", "values": ["Red", "Blue"]},
        ],
        "images": {"edges": [{"node": {"originalSrc": "https://cdn.example.com/tee.jpg", "altText": "Tee"}}]},
        "variants": {
            "edges": [
                variant("gid://shopify/ProductVariant/1", "S", "Red", "20.00", False),
                variant("gid://shopify/ProductVariant/2", "S", "Blue", "20.00", True),
                variant("gid://shopify/ProductVariant/3", "M", "Red", "22.50", True),
            ]
        },
    }


@pytest.fixture
def product(product_payload) -> Product:
    return Product.from_dict(product_payload)
