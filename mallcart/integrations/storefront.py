"""Per-shop Storefront API connections."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from mallcart.core.config import Settings
from mallcart.core.constants import (
    API_TIMEOUT_SECONDS,
    CART_LINES_PAGE_SIZE,
    DEFAULT_STOREFRONT_API_VERSION,
    PRODUCT_VARIANTS_PAGE_SIZE,
    STOREFRONT_TOKEN_HEADER,
    STOREFRONT_URL_TEMPLATE,
)
from mallcart.core.exceptions import RemoteCallException, StaleCartException
from mallcart.domain.models import Product, RemoteCart, Shop
from mallcart.integrations.graphql import GraphQLClient
from mallcart.integrations.queries import (
    CART_CREATE_MUTATION,
    CART_LINES_ADD_MUTATION,
    CART_LINES_REMOVE_MUTATION,
    CART_LINES_UPDATE_MUTATION,
    CART_QUERY,
    PRODUCT_QUERY,
)

logger = logging.getLogger(__name__)


def storefront_url(domain: str, api_version: str = DEFAULT_STOREFRONT_API_VERSION) -> str:
    return STOREFRONT_URL_TEMPLATE.format(domain=domain, version=api_version)


class ShopConnection:
    """
    Remote-call handle bound to one shop's endpoint and access token.

    Mutations are not serialized here; callers hold `mutation_lock` for
    the whole operation (see CartMutator).
    """

    def __init__(
        self,
        shop: Shop,
        api_version: str = DEFAULT_STOREFRONT_API_VERSION,
        timeout: float = API_TIMEOUT_SECONDS,
        lines_page_size: int = CART_LINES_PAGE_SIZE,
        client: GraphQLClient | None = None,
    ):
        self.shop = shop
        self._lines_page_size = lines_page_size
        self._client = client or GraphQLClient(
            storefront_url(shop.domain, api_version),
            headers={STOREFRONT_TOKEN_HEADER: shop.access_token},
            timeout=timeout,
            name=shop.domain,
        )
        self.mutation_lock = asyncio.Lock()

    @property
    def domain(self) -> str:
        return self.shop.domain

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _unwrap(data: dict[str, Any], field: str) -> tuple[dict[str, Any] | None, list[dict[str, Any]]]:
        result = data.get(field) or {}
        return result.get("cart"), result.get("userErrors") or []

    def _raise_for_missing_cart(self, cart_id: str, user_errors: list[dict[str, Any]]) -> None:
        if user_errors:
            messages = "; ".join(str(error.get("message", "")) for error in user_errors)
            raise RemoteCallException(f"{self.domain} rejected cart {cart_id}: {messages}", user_errors)
        raise StaleCartException(cart_id)

    async def create_cart(self, variant_id: str, quantity: int = 1) -> RemoteCart:
        variables = {
            "input": {"lines": [{"merchandiseId": str(variant_id), "quantity": int(quantity)}]},
            "linesFirst": self._lines_page_size,
        }
        data = await self._client.execute(CART_CREATE_MUTATION, variables)
        cart, user_errors = self._unwrap(data, "cartCreate")
        if not cart:
            messages = "; ".join(str(error.get("message", "")) for error in user_errors) or "no cart returned"
            raise RemoteCallException(f"{self.domain} could not create a cart: {messages}", user_errors)
        return RemoteCart.from_dict(cart)

    async def add_lines(self, cart_id: str, variant_id: str, quantity: int | None = None) -> RemoteCart:
        """Append a line; any response without a cart means the cart id is stale."""
        line: dict[str, Any] = {"merchandiseId": str(variant_id)}
        if quantity is not None:
            line["quantity"] = int(quantity)
        variables = {"cartId": cart_id, "lines": [line], "linesFirst": self._lines_page_size}
        data = await self._client.execute(CART_LINES_ADD_MUTATION, variables)
        cart, user_errors = self._unwrap(data, "cartLinesAdd")
        if not cart:
            logger.info("%s reports cart %s no longer usable: %s", self.domain, cart_id, user_errors)
            raise StaleCartException(cart_id)
        return RemoteCart.from_dict(cart)

    async def remove_lines(self, cart_id: str, line_ids: list[str]) -> RemoteCart:
        variables = {"cartId": cart_id, "lineIds": list(line_ids), "linesFirst": self._lines_page_size}
        data = await self._client.execute(CART_LINES_REMOVE_MUTATION, variables)
        cart, user_errors = self._unwrap(data, "cartLinesRemove")
        if not cart:
            self._raise_for_missing_cart(cart_id, user_errors)
        return RemoteCart.from_dict(cart)

    async def update_lines(self, cart_id: str, quantities: dict[str, int]) -> RemoteCart:
        lines = [{"id": line_id, "quantity": int(quantity)} for line_id, quantity in quantities.items()]
        variables = {"cartId": cart_id, "lines": lines, "linesFirst": self._lines_page_size}
        data = await self._client.execute(CART_LINES_UPDATE_MUTATION, variables)
        cart, user_errors = self._unwrap(data, "cartLinesUpdate")
        if not cart:
            self._raise_for_missing_cart(cart_id, user_errors)
        return RemoteCart.from_dict(cart)

    async def get_cart(self, cart_id: str) -> RemoteCart | None:
        """Current cart, or None when the id no longer resolves."""
        data = await self._client.execute(CART_QUERY, {"id": cart_id, "linesFirst": self._lines_page_size})
        cart = data.get("cart")
        return RemoteCart.from_dict(cart) if cart else None

    async def get_product(self, handle: str) -> Product | None:
        variables = {"productHandle": handle, "variantsFirst": PRODUCT_VARIANTS_PAGE_SIZE}
        data = await self._client.execute(PRODUCT_QUERY, variables)
        product = data.get("product")
        return Product.from_dict(product) if product else None


ConnectionFactory = Callable[[Shop], ShopConnection]


class ShopConnections:
    """One connection per shop domain for the current session, created on first use."""

    def __init__(
        self,
        api_version: str = DEFAULT_STOREFRONT_API_VERSION,
        timeout: float = API_TIMEOUT_SECONDS,
        lines_page_size: int = CART_LINES_PAGE_SIZE,
        factory: ConnectionFactory | None = None,
    ):
        self._api_version = api_version
        self._timeout = timeout
        self._lines_page_size = lines_page_size
        self._factory = factory
        self._connections: dict[str, ShopConnection] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> ShopConnections:
        return cls(
            api_version=settings.storefront_api_version,
            timeout=settings.request_timeout,
            lines_page_size=settings.cart_lines_page_size,
        )

    def _create(self, shop: Shop) -> ShopConnection:
        if self._factory:
            return self._factory(shop)
        return ShopConnection(
            shop,
            api_version=self._api_version,
            timeout=self._timeout,
            lines_page_size=self._lines_page_size,
        )

    def get(self, shop: Shop) -> ShopConnection:
        connection = self._connections.get(shop.domain)
        if connection is None:
            connection = self._create(shop)
            self._connections[shop.domain] = connection
        return connection

    def __contains__(self, shop_domain: object) -> bool:
        return shop_domain in self._connections

    async def close(self) -> None:
        connections = list(self._connections.values())
        self._connections.clear()
        for connection in connections:
            await connection.close()

    async def __aenter__(self) -> ShopConnections:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
