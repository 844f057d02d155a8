"""Marketplace directory lookups: shop id/domain -> connection details."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from mallcart.core.config import Settings
from mallcart.core.constants import API_TIMEOUT_SECONDS, DEFAULT_DIRECTORY_URL
from mallcart.core.exceptions import ShopNotFoundException
from mallcart.domain.models import Shop
from mallcart.integrations.graphql import GraphQLClient
from mallcart.integrations.queries import (
    SHOP_COUNTRIES_QUERY,
    SHOP_QUERY,
    SHOPS_BY_DOMAIN_QUERY,
    SHOPS_SEARCH_QUERY,
)

logger = logging.getLogger(__name__)


class ShopDirectory:
    """Read-only client for the directory of participating shops."""

    def __init__(
        self,
        url: str = DEFAULT_DIRECTORY_URL,
        timeout: float = API_TIMEOUT_SECONDS,
        client: GraphQLClient | None = None,
    ):
        self._client = client or GraphQLClient(url, timeout=timeout, name="shop-directory")

    @classmethod
    def from_settings(cls, settings: Settings) -> ShopDirectory:
        return cls(settings.directory_url, timeout=settings.request_timeout)

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> ShopDirectory:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def get_shop(self, shop_id: int) -> Shop:
        data = await self._client.execute(SHOP_QUERY, {"id": int(shop_id)})
        shop = data.get("shop")
        if not shop:
            raise ShopNotFoundException(shop_id)
        return Shop.from_dict(shop)

    async def get_shops(self, domains: Iterable[str]) -> dict[str, Shop]:
        """Resolve domains in one call; unknown domains are simply absent."""
        domains = list(dict.fromkeys(domains))
        if not domains:
            return {}
        data = await self._client.execute(SHOPS_BY_DOMAIN_QUERY, {"domains": domains})
        shops = [Shop.from_dict(raw) for raw in data.get("shops") or [] if raw]
        found = {shop.domain: shop for shop in shops}
        missing = [domain for domain in domains if domain not in found]
        if missing:
            logger.warning("Directory does not know shops: %s", ", ".join(missing))
        return found

    async def search_shops(
        self,
        country: str | None = None,
        name: str | None = None,
        reverse: bool = False,
    ) -> list[Shop]:
        variables = {"country": country or "", "name": name or "", "reverse": reverse}
        data = await self._client.execute(SHOPS_SEARCH_QUERY, variables)
        return [Shop.from_dict(raw) for raw in data.get("shops") or [] if raw]

    async def shop_countries(self) -> list[str]:
        data = await self._client.execute(SHOP_COUNTRIES_QUERY)
        return [str(country) for country in data.get("shopCountries") or []]
