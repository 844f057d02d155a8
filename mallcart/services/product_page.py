"""Product page state: option selection, resolved variant and purchase actions."""
from __future__ import annotations

import logging

from mallcart.core.constants import NO_IMAGE_URL
from mallcart.core.exceptions import DataInconsistencyException, ProductNotFoundException
from mallcart.domain import variants as variant_resolver
from mallcart.domain.models import Image, Product, ProductVariant, Shop
from mallcart.integrations.redis_cart import RedisCartStore
from mallcart.integrations.storefront import ShopConnection
from mallcart.services.cart_mutator import CartMutator

logger = logging.getLogger(__name__)


class ProductPage:
    def __init__(self, shop: Shop, connection: ShopConnection, store: RedisCartStore):
        self.shop = shop
        self._mutator = CartMutator(shop.domain, connection, store)
        self._connection = connection
        self.product: Product | None = None
        self.selection: dict[str, str] = {}
        self.variant: ProductVariant | None = None

    async def load(self, handle: str) -> Product:
        product = await self._connection.get_product(handle)
        if product is None:
            raise ProductNotFoundException(self.shop.domain, handle)
        self.product = product
        self.selection = variant_resolver.default_selection(product.variants)
        self.variant = variant_resolver.resolve(product.variants, self.selection)
        return product

    def select_option(self, name: str, value: str) -> ProductVariant | None:
        if self.product is None:
            return None
        self.selection = variant_resolver.select_option(self.selection, name, value)
        self.variant = variant_resolver.resolve(self.product.variants, self.selection)
        if self.variant is None:
            logger.info("No variant of %s matches %s", self.product.handle, self.selection)
        return self.variant

    def option_choices(self) -> list[tuple[str, list[str]]]:
        return variant_resolver.option_choices(self.product) if self.product else []

    @property
    def can_purchase(self) -> bool:
        return self.product is not None and self.variant is not None

    @property
    def price_label(self) -> str:
        return self.variant.price.format() if self.variant else ""

    @property
    def image(self) -> Image | None:
        if self.variant and self.variant.image:
            return self.variant.image
        if self.product and self.product.images:
            return self.product.images[0]
        return None

    @property
    def image_url(self) -> str:
        image = self.image
        return image.url if image else NO_IMAGE_URL

    def _require_variant(self) -> ProductVariant:
        if not self.can_purchase:
            raise DataInconsistencyException(f"No purchasable variant for selection {self.selection}")
        return self.variant

    async def add_to_cart(self) -> None:
        await self._mutator.add_to_cart(self._require_variant().id)

    async def buy_now(self) -> str:
        return await self._mutator.buy_now(self._require_variant().id)
