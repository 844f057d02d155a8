from __future__ import annotations

from dataclasses import replace

import pytest

from mallcart.core.constants import NO_IMAGE_URL
from mallcart.core.exceptions import DataInconsistencyException, ProductNotFoundException
from mallcart.services.product_page import ProductPage


@pytest.fixture
def page(alpha, fake_connections, product, store) -> ProductPage:
    fake = fake_connections[alpha.domain]
    fake.product = product
    return ProductPage(alpha, fake, store)


@pytest.mark.asyncio
async def test_load_selects_first_variant(page) -> None:
    await page.load("classic-tee")

    assert page.selection == {"Size": "S", "Color": "Red"}
    assert page.variant.id == "gid://shopify/ProductVariant/1"
    assert page.can_purchase
    assert page.price_label == "$20.00"
    assert page.option_choices()[0] == ("Size", ["S", "M"])


@pytest.mark.asyncio
async def test_unknown_handle_raises(page) -> None:
    with pytest.raises(ProductNotFoundException):
        await page.load("no-such-product")


@pytest.mark.asyncio
async def test_select_option_resolves_variant(page) -> None:
    await page.load("classic-tee")

    variant = page.select_option("Size", "M")

    assert variant.id == "gid://shopify/ProductVariant/3"
    assert page.price_label == "$22.50"


@pytest.mark.asyncio
async def test_unoffered_combination_blocks_purchase(page, fake_connections, alpha) -> None:
    await page.load("classic-tee")
    page.select_option("Size", "M")

    assert page.select_option("Color", "Blue") is None
    assert not page.can_purchase
    assert page.price_label == ""

    with pytest.raises(DataInconsistencyException):
        await page.add_to_cart()
    assert "create_cart" not in fake_connections[alpha.domain].call_names()


@pytest.mark.asyncio
async def test_image_prefers_variant_image(page) -> None:
    await page.load("classic-tee")
    assert page.image.url == "https://cdn.example.com/tee.jpg"

    page.select_option("Color", "Blue")
    assert page.image.url == "https://cdn.example.com/2.jpg"


@pytest.mark.asyncio
async def test_add_to_cart_uses_selected_variant(page, fake_connections, store, alpha) -> None:
    await page.load("classic-tee")
    page.select_option("Color", "Blue")

    await page.add_to_cart()

    fake = fake_connections[alpha.domain]
    cart = fake.snapshot(store.get_cart_id(alpha.domain))
    assert [line.variant_id for line in cart.lines] == ["gid://shopify/ProductVariant/2"]
    assert store.get_item_count() == 1


@pytest.mark.asyncio
async def test_buy_now_returns_checkout_url(page, alpha) -> None:
    await page.load("classic-tee")

    url = await page.buy_now()

    assert url.startswith(f"https://{alpha.domain}/cart/c/")


@pytest.mark.asyncio
async def test_product_without_images_uses_placeholder(page, product, fake_connections, alpha) -> None:
    fake_connections[alpha.domain].product = replace(product, images=())
    await page.load("classic-tee")

    assert page.image is None
    assert page.image_url == NO_IMAGE_URL
