from __future__ import annotations

import asyncio

import pytest

from mallcart.core.exceptions import ShopUnavailableException, ValidationException
from mallcart.services.cart_mutator import CartMutator, validate_quantity

VARIANT_A = "gid://shopify/ProductVariant/11"
VARIANT_B = "gid://shopify/ProductVariant/12"


@pytest.fixture
def mutator(alpha, connections, store) -> CartMutator:
    return CartMutator.for_shop(alpha, connections, store)


@pytest.mark.asyncio
async def test_first_add_creates_cart_and_tracks_it(mutator, fake_connections, store, alpha) -> None:
    await mutator.add_to_cart(VARIANT_A)

    fake = fake_connections[alpha.domain]
    cart_id = store.get_cart_id(alpha.domain)
    assert fake.call_names() == ["create_cart"]
    assert cart_id in fake.carts
    assert store.get_item_count() == 1


@pytest.mark.asyncio
async def test_second_add_appends_to_tracked_cart(mutator, fake_connections, store, alpha) -> None:
    await mutator.add_to_cart(VARIANT_A)
    cart_id = store.get_cart_id(alpha.domain)

    await mutator.add_to_cart(VARIANT_B)

    fake = fake_connections[alpha.domain]
    assert fake.call_names() == ["create_cart", "add_lines"]
    assert store.get_cart_id(alpha.domain) == cart_id
    assert fake.snapshot(cart_id).item_count == 2
    assert store.get_item_count() == 2


@pytest.mark.asyncio
async def test_stale_cart_is_replaced_on_add(mutator, fake_connections, store, alpha) -> None:
    store.set_cart_id_for_shop(alpha.domain, "gid://shopify/Cart/checked-out")

    await mutator.add_to_cart(VARIANT_A)

    fake = fake_connections[alpha.domain]
    new_cart_id = store.get_cart_id(alpha.domain)
    assert fake.call_names() == ["add_lines", "create_cart"]
    assert new_cart_id != "gid://shopify/Cart/checked-out"
    assert fake.snapshot(new_cart_id).items_info() == [f"1 x Product {VARIANT_A}"]
    assert store.get_item_count() == 1


@pytest.mark.asyncio
async def test_shops_keep_separate_carts(alpha, beta, connections, store) -> None:
    await CartMutator.for_shop(alpha, connections, store).add_to_cart(VARIANT_A)
    await CartMutator.for_shop(beta, connections, store).add_to_cart(VARIANT_B)

    carts = store.read()
    assert set(carts) == {alpha.domain, beta.domain}
    assert carts[alpha.domain] != carts[beta.domain]
    assert store.get_item_count() == 2


@pytest.mark.asyncio
async def test_concurrent_adds_to_one_shop_share_one_cart(mutator, fake_connections, store, alpha) -> None:
    fake = fake_connections[alpha.domain]
    fake.delay = 0.01

    await asyncio.gather(mutator.add_to_cart(VARIANT_A), mutator.add_to_cart(VARIANT_B))

    assert fake.call_names().count("create_cart") == 1
    assert fake.max_in_flight == 1
    assert len(fake.carts) == 1
    assert store.get_item_count() == 2


@pytest.mark.asyncio
async def test_buy_now_returns_checkout_url(mutator, fake_connections, store, alpha) -> None:
    url = await mutator.buy_now(VARIANT_A)

    cart_id = store.get_cart_id(alpha.domain)
    assert url == fake_connections[alpha.domain].snapshot(cart_id).checkout_url
    assert store.get_item_count() is None


@pytest.mark.asyncio
async def test_failed_create_leaves_store_untouched(mutator, fake_connections, store, alpha) -> None:
    fake_connections[alpha.domain].unavailable = True

    with pytest.raises(ShopUnavailableException):
        await mutator.add_to_cart(VARIANT_A)

    assert store.read() == {}
    assert store.get_item_count() is None


@pytest.mark.asyncio
async def test_set_line_quantity_updates_line(mutator, fake_connections, alpha) -> None:
    cart = await mutator.create_cart(VARIANT_A)
    line_id = cart.lines[0].line_id

    updated = await mutator.set_line_quantity(cart.cart_id, line_id, 4)

    assert updated.find_line(line_id).quantity == 4
    assert fake_connections[alpha.domain].call_names()[-1] == "update_lines"


@pytest.mark.asyncio
async def test_zero_quantity_removes_line(mutator, fake_connections, alpha) -> None:
    cart = await mutator.create_cart(VARIANT_A, quantity=2)

    updated = await mutator.set_line_quantity(cart.cart_id, cart.lines[0].line_id, 0)

    assert updated.lines == ()
    assert fake_connections[alpha.domain].call_names()[-1] == "remove_lines"


@pytest.mark.asyncio
async def test_remove_line(mutator) -> None:
    cart = await mutator.create_cart(VARIANT_A)
    cart = await mutator.add_line(cart.cart_id, VARIANT_B)

    updated = await mutator.remove_line(cart.cart_id, cart.lines[0].line_id)

    assert [line.variant_id for line in updated.lines] == [VARIANT_B]


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [-1, 1.5, "2", True])
async def test_invalid_quantities_are_rejected(mutator, fake_connections, alpha, quantity) -> None:
    with pytest.raises(ValidationException):
        await mutator.set_line_quantity("cart", "line", quantity)

    assert fake_connections[alpha.domain].calls == []


def test_validate_quantity_minimum() -> None:
    assert validate_quantity(1) == 1
    with pytest.raises(ValidationException):
        validate_quantity(0)
    assert validate_quantity(0, minimum=0) == 0
