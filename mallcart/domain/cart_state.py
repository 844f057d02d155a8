"""Per-shop cart lifecycle rules (single source of truth)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from mallcart.core.exceptions import ValidationException


class CartState:
    """Lifecycle of the cart tracked for one shop."""

    NONE = "none"
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class CartEvent:
    CREATED = "created"
    MUTATED = "mutated"
    REPORTED_STALE = "reported_stale"


ALLOWED_TRANSITIONS: Mapping[tuple[str, str], str] = {
    (CartState.NONE, CartEvent.CREATED): CartState.ACTIVE,
    (CartState.ACTIVE, CartEvent.MUTATED): CartState.ACTIVE,
    (CartState.ACTIVE, CartEvent.CREATED): CartState.ACTIVE,
    (CartState.ACTIVE, CartEvent.REPORTED_STALE): CartState.INVALIDATED,
    (CartState.INVALIDATED, CartEvent.CREATED): CartState.ACTIVE,
}


def next_state(current: str, event: str) -> str:
    target = ALLOWED_TRANSITIONS.get((current, event))
    if target is None:
        raise ValidationException(f"Cart cannot go from {current!r} on {event!r}")
    return target


@dataclass(slots=True)
class ShopCartState:
    """Tracked cart of one shop: {None, Active(cart_id), Invalidated}."""

    shop_domain: str
    state: str = CartState.NONE
    cart_id: str | None = None

    @classmethod
    def from_cart_id(cls, shop_domain: str, cart_id: str | None) -> ShopCartState:
        if cart_id:
            return cls(shop_domain, CartState.ACTIVE, cart_id)
        return cls(shop_domain)

    @property
    def needs_new_cart(self) -> bool:
        return self.state in (CartState.NONE, CartState.INVALIDATED)

    def created(self, cart_id: str) -> None:
        self.state = next_state(self.state, CartEvent.CREATED)
        self.cart_id = cart_id

    def mutated(self) -> None:
        self.state = next_state(self.state, CartEvent.MUTATED)

    def invalidated(self) -> None:
        self.state = next_state(self.state, CartEvent.REPORTED_STALE)
