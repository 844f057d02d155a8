"""Shop, cart and catalog types parsed from the GraphQL payloads."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mallcart.core.money import Money


def _edges(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Unwrap a Relay connection (`{edges: [{node: ...}]}`) into its nodes."""
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges") or [] if edge and edge.get("node")]


@dataclass(frozen=True, slots=True)
class Shop:
    """Identity and credential of one merchant backend."""

    id: int | str
    domain: str
    name: str
    access_token: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Shop:
        return cls(
            id=data.get("id", ""),
            domain=str(data.get("domain", "")),
            name=str(data.get("name") or data.get("domain") or ""),
            access_token=str(data.get("storefrontAccessToken") or data.get("accessToken") or ""),
        )


@dataclass(frozen=True, slots=True)
class SelectedOption:
    name: str
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectedOption:
        return cls(name=str(data.get("name", "")), value=str(data.get("value", "")))


@dataclass(frozen=True, slots=True)
class Image:
    url: str
    alt_text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Image | None:
        if not data:
            return None
        url = data.get("originalSrc") or data.get("url")
        if not url:
            return None
        return cls(url=str(url), alt_text=str(data.get("altText") or ""))


@dataclass(frozen=True, slots=True)
class CartLine:
    """One row of a remote cart, as returned by the shop backend."""

    line_id: str
    variant_id: str
    quantity: int
    unit_price: Money
    product_title: str
    selected_options: tuple[SelectedOption, ...] = ()
    image: Image | None = None

    @classmethod
    def from_dict(cls, node: dict[str, Any]) -> CartLine:
        merchandise = node.get("merchandise") or {}
        product = merchandise.get("product") or {}
        return cls(
            line_id=str(node.get("id", "")),
            variant_id=str(merchandise.get("id", "")),
            quantity=int(node.get("quantity") or 0),
            unit_price=Money.from_dict(merchandise.get("priceV2") or merchandise.get("price")),
            product_title=str(product.get("title", "")),
            selected_options=tuple(
                SelectedOption.from_dict(option) for option in merchandise.get("selectedOptions") or []
            ),
            image=Image.from_dict(merchandise.get("image")),
        )

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)

    def describe(self) -> str:
        return f"{self.quantity} x {self.product_title}"


@dataclass(frozen=True, slots=True)
class RemoteCart:
    """A shop-owned cart snapshot."""

    cart_id: str
    checkout_url: str
    subtotal: Money
    total: Money
    lines: tuple[CartLine, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteCart:
        cost = data.get("estimatedCost") or data.get("cost") or {}
        subtotal = Money.from_dict(cost.get("subtotalAmount"))
        total = Money.from_dict(cost.get("totalAmount"), default_currency=subtotal.currency)
        return cls(
            cart_id=str(data.get("id", "")),
            checkout_url=str(data.get("checkoutUrl", "")),
            subtotal=subtotal,
            total=total,
            lines=tuple(CartLine.from_dict(node) for node in _edges(data.get("lines"))),
        )

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def find_line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if line.line_id == line_id), None)

    def items_info(self) -> list[str]:
        return [line.describe() for line in self.lines]


@dataclass(frozen=True, slots=True)
class ProductVariant:
    """One concrete purchasable SKU."""

    id: str
    title: str
    price: Money
    available_for_sale: bool
    selected_options: tuple[SelectedOption, ...] = ()
    image: Image | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProductVariant:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            price=Money.from_dict(data.get("priceV2") or data.get("price")),
            available_for_sale=bool(data.get("availableForSale", False)),
            selected_options=tuple(
                SelectedOption.from_dict(option) for option in data.get("selectedOptions") or []
            ),
            image=Image.from_dict(data.get("image")),
        )

    def options_map(self) -> dict[str, str]:
        return {option.name: option.value for option in self.selected_options}


@dataclass(frozen=True, slots=True)
class ProductOption:
    name: str
    values: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProductOption:
        return cls(name=str(data.get("name", "")), values=tuple(str(v) for v in data.get("values") or []))


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    handle: str
    title: str
    description: str = ""
    options: tuple[ProductOption, ...] = ()
    variants: tuple[ProductVariant, ...] = ()
    images: tuple[Image, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        images = (Image.from_dict(node) for node in _edges(data.get("images")))
        return cls(
            id=str(data.get("id", "")),
            handle=str(data.get("handle", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description") or ""),
            options=tuple(ProductOption.from_dict(option) for option in data.get("options") or []),
            variants=tuple(ProductVariant.from_dict(node) for node in _edges(data.get("variants"))),
            images=tuple(image for image in images if image is not None),
        )
