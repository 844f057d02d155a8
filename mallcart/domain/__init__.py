"""Domain package."""

from .cart_state import CartState, ShopCartState
from .models import (
    CartLine,
    Image,
    Product,
    ProductOption,
    ProductVariant,
    RemoteCart,
    SelectedOption,
    Shop,
)

__all__ = [
    "CartLine",
    "CartState",
    "Image",
    "Product",
    "ProductOption",
    "ProductVariant",
    "RemoteCart",
    "SelectedOption",
    "Shop",
    "ShopCartState",
]
