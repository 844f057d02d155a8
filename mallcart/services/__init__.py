"""Cart services: mutations, the cross-shop view, the badge and product pages."""

from mallcart.services.cart_aggregator import CartAggregator, CartSummary, ShopCartStatus, ShopCartView
from mallcart.services.cart_badge import CartBadge
from mallcart.services.cart_mutator import CartMutator
from mallcart.services.product_page import ProductPage

__all__ = [
    "CartAggregator",
    "CartBadge",
    "CartMutator",
    "CartSummary",
    "ProductPage",
    "ShopCartStatus",
    "ShopCartView",
]
