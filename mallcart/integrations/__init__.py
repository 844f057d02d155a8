"""Integrations package - directory, shop backends and the persisted cart store."""

from mallcart.integrations.graphql import GraphQLClient
from mallcart.integrations.redis_cart import CartStoreChange, RedisCartStore, get_cart_store
from mallcart.integrations.shop_directory import ShopDirectory
from mallcart.integrations.storefront import ShopConnection, ShopConnections

CartStore = RedisCartStore

__all__ = [
    "CartStore",
    "CartStoreChange",
    "GraphQLClient",
    "RedisCartStore",
    "ShopConnection",
    "ShopConnections",
    "ShopDirectory",
    "get_cart_store",
]
