"""Custom exceptions for mallcart."""
from __future__ import annotations

from typing import Any


class MallCartException(Exception):
    """Base exception for all mallcart errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationException(MallCartException):
    """Malformed selection or quantity."""

    pass


class ConfigurationException(MallCartException):
    """Configuration errors."""

    pass


class DataInconsistencyException(MallCartException):
    """Catalog data does not support the requested action (e.g. no variant matches)."""

    pass


class ShopNotFoundException(MallCartException):
    """Shop not known to the directory."""

    def __init__(self, shop_ref: str | int) -> None:
        super().__init__(f"Shop {shop_ref} not found")
        self.shop_ref = shop_ref


class ShopUnavailableException(MallCartException):
    """A shop backend (or the directory) could not be reached."""

    def __init__(self, shop_domain: str, reason: str = "") -> None:
        message = f"Shop {shop_domain} is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.shop_domain = shop_domain
        self.reason = reason


class StaleCartException(MallCartException):
    """A tracked cart id no longer resolves remotely (usually already checked out)."""

    def __init__(self, cart_id: str) -> None:
        super().__init__(f"Cart {cart_id} is no longer available")
        self.cart_id = cart_id


class RemoteCallException(MallCartException):
    """The backend answered with GraphQL errors or mutation userErrors."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ProductNotFoundException(MallCartException):
    """Product handle not found in a shop's catalog."""

    def __init__(self, shop_domain: str, handle: str) -> None:
        super().__init__(f"Product {handle} not found in {shop_domain}")
        self.shop_domain = shop_domain
        self.handle = handle
