"""Environment-driven configuration objects for the cart client."""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from mallcart.core.constants import (
    API_TIMEOUT_SECONDS,
    CART_LINES_PAGE_SIZE,
    DEFAULT_CURRENCY,
    DEFAULT_DIRECTORY_URL,
    DEFAULT_KEY_PREFIX,
    DEFAULT_STOREFRONT_API_VERSION,
)
from mallcart.core.exceptions import ConfigurationException


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationException(f"{name} must be positive, got {raw!r}")
    return value


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationException(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(slots=True)
class Settings:
    directory_url: str
    redis_url: str | None
    storefront_api_version: str
    request_timeout: float
    key_prefix: str
    default_currency: str
    cart_lines_page_size: int


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    return Settings(
        directory_url=os.getenv("MALLCART_DIRECTORY_URL", DEFAULT_DIRECTORY_URL),
        redis_url=os.getenv("REDIS_URL") or None,
        storefront_api_version=os.getenv(
            "MALLCART_STOREFRONT_API_VERSION", DEFAULT_STOREFRONT_API_VERSION
        ),
        request_timeout=_parse_float("MALLCART_REQUEST_TIMEOUT", float(API_TIMEOUT_SECONDS)),
        key_prefix=os.getenv("MALLCART_KEY_PREFIX", DEFAULT_KEY_PREFIX),
        default_currency=os.getenv("MALLCART_DEFAULT_CURRENCY", DEFAULT_CURRENCY).upper(),
        cart_lines_page_size=_parse_int("MALLCART_CART_LINES_PAGE_SIZE", CART_LINES_PAGE_SIZE),
    )
