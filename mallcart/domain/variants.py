"""Variant resolution for products with several option dimensions."""
from __future__ import annotations

from collections.abc import Mapping, Sequence

from mallcart.domain.models import Product, ProductVariant


def matches(variant: ProductVariant, selection: Mapping[str, str]) -> bool:
    """True when every option of the variant equals the selected value."""
    for option in variant.selected_options:
        if selection.get(option.name) != option.value:
            return False
    return True


def resolve(variants: Sequence[ProductVariant], selection: Mapping[str, str]) -> ProductVariant | None:
    """Return the first variant matching `selection`, or None.

    Duplicate option combinations are a catalog anomaly; the earliest
    listed variant wins.
    """
    return next((variant for variant in variants if matches(variant, selection)), None)


def default_selection(variants: Sequence[ProductVariant]) -> dict[str, str]:
    """Options of the first listed variant, whether or not it is in stock."""
    if not variants:
        return {}
    return variants[0].options_map()


def select_option(selection: Mapping[str, str], name: str, value: str) -> dict[str, str]:
    return {**selection, name: value}


def option_choices(product: Product) -> list[tuple[str, list[str]]]:
    return [(option.name, list(option.values)) for option in product.options]
