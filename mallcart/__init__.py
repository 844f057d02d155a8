"""mallcart - unified multi-shop cart client."""

__version__ = "0.1.0"
