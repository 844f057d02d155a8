"""Core helpers: configuration, constants, errors, money and signals."""
