"""Card catalog loading."""

from .loader import load_catalog, parse_cards

__all__ = ["load_catalog", "parse_cards"]
