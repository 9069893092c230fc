"""Resolve package for catalog lookups by collector number."""

from .resolver import CardResolver, card_resolver

__all__ = ["CardResolver", "card_resolver"]
