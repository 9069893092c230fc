"""Tests for collector number resolution."""

import random

import pytest

from lorcana_scanner.catalog.loader import parse_cards
from lorcana_scanner.resolve.resolver import CardResolver, ink_overlaps, set_max_numbers


@pytest.fixture
def resolver():
    return CardResolver(max_candidates=6)


class TestSetMaxNumbers:
    """Test per-set highest collector number."""

    def test_highest_numbers(self, sample_catalog):
        assert set_max_numbers(sample_catalog) == {"1": 204, "2": 216, "7": 204}

    def test_non_numeric_cn_ignored(self):
        cards = parse_cards([["Promo", "", "P1", "Promo", "A1", 1, "Amber", "Promo", "", None]])
        assert set_max_numbers(cards) == {}


class TestInkOverlap:
    """Test dual-ink matching."""

    def test_dual_ink_card_matches_either(self, sample_catalog):
        stitch = next(c for c in sample_catalog if c.name == "Stitch")
        assert ink_overlaps(stitch, ["Steel"])
        assert ink_overlaps(stitch, ["Amber"])
        assert not ink_overlaps(stitch, ["Ruby"])

    def test_no_detected_inks(self, sample_catalog):
        assert not ink_overlaps(sample_catalog[0], [])


class TestCardResolver:
    """Test the narrowing priority chain."""

    def test_unique_collector_number(self, resolver, sample_catalog):
        outcome = resolver.resolve("130", sample_catalog)
        assert outcome.card.name == "Lilo"
        assert outcome.confidence == 1
        assert outcome.candidates == ()
        assert outcome.is_accepted
        assert not outcome.is_ambiguous

    def test_no_match(self, resolver, sample_catalog):
        outcome = resolver.resolve("999", sample_catalog)
        assert outcome.card is None
        assert outcome.candidates == ()
        assert outcome.confidence == 0
        assert not outcome.is_accepted
        assert not outcome.is_ambiguous

    def test_empty_cn(self, resolver, sample_catalog):
        assert resolver.resolve("", sample_catalog).card is None

    def test_ambiguous_without_signals(self, resolver, sample_catalog):
        outcome = resolver.resolve("115", sample_catalog)
        assert outcome.card is None
        assert {c.set_code for c in outcome.candidates} == {"1", "2"}
        assert outcome.is_ambiguous
        assert not outcome.is_accepted

    def test_total_narrows_to_set(self, resolver, sample_catalog):
        """Only set 1's card count equals 204, so no ink signal is needed."""
        outcome = resolver.resolve("115", sample_catalog, total="204")
        assert outcome.card.name == "Mickey Mouse"

    def test_total_without_matching_set_keeps_candidates(self, resolver, sample_catalog):
        outcome = resolver.resolve("115", sample_catalog, total="300")
        assert len(outcome.candidates) == 2

    def test_set_number_after_total(self, resolver, sample_catalog):
        """Sets 1 and 7 both hold 204 cards; the printed set number decides."""
        outcome = resolver.resolve("5", sample_catalog, total="204")
        assert len(outcome.candidates) == 2

        outcome = resolver.resolve("5", sample_catalog, total="204", set_number="7")
        assert outcome.card.name == "Moana"

    def test_unknown_set_number_ignored(self, resolver, sample_catalog):
        outcome = resolver.resolve("5", sample_catalog, set_number="9")
        assert len(outcome.candidates) == 2

    def test_ink_narrows_last(self, resolver, sample_catalog):
        outcome = resolver.resolve("5", sample_catalog, inks=["Ruby"])
        assert outcome.card.name == "Moana"

    def test_ink_that_matches_nothing_keeps_candidates(self, resolver, sample_catalog):
        outcome = resolver.resolve("5", sample_catalog, inks=["Sapphire"])
        assert len(outcome.candidates) == 2

    def test_set_filter_makes_cn_unique(self, resolver, sample_catalog):
        outcome = resolver.resolve("115", sample_catalog, set_filter="2")
        assert outcome.card.name == "Shared Number"

    def test_set_filter_excludes_other_sets(self, resolver, sample_catalog):
        assert resolver.resolve("130", sample_catalog, set_filter="1").card is None

    def test_total_ignored_with_set_filter(self, resolver, sample_catalog):
        """A concrete set filter already picks the set; total cannot override it."""
        outcome = resolver.resolve("115", sample_catalog, set_filter="2", total="204")
        assert outcome.card.set_code == "2"

    def test_candidate_cap(self, sample_catalog):
        rows = [
            [f"Card {i}", "", str(i), f"Set {i}", "42", 1, "Amber", "Common", "", None]
            for i in range(1, 10)
        ]
        outcome = CardResolver(max_candidates=6).resolve("42", parse_cards(rows))
        assert len(outcome.candidates) == 6
        assert outcome.total_candidates == 9
        assert outcome.suppressed == 3

    def test_deterministic(self, resolver, sample_catalog):
        """Same inputs give the same outcome regardless of call count or catalog order."""
        first = resolver.resolve("5", sample_catalog, total="204", inks=["Amber"])
        for _ in range(10):
            assert resolver.resolve("5", sample_catalog, total="204", inks=["Amber"]) == first

        shuffled = list(sample_catalog)
        random.Random(42).shuffle(shuffled)
        assert resolver.resolve("5", shuffled, total="204", inks=["Amber"]).card == first.card

