"""Resolve a parsed collector number to a catalog entry.

Narrowing is a fixed priority chain:

1. set filter (a concrete set code makes collector number a unique key)
2. exact collector number
3. sets whose highest collector number equals the printed total
4. the printed set number
5. detected ink(s); dual-ink cards match on any component

Stages 3-5 only run while more than one candidate remains, and a stage is
skipped when it would leave nothing. The outcome is one accepted card, a
bounded list for the user to choose from, or no match.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from ..core.constants import ALL_SETS
from ..core.types import CatalogEntry, MatchOutcome
from ..utils.config import settings
from ..utils.log import LoggerMixin


def _as_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value), 10)
    except (TypeError, ValueError):
        return None


def set_max_numbers(catalog: Iterable[CatalogEntry]) -> Dict[str, int]:
    """Highest numeric collector number per set code."""
    highest: Dict[str, int] = {}
    for card in catalog:
        number = _as_int(card.cn)
        if number is None:
            continue
        if number > highest.get(card.set_code, 0):
            highest[card.set_code] = number
    return highest


def ink_overlaps(card: CatalogEntry, detected_inks: Sequence[str]) -> bool:
    """True when any of the card's inks is among the detected inks."""
    if not card.ink or not detected_inks:
        return False
    return any(ink in detected_inks for ink in card.inks)


class CardResolver(LoggerMixin):
    """Deterministic collector-number resolver over an in-memory catalog."""

    def __init__(self, max_candidates: Optional[int] = None):
        self.max_candidates = max_candidates or settings.MAX_CANDIDATES

    def _narrow(self, matches: List[CatalogEntry], keep, stage: str, applied: List[str]) -> List[CatalogEntry]:
        narrowed = [card for card in matches if keep(card)]
        if narrowed:
            if len(narrowed) < len(matches):
                applied.append(stage)
            return narrowed
        return matches

    def resolve(
        self,
        cn: str,
        catalog: Sequence[CatalogEntry],
        set_filter: str = ALL_SETS,
        total: Optional[str] = None,
        set_number: Optional[str] = None,
        inks: Sequence[str] = (),
    ) -> MatchOutcome:
        if not cn:
            return MatchOutcome()

        pool = catalog if set_filter == ALL_SETS else [c for c in catalog if c.set_code == set_filter]
        matches = [card for card in pool if card.cn == cn]
        applied: List[str] = []

        total_number = _as_int(total)
        if total_number is not None and set_filter == ALL_SETS and len(matches) > 1:
            highest = set_max_numbers(catalog)
            sets_with_total = {code for code, number in highest.items() if number == total_number}
            if sets_with_total:
                matches = self._narrow(
                    matches, lambda c: c.set_code in sets_with_total, "total", applied
                )

        if set_number and len(matches) > 1:
            matches = self._narrow(
                matches, lambda c: c.set_code == str(set_number), "set_number", applied
            )

        if inks and len(matches) > 1:
            detected = list(inks)
            matches = self._narrow(matches, lambda c: ink_overlaps(c, detected), "ink", applied)

        self.logger.debug(
            "Collector number resolved",
            cn=cn,
            total=total,
            set_number=set_number,
            set_filter=set_filter,
            inks=list(inks),
            narrowed_by=applied,
            remaining=len(matches),
        )

        if len(matches) == 1:
            return MatchOutcome(card=matches[0], confidence=1, total_candidates=1)

        if len(matches) > 1:
            return MatchOutcome(
                candidates=tuple(matches[:self.max_candidates]),
                confidence=1,
                total_candidates=len(matches),
            )

        return MatchOutcome()


# Global singleton
card_resolver = CardResolver()
