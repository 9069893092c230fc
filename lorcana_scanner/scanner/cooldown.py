"""Time-boxed suppression of repeat acceptance for a just-matched card."""

import time
from typing import Callable, Dict, Hashable, Iterable, Optional


class CooldownMap:
    """Maps a card key to the time it was last accepted.

    Entries older than ``window_s`` are dropped by ``sweep()``, which the
    capture loop calls before every resolution attempt.
    """

    def __init__(self, window_s: float, clock: Callable[[], float] = time.monotonic):
        self.window_s = window_s
        self._clock = clock
        self._entries: Dict[Hashable, float] = {}

    def stamp(self, key: Hashable, now: Optional[float] = None):
        self._entries[key] = self._clock() if now is None else now

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [key for key, ts in self._entries.items() if now - ts > self.window_s]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def is_cooling(self, key: Hashable) -> bool:
        return key in self._entries

    def all_cooling(self, keys: Iterable[Hashable]) -> bool:
        keys = list(keys)
        return bool(keys) and all(key in self._entries for key in keys)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries
