"""Per-pixel ink classification of the name-banner sample."""

from typing import Dict, Mapping, Tuple

import numpy as np

from ..core.constants import (
    INK_COLOURS,
    INK_MAX_BRIGHTNESS,
    INK_MAX_DISTANCE,
    INK_MIN_BRIGHTNESS,
    INK_SAMPLE_FRACTION,
    INK_SECONDARY_MIN_SHARE,
)
from ..core.types import InkDetection
from ..utils.log import LoggerMixin


class InkClassifier(LoggerMixin):
    """Votes every usable pixel to its nearest palette ink.

    The centre of the region is sampled to avoid edge bleed and shadow, pixels
    that are too dark or too bright are skipped, and pixels further than
    ``max_distance`` (Euclidean RGB) from every ink are discarded. The top
    ink wins; a runner-up with at least ``secondary_min_share`` of the votes is
    reported as the second ink of a dual-ink card.
    """

    def __init__(
        self,
        palette: Mapping[str, Tuple[int, int, int]] = INK_COLOURS,
        max_distance: float = INK_MAX_DISTANCE,
        secondary_min_share: float = INK_SECONDARY_MIN_SHARE,
        sample_fraction: float = INK_SAMPLE_FRACTION,
    ):
        self.names = list(palette)
        self.references = np.array([palette[name] for name in self.names], dtype=np.float32)
        self.max_distance = max_distance
        self.secondary_min_share = secondary_min_share
        self.sample_fraction = sample_fraction

    def _sample(self, region: np.ndarray, bgr: bool) -> np.ndarray:
        h, w = region.shape[:2]
        margin = (1.0 - self.sample_fraction) / 2
        sx, sy = int(w * margin), int(h * margin)
        sw, sh = int(w * self.sample_fraction), int(h * self.sample_fraction)
        if sw <= 0 or sh <= 0 or region.ndim != 3 or region.shape[2] < 3:
            return np.empty((0, 3), dtype=np.float32)

        pixels = region[sy:sy + sh, sx:sx + sw, :3].reshape(-1, 3).astype(np.float32)
        return pixels[:, ::-1] if bgr else pixels

    def vote(self, region: np.ndarray, bgr: bool = True) -> Tuple[Dict[str, int], Tuple[int, int, int]]:
        """Vote counts per ink plus the average RGB of the retained pixels."""
        pixels = self._sample(region, bgr)
        brightness = pixels.mean(axis=1)
        pixels = pixels[(brightness >= INK_MIN_BRIGHTNESS) & (brightness <= INK_MAX_BRIGHTNESS)]
        if len(pixels) == 0:
            return {}, (0, 0, 0)

        avg = tuple(int(round(c)) for c in pixels.mean(axis=0))
        distances = np.linalg.norm(pixels[:, None, :] - self.references[None, :, :], axis=2)
        nearest = distances.argmin(axis=1)
        close = distances[np.arange(len(pixels)), nearest] <= self.max_distance
        counts = np.bincount(nearest[close], minlength=len(self.names))
        votes = {name: int(count) for name, count in zip(self.names, counts) if count > 0}
        return votes, avg

    def classify(self, region: np.ndarray, bgr: bool = True) -> InkDetection:
        """Classify an ink sample; frames from OpenCV are BGR."""
        votes, avg = self.vote(region, bgr)
        classified = sum(votes.values())
        if classified == 0:
            return InkDetection(avg_color=avg)

        # Ties break by palette order so results never depend on dict ordering
        ranked = sorted(votes.items(), key=lambda item: (-item[1], self.names.index(item[0])))
        primary, primary_votes = ranked[0]
        secondary = None
        claimed = primary_votes

        if len(ranked) > 1:
            runner_up, runner_votes = ranked[1]
            if runner_votes / classified >= self.secondary_min_share:
                secondary = runner_up
                claimed += runner_votes

        detected = (primary, secondary) if secondary else (primary,)
        detection = InkDetection(
            primary=primary,
            secondary=secondary,
            confidence=claimed / classified,
            detected_inks=detected,
            avg_color=avg,
        )
        self.logger.debug(
            "Ink classified",
            inks=detection.label,
            confidence=round(detection.confidence, 3),
            classified_pixels=classified,
        )
        return detection


# Global singleton
ink_classifier = InkClassifier()
