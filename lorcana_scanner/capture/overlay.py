"""Preview overlay: guide frame, crop regions and scanner status."""

from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..core.types import CatalogEntry, CropSnapshot, PipelineState, PixelRect
from ..utils.log import LoggerMixin


class OverlayColor(Enum):
    """BGR colours for overlay elements."""

    GUIDE = (255, 255, 255)  # White
    MATCHED = (0, 255, 0)  # Green
    PROCESSING = (0, 165, 255)  # Orange
    DISAMBIGUATING = (0, 255, 255)  # Yellow
    ERROR = (0, 0, 255)  # Red
    CN_REGION = (255, 0, 0)  # Blue
    INK_REGION = (255, 0, 255)  # Magenta
    TEXT_BG = (0, 0, 0)
    TEXT_FG = (255, 255, 255)


STATE_COLORS: Dict[PipelineState, OverlayColor] = {
    PipelineState.PROCESSING: OverlayColor.PROCESSING,
    PipelineState.MATCHED: OverlayColor.MATCHED,
    PipelineState.DISAMBIGUATING: OverlayColor.DISAMBIGUATING,
    PipelineState.ERROR: OverlayColor.ERROR,
}


class ScannerOverlay(LoggerMixin):
    """Draws on a copy of the preview frame; the input frame is never modified."""

    def __init__(self):
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.line_thickness = 2

    def draw_regions(
        self, frame: np.ndarray, crops: CropSnapshot, state: PipelineState = PipelineState.STREAMING
    ) -> np.ndarray:
        """Guide rectangle tinted by state, plus the CN and ink sample rects."""
        overlay_frame = frame.copy()
        guide_color = STATE_COLORS.get(state, OverlayColor.GUIDE).value

        self._draw_rect(overlay_frame, crops.guide, guide_color, self.line_thickness)
        self._draw_rect(overlay_frame, crops.cn_region, OverlayColor.CN_REGION.value, 1)
        self._draw_rect(overlay_frame, crops.ink_region, OverlayColor.INK_REGION.value, 1)

        self._draw_text_with_background(
            overlay_frame, "CN", (crops.cn_region.x + 4, max(15, crops.cn_region.y - 4)),
            OverlayColor.CN_REGION.value, scale=0.45, thickness=1,
        )
        self._draw_text_with_background(
            overlay_frame, "INK", (crops.ink_region.x + 4, max(15, crops.ink_region.y - 4)),
            OverlayColor.INK_REGION.value, scale=0.45, thickness=1,
        )
        return overlay_frame

    def draw_status_panel(
        self, frame: np.ndarray, status_info: Dict[str, str], title: str = "Lorcana Scanner"
    ) -> np.ndarray:
        """Semi-transparent key/value panel in the top-left corner."""
        overlay_frame = frame.copy()
        line_height = 22
        panel_x, panel_y = 10, 10
        panel_width = 340
        panel_height = 40 + line_height * len(status_info)

        overlay = overlay_frame.copy()
        cv2.rectangle(
            overlay,
            (panel_x, panel_y),
            (panel_x + panel_width, panel_y + panel_height),
            OverlayColor.TEXT_BG.value,
            -1,
        )
        cv2.addWeighted(overlay_frame, 0.4, overlay, 0.6, 0, overlay_frame)

        y = panel_y + 25
        self._draw_text(overlay_frame, title, (panel_x + 10, y), scale=0.6, thickness=2)
        for key, value in status_info.items():
            y += line_height
            self._draw_text(overlay_frame, f"{key}: {value}", (panel_x + 10, y), scale=0.5, thickness=1)

        return overlay_frame

    def draw_candidates(
        self, frame: np.ndarray, candidates: Sequence[CatalogEntry], suppressed: int = 0
    ) -> np.ndarray:
        """Numbered candidate list for keyboard selection."""
        if not candidates:
            return frame

        overlay_frame = frame.copy()
        height, width = frame.shape[:2]
        lines = [f"{i}. {card.display} [{card.set_code} #{card.cn}]" for i, card in enumerate(candidates, 1)]
        if suppressed:
            lines.append(f"+{suppressed} more")

        y = height - 20 - 26 * len(lines)
        for line in lines:
            self._draw_text_with_background(
                overlay_frame, line, (20, y), OverlayColor.DISAMBIGUATING.value, scale=0.55, thickness=1
            )
            y += 26
        return overlay_frame

    def draw_match_banner(self, frame: np.ndarray, card: CatalogEntry, method: Optional[str]) -> np.ndarray:
        overlay_frame = frame.copy()
        text = f"{card.display}  [{card.set_code} #{card.cn}]"
        if method:
            text += f"  via {method}"
        self._draw_text_with_background(
            overlay_frame, text, (20, frame.shape[0] - 30), OverlayColor.MATCHED.value, scale=0.7
        )
        return overlay_frame

    def draw_instructions(self, frame: np.ndarray) -> np.ndarray:
        overlay_frame = frame.copy()
        text = "ESC quit | D debug capture | E export diagnostics | 1-6 pick candidate"
        self._draw_text_with_background(
            overlay_frame, text, (20, frame.shape[0] - 8), OverlayColor.TEXT_FG.value, scale=0.45, thickness=1
        )
        return overlay_frame

    def _draw_rect(self, frame: np.ndarray, rect: PixelRect, color: Tuple[int, int, int], thickness: int):
        if rect.is_empty:
            return
        cv2.rectangle(frame, (rect.x, rect.y), (rect.x + rect.w, rect.y + rect.h), color, thickness)

    def _draw_text(
        self,
        frame: np.ndarray,
        text: str,
        position: Tuple[int, int],
        scale: float = 0.7,
        thickness: int = 2,
        color: Optional[Tuple[int, int, int]] = None,
    ) -> None:
        if color is None:
            color = OverlayColor.TEXT_FG.value

        cv2.putText(frame, text, position, self.font, scale, color, thickness, cv2.LINE_AA)

    def _draw_text_with_background(
        self,
        frame: np.ndarray,
        text: str,
        position: Tuple[int, int],
        color: Tuple[int, int, int],
        scale: float = 0.7,
        thickness: int = 2,
    ) -> None:
        """Draw text with background for better visibility."""
        (text_width, text_height), baseline = cv2.getTextSize(text, self.font, scale, thickness)

        x, y = position
        cv2.rectangle(
            frame,
            (x - 2, y - text_height - 2),
            (x + text_width + 2, y + baseline + 2),
            OverlayColor.TEXT_BG.value,
            -1,
        )
        cv2.putText(frame, text, position, self.font, scale, color, thickness, cv2.LINE_AA)


# Global overlay instance
scanner_overlay = ScannerOverlay()
