"""Tesseract text recognition engine.

The engine is stateful (page segmentation mode and character whitelist are
switched per call) and must not be used from two callers at once. Access goes
through ``RecognitionService``, which serialises every call.
"""

from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pytesseract

from ..core.constants import TEXT_PAGE_SEG_MODE
from ..utils.config import resolve_tesseract_path
from ..utils.error_handler import RecognitionError
from ..utils.log import LoggerMixin


def _join_lines(data: Dict[str, List[Any]]) -> Tuple[str, float]:
    """Rebuild line-structured text and the mean word confidence."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        if not word or not str(word).strip():
            continue
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if conf < 0:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(str(word).strip())
        confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, confidence


class TesseractEngine(LoggerMixin):
    """Single Tesseract instance with switchable recognition parameters."""

    def __init__(self, tesseract_path: Optional[str] = None):
        self.tesseract_path = tesseract_path or resolve_tesseract_path()
        pytesseract.pytesseract.tesseract_cmd = self.tesseract_path
        self.page_seg_mode = TEXT_PAGE_SEG_MODE
        self.char_whitelist = ""
        self.terminated = False

        self.logger.info("Tesseract engine created", tesseract_path=self.tesseract_path)

    def set_parameters(self, page_seg_mode: int, char_whitelist: str = ""):
        self.page_seg_mode = page_seg_mode
        self.char_whitelist = char_whitelist

    def reset_parameters(self):
        self.set_parameters(TEXT_PAGE_SEG_MODE, "")

    def _config(self) -> str:
        config = f"--psm {self.page_seg_mode}"
        if self.char_whitelist:
            config += f" -c tessedit_char_whitelist={self.char_whitelist}"
        return config

    def recognize(self, image: np.ndarray) -> Tuple[str, float]:
        """Recognise text in an image; confidence is 0..100."""
        if self.terminated:
            raise RecognitionError("Engine has been terminated")

        try:
            data = pytesseract.image_to_data(
                image, config=self._config(), output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, OSError, RuntimeError) as e:
            raise RecognitionError(
                "Tesseract recognition failed",
                details={"error": str(e), "config": self._config()},
            ) from e

        return _join_lines(data)

    def terminate(self):
        self.terminated = True
        self.logger.info("Tesseract engine terminated")
