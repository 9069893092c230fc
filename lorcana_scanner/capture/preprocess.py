"""Crop and clean the two card regions used by the recognition pipeline.

Collector numbers are tiny text (10-15 px tall in the raw crop) that
Tesseract cannot read reliably, so the band is upscaled, converted to
grayscale, inverted when the background is dark and binarized with Otsu's
threshold. The result is always dark text on a light background.

The ink sample is cropped at native resolution with no filtering, because the
classifier needs true colours. Frames are BGR, as delivered by OpenCV.

Scratch buffers are owned by one ``RegionPreprocessor`` per stream and reused
across frames; returned arrays are views of those buffers and are overwritten
by the next call.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from ..core.constants import INVERT_BRIGHTNESS_BELOW, OCR_UPSCALE
from ..core.types import PixelRect, PreprocessInfo
from ..utils.error_handler import CaptureError
from ..utils.log import LoggerMixin


def otsu_threshold(gray: np.ndarray) -> int:
    """Threshold maximising inter-class variance over the 0-255 histogram.

    Falls back to 128 when the image holds a single grey level.
    """
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    if total == 0:
        return 128

    levels = np.arange(256, dtype=np.float64)
    w0 = np.cumsum(hist)
    sum0 = np.cumsum(hist * levels)
    w1 = total - w0
    sum_all = sum0[-1]

    m0 = np.divide(sum0, w0, out=np.zeros_like(sum0), where=w0 > 0)
    m1 = np.divide(sum_all - sum0, w1, out=np.zeros_like(sum0), where=w1 > 0)
    between = w0 * w1 * (m0 - m1) ** 2
    between[(w0 == 0) | (w1 == 0)] = 0.0

    best = int(np.argmax(between))
    if between[best] <= 0:
        return 128
    return best


def _crop(frame: np.ndarray, rect: PixelRect) -> np.ndarray:
    if rect.is_empty:
        raise CaptureError("Empty crop region", details={"rect": rect.to_dict()})
    roi = frame[rect.y:rect.y + rect.h, rect.x:rect.x + rect.w]
    if roi.size == 0:
        raise CaptureError(
            "Crop region lies outside the frame",
            details={"rect": rect.to_dict(), "frame": list(frame.shape[:2])},
        )
    return roi


class RegionPreprocessor(LoggerMixin):
    """Produces the collector-number and ink buffers for one frame."""

    def __init__(self, upscale: int = OCR_UPSCALE):
        self.upscale = upscale
        self._scaled: Optional[np.ndarray] = None
        self._gray: Optional[np.ndarray] = None
        self._ink: Optional[np.ndarray] = None
        self.last_info: Optional[PreprocessInfo] = None

    def crop_collector_number(self, frame: np.ndarray, rect: PixelRect) -> np.ndarray:
        """Crop the CN band and draw it at ``upscale``x with smooth resampling."""
        roi = _crop(frame, rect)
        out_w, out_h = rect.w * self.upscale, rect.h * self.upscale
        if (
            self._scaled is None
            or self._scaled.shape[:2] != (out_h, out_w)
            or self._scaled.shape[2:] != roi.shape[2:]
            or self._scaled.dtype != roi.dtype
        ):
            self._scaled = np.empty((out_h, out_w) + roi.shape[2:], dtype=roi.dtype)
        self._scaled = cv2.resize(
            roi, (out_w, out_h), dst=self._scaled, interpolation=cv2.INTER_LINEAR
        )
        return self._scaled

    def binarize(self, image: np.ndarray) -> Tuple[np.ndarray, PreprocessInfo]:
        """Grayscale, auto-invert on dark backgrounds, Otsu binarize."""
        if self._gray is None or self._gray.shape != image.shape[:2]:
            self._gray = np.empty(image.shape[:2], dtype=np.uint8)

        if image.ndim == 3 and image.shape[2] == 4:
            cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY, dst=self._gray)
        elif image.ndim == 3:
            # BT.601 luma: 0.299 R + 0.587 G + 0.114 B
            cv2.cvtColor(image, cv2.COLOR_BGR2GRAY, dst=self._gray)
        else:
            np.copyto(self._gray, image.astype(np.uint8, copy=False))
        gray = self._gray

        avg_brightness = float(gray.mean())
        inverted = avg_brightness < INVERT_BRIGHTNESS_BELOW
        if inverted:
            cv2.bitwise_not(gray, dst=gray)

        threshold = otsu_threshold(gray)
        cv2.threshold(gray, threshold, 255, cv2.THRESH_BINARY, dst=gray)

        info = PreprocessInfo(
            inverted=inverted, threshold=threshold, avg_brightness=round(avg_brightness)
        )
        self.last_info = info
        return gray, info

    def collector_number_buffer(
        self, frame: np.ndarray, rect: PixelRect
    ) -> Tuple[np.ndarray, PreprocessInfo]:
        """Crop, upscale and binarize the collector-number band."""
        scaled = self.crop_collector_number(frame, rect)
        binary, info = self.binarize(scaled)
        self.logger.debug(
            "Collector number region preprocessed",
            size=f"{binary.shape[1]}x{binary.shape[0]}",
            inverted=info.inverted,
            threshold=info.threshold,
            avg_brightness=info.avg_brightness,
        )
        return binary, info

    def ink_buffer(self, frame: np.ndarray, rect: PixelRect) -> np.ndarray:
        """Raw-colour crop of the ink banner at native resolution."""
        roi = _crop(frame, rect)
        if self._ink is None or self._ink.shape != roi.shape or self._ink.dtype != roi.dtype:
            self._ink = np.empty_like(roi)
        np.copyto(self._ink, roi)
        return self._ink

    def release(self):
        """Drop scratch buffers (stream closed)."""
        self._scaled = None
        self._gray = None
        self._ink = None
        self.last_info = None
