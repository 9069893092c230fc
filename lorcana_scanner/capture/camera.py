"""Camera frame sources for the scanner."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from ..utils.config import settings
from ..utils.error_handler import (
    AcquisitionCause,
    CameraAcquisitionError,
    CaptureError,
    ConfigurationError,
)
from ..utils.log import LoggerMixin
from ..utils.validation import validate_file_path


class FrameSource(Protocol):
    async def open(self) -> None: ...

    def read(self) -> Optional[np.ndarray]: ...

    def release(self) -> None: ...


def classify_open_failure(camera_index: int) -> AcquisitionCause:
    """Best-effort reason a device failed to open.

    Only Linux exposes enough through /dev to tell the causes apart; other
    platforms report UNKNOWN.
    """
    if not sys.platform.startswith("linux"):
        return AcquisitionCause.UNKNOWN

    device = Path(f"/dev/video{camera_index}")
    if not device.exists():
        return AcquisitionCause.NOT_FOUND
    if not os.access(device, os.R_OK | os.W_OK):
        return AcquisitionCause.DENIED
    return AcquisitionCause.BUSY


class CameraCapture(LoggerMixin):
    """OpenCV video capture with acquisition failures classified by cause."""

    def __init__(
        self,
        camera_index: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        self.cap = None
        self.camera_index = settings.CAMERA_INDEX if camera_index is None else camera_index
        self.width = width or settings.CAMERA_WIDTH
        self.height = height or settings.CAMERA_HEIGHT
        self.is_initialized = False
        self.frame_size: Optional[Tuple[int, int]] = None

    def _open(self):
        try:
            cap = cv2.VideoCapture(self.camera_index)
        except PermissionError as e:
            raise CameraAcquisitionError(
                AcquisitionCause.DENIED, details={"camera_index": self.camera_index}
            ) from e

        if not cap.isOpened():
            cap.release()
            raise CameraAcquisitionError(
                classify_open_failure(self.camera_index),
                details={"camera_index": self.camera_index},
            )

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_AUTOFOCUS, 1)

        # Opened but unable to deliver frames: usually held by another app
        ret, frame = cap.read()
        if not ret or frame is None:
            cap.release()
            raise CameraAcquisitionError(
                AcquisitionCause.BUSY,
                details={"camera_index": self.camera_index, "reason": "test frame failed"},
            )

        self.cap = cap
        self.frame_size = (frame.shape[1], frame.shape[0])
        self.is_initialized = True

    async def open(self):
        """Acquire the stream; raises CameraAcquisitionError on failure."""
        if self.is_initialized:
            return
        context = self.log_start("Camera acquisition", camera_index=self.camera_index)
        try:
            await asyncio.to_thread(self._open)
        except CameraAcquisitionError as e:
            self.log_error(context, e, cause=e.cause.value)
            raise
        self.log_success(context, frame_size=f"{self.frame_size[0]}x{self.frame_size[1]}")

    def read(self) -> Optional[np.ndarray]:
        """Latest frame, or None when the stream is not delivering."""
        if not self.is_initialized:
            return None

        ret, frame = self.cap.read()
        if not ret:
            self.logger.warning("Frame read failed", camera_index=self.camera_index)
            return None
        return frame

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self.logger.info("Camera released")
        self.is_initialized = False


class StillImageSource(LoggerMixin):
    """Serves one image as an endless stream (one-shot identification and tests)."""

    def __init__(self, image: Optional[np.ndarray] = None, path: Optional[str] = None):
        if image is None and path is None:
            raise CaptureError("StillImageSource needs an image or a path")
        self._image = image
        self.path = path
        self.is_initialized = False

    async def open(self):
        if self._image is None:
            try:
                image_path = validate_file_path(self.path, must_exist=True)
            except ConfigurationError as e:
                raise CameraAcquisitionError(
                    AcquisitionCause.NOT_FOUND, message=e.message, details=e.details
                ) from e
            image = cv2.imread(str(image_path))
            if image is None:
                raise CameraAcquisitionError(
                    AcquisitionCause.NOT_FOUND,
                    message=f"Could not decode image: {image_path}",
                    details={"path": str(image_path)},
                )
            self._image = image
        self.is_initialized = True
        self.logger.debug("Still image opened", size=f"{self._image.shape[1]}x{self._image.shape[0]}")

    def read(self) -> Optional[np.ndarray]:
        if not self.is_initialized:
            return None
        return self._image

    def release(self):
        self.is_initialized = False
