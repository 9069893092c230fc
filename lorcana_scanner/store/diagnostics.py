"""Diagnostics bundle export for field triage."""

import base64
import json
import platform
import time
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import cv2
import numpy as np

from ..core import constants
from ..core.types import CropSnapshot, PreprocessInfo
from ..utils.config import ensure_diagnostics_dir
from ..utils.error_handler import CaptureError
from ..utils.log import get_logger
from .telemetry import TelemetryRecorder

logger = get_logger(__name__)

DIAGNOSTICS_JPEG_QUALITY = 80


def encode_jpeg_base64(image: np.ndarray, quality: int = DIAGNOSTICS_JPEG_QUALITY) -> str:
    """Encode an image as a base64 JPEG data string."""
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise CaptureError("JPEG encoding failed", details={"shape": list(image.shape)})
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def environment_metadata() -> Dict[str, str]:
    from .. import __version__

    return {
        "app_version": __version__,
        "platform": platform.platform(),
        "python": platform.python_version(),
        "opencv": cv2.__version__,
    }


def layout_constants() -> Dict[str, Any]:
    return {
        "guide": {
            "x": constants.GUIDE_X,
            "y": constants.GUIDE_Y,
            "w": constants.GUIDE_W,
            "h": constants.GUIDE_H,
        },
        "cn_region": {
            "left": constants.CN_REGION_LEFT,
            "top": constants.CN_REGION_TOP,
            "width": constants.CN_REGION_WIDTH,
            "height": constants.CN_REGION_HEIGHT,
        },
        "ink_region": {
            "left": constants.INK_REGION_LEFT,
            "top": constants.INK_REGION_TOP,
            "size": constants.INK_REGION_SIZE,
        },
        "ocr_upscale": constants.OCR_UPSCALE,
    }


def build_diagnostics(
    telemetry: TelemetryRecorder,
    set_filter: str,
    card_pool_size: int,
    crop_snapshot: Optional[CropSnapshot] = None,
    preprocess_info: Optional[PreprocessInfo] = None,
    preprocessed_image: Optional[np.ndarray] = None,
) -> Dict[str, Any]:
    """Assemble the JSON-serialisable diagnostics document."""
    exported = telemetry.export_diagnostics()
    summary = exported["telemetry_summary"]
    summary["current_memory_mb"] = round(summary["current_memory_bytes"] / (1024 * 1024), 1)

    bundle: Dict[str, Any] = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        **environment_metadata(),
        "set_filter": set_filter,
        "card_pool_size": card_pool_size,
        "constants": layout_constants(),
        "crop": crop_snapshot.to_dict() if crop_snapshot else None,
        "preprocess": asdict(preprocess_info) if preprocess_info else None,
        "preprocessed_cn_jpeg": None,
        "telemetry_summary": summary,
        "recent_frames": exported["recent_frames"],
    }

    if preprocessed_image is not None and preprocessed_image.size > 0:
        try:
            bundle["preprocessed_cn_jpeg"] = encode_jpeg_base64(preprocessed_image)
        except (CaptureError, cv2.error) as e:
            logger.warning("Diagnostics image skipped", error=str(e))

    return bundle


def write_diagnostics(bundle: Dict[str, Any], directory: Optional[Path] = None) -> Path:
    """Write the bundle as ``scanner-diag-<ms>.json`` and return its path."""
    directory = Path(directory) if directory is not None else ensure_diagnostics_dir()
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"scanner-diag-{int(time.time() * 1000)}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(bundle, f, indent=2, default=str)

    logger.info(
        "Diagnostics exported",
        path=str(path),
        frames=len(bundle.get("recent_frames", [])),
    )
    return path
