"""Capture package for camera handling, crop geometry and preprocessing."""

from .camera import CameraCapture, StillImageSource
from .geometry import DEFAULT_GUIDE, compute_cover_transform, compute_crop_rects
from .preprocess import RegionPreprocessor, otsu_threshold

__all__ = [
    "CameraCapture",
    "StillImageSource",
    "DEFAULT_GUIDE",
    "compute_cover_transform",
    "compute_crop_rects",
    "RegionPreprocessor",
    "otsu_threshold",
]
