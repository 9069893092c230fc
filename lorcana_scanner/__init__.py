"""Lorcana Card Scanner - identify Lorcana cards from a live camera feed."""

__version__ = "1.0.0"
__author__ = "Lorcana Scanner Team"
__description__ = "Camera-based card recognition from the printed collector number and ink colour"

from .capture.geometry import compute_crop_rects
from .catalog.loader import load_catalog, parse_cards
from .ocr.regexes import parse_collector_number
from .ocr.service import RecognitionService
from .resolve.resolver import card_resolver
from .scanner.controller import ScannerController
from .store.telemetry import TelemetryRecorder
from .ui.notifier import notifier
from .utils.config import settings

# Core functionality imports
from .utils.log import configure_logging, get_logger
from .vision.ink import ink_classifier

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__description__",
    # Core components
    "configure_logging",
    "get_logger",
    "settings",
    "compute_crop_rects",
    "load_catalog",
    "parse_cards",
    "parse_collector_number",
    "RecognitionService",
    "card_resolver",
    "ink_classifier",
    "ScannerController",
    "TelemetryRecorder",
    "notifier",
]
