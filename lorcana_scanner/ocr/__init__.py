"""OCR package for collector-number recognition."""

from .regexes import (
    COLLECTOR_NUMBER_PATTERN,
    is_valid_collector_number,
    parse_collector_number,
)
from .service import RecognitionService

__all__ = [
    "RecognitionService",
    "parse_collector_number",
    "is_valid_collector_number",
    "COLLECTOR_NUMBER_PATTERN",
]
