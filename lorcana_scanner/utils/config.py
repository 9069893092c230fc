"""Configuration and settings management."""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path
import shutil

from .error_handler import ConfigurationError


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | console

    # Camera settings
    CAMERA_INDEX: int = 0
    CAMERA_WIDTH: int = 1920
    CAMERA_HEIGHT: int = 1080

    # Displayed viewport (0 means "same as the frame", i.e. no cover crop)
    VIEWPORT_WIDTH: int = 0
    VIEWPORT_HEIGHT: int = 0

    # OCR settings
    TESSERACT_PATH: Optional[str] = None
    MIN_OCR_CONFIDENCE: float = 0.0

    # Scanner loop timing (seconds)
    FRAME_INTERVAL_S: float = 1.0
    COOLDOWN_S: float = 2.0
    MATCH_DISPLAY_S: float = 1.5

    # Matching
    MIN_INK_CONFIDENCE: float = 0.3
    MAX_CANDIDATES: int = 6

    # Telemetry and diagnostics
    TELEMETRY_CAPACITY: int = 20
    DIAGNOSTICS_DIR: str = "output/diagnostics"

    # Catalog
    CATALOG_PATH: Optional[str] = None

    @field_validator('TESSERACT_PATH', 'CATALOG_PATH', mode='before')
    @classmethod
    def validate_optional_path(cls, v):
        """Convert empty/whitespace strings to None."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "INFO"
        return v

    @field_validator('LOG_FORMAT', mode='before')
    @classmethod
    def validate_log_format(cls, v):
        if isinstance(v, str) and not v.strip():
            return "json"
        if str(v).strip().lower() not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return str(v).strip().lower()

    @field_validator('DIAGNOSTICS_DIR', mode='before')
    @classmethod
    def validate_diagnostics_dir(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "output/diagnostics"
        return v

    @field_validator('FRAME_INTERVAL_S', 'COOLDOWN_S', 'MATCH_DISPLAY_S')
    @classmethod
    def validate_positive_duration(cls, v):
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    @field_validator('MIN_INK_CONFIDENCE')
    @classmethod
    def validate_unit_interval(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("MIN_INK_CONFIDENCE must be within 0..1")
        return v

    @field_validator('MIN_OCR_CONFIDENCE')
    @classmethod
    def validate_ocr_confidence(cls, v):
        if not 0.0 <= v <= 100.0:
            raise ValueError("MIN_OCR_CONFIDENCE must be within 0..100")
        return v

    @field_validator('TELEMETRY_CAPACITY', 'MAX_CANDIDATES')
    @classmethod
    def validate_capacity(cls, v):
        if v < 1:
            raise ValueError("capacities must be at least 1")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

# Global settings instance
settings = Settings()


def ensure_diagnostics_dir() -> Path:
    """Ensure the diagnostics output directory exists and return it."""
    diagnostics_dir = Path(settings.DIAGNOSTICS_DIR)
    diagnostics_dir.mkdir(parents=True, exist_ok=True)
    return diagnostics_dir


def resolve_tesseract_path() -> str:
    """Get Tesseract path, with fallback to common locations."""
    if settings.TESSERACT_PATH and Path(settings.TESSERACT_PATH).exists():
        return settings.TESSERACT_PATH

    # Try to find tesseract in PATH
    tesseract_path = shutil.which("tesseract")
    if tesseract_path:
        return tesseract_path

    common_paths = [
        "/opt/homebrew/bin/tesseract",  # Apple Silicon Homebrew
        "/usr/local/bin/tesseract",     # Intel Homebrew
        "/usr/bin/tesseract",           # System package
    ]

    for path in common_paths:
        if Path(path).exists():
            return path

    raise ConfigurationError(
        "Tesseract not found. Install it or set TESSERACT_PATH",
        details={"searched": common_paths},
    )
