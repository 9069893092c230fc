from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..utils.validation import validate_numeric_range


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    version: str
    display: str
    set_code: str
    set_name: str
    cn: str
    cost: int
    ink: str
    rarity: str
    types: Tuple[str, ...] = ()
    image_url: Optional[str] = None

    @property
    def inks(self) -> List[str]:
        """Component inks; dual-ink cards are stored as "X/Y"."""
        return [part for part in self.ink.split("/") if part]

    @property
    def key(self) -> Tuple[str, str]:
        return (self.set_code, self.cn)


@dataclass(frozen=True)
class GuideGeometry:
    """Guide rectangle as fractions of the displayed viewport."""

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self):
        for name in ("x", "y", "w", "h"):
            validate_numeric_range(getattr(self, name), 0.0, 1.0, field_name=f"guide.{name}")


@dataclass(frozen=True)
class CoverTransform:
    frame_width: int
    frame_height: int
    viewport_width: int
    viewport_height: int
    offset_x: float
    offset_y: float
    visible_w: float
    visible_h: float

    def map_point(self, fx: float, fy: float) -> Tuple[float, float]:
        """Map a display fraction to a frame pixel coordinate."""
        return (self.offset_x + fx * self.visible_w, self.offset_y + fy * self.visible_h)

    def to_dict(self) -> Dict[str, int]:
        return {
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "frame_width": self.frame_width,
            "frame_height": self.frame_height,
            "offset_x": round(self.offset_x),
            "offset_y": round(self.offset_y),
            "visible_w": round(self.visible_w),
            "visible_h": round(self.visible_h),
        }


@dataclass(frozen=True)
class PixelRect:
    x: int
    y: int
    w: int
    h: int

    @property
    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CropSnapshot:
    """Cover transform plus the pixel rects cropped from one frame."""

    cover: CoverTransform
    guide: PixelRect
    cn_region: PixelRect
    ink_region: PixelRect

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cover_transform": self.cover.to_dict(),
            "guide_frame": self.guide.to_dict(),
            "cn_region": self.cn_region.to_dict(),
            "ink_region": self.ink_region.to_dict(),
        }


@dataclass(frozen=True)
class PreprocessInfo:
    inverted: bool
    threshold: int
    avg_brightness: int


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    confidence: float  # 0..100
    latency_ms: float = 0.0
    queued: bool = False


@dataclass(frozen=True)
class ParsedCollectorNumber:
    cn: str
    total: Optional[str]
    set_number: Optional[str]
    raw: str

    @property
    def label(self) -> str:
        return f"{self.cn}/{self.total or '?'}"


@dataclass(frozen=True)
class InkDetection:
    primary: Optional[str] = None
    secondary: Optional[str] = None
    confidence: float = 0.0
    detected_inks: Tuple[str, ...] = ()
    avg_color: Tuple[int, int, int] = (0, 0, 0)

    @property
    def label(self) -> Optional[str]:
        return "/".join(self.detected_inks) if self.detected_inks else None


@dataclass(frozen=True)
class MatchOutcome:
    card: Optional[CatalogEntry] = None
    candidates: Tuple[CatalogEntry, ...] = ()
    confidence: int = 0
    # Number of candidates before truncation to the cap
    total_candidates: int = 0

    @property
    def is_accepted(self) -> bool:
        return self.card is not None

    @property
    def is_ambiguous(self) -> bool:
        return self.card is None and len(self.candidates) > 0

    @property
    def suppressed(self) -> int:
        return max(0, self.total_candidates - len(self.candidates))


@dataclass(frozen=True)
class FrameSnapshot:
    frame_id: int
    timestamp: str
    ocr_text: str
    ocr_confidence: float
    worker_latency_ms: int
    mutex_contended: bool
    parsed_cn: Optional[str]
    detected_ink: Optional[str]
    match_result: str
    memory_usage_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PipelineState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    PROCESSING = "processing"
    MATCHED = "matched"
    DISAMBIGUATING = "disambiguating"
    ERROR = "error"


class TickOutcome(str, Enum):
    MATCHED = "matched"
    DISAMBIGUATING = "disambiguating"
    COOLDOWN = "cooldown"
    NO_MATCH = "no match"
    PARSE_FAILED = "parse failed"
    NO_TEXT = "no text"
    LOW_CONFIDENCE = "low confidence"
    RECOGNITION_ERROR = "recognition error"
    UNAVAILABLE = "unavailable"
    SKIPPED = "skipped"


@dataclass
class TickResult:
    """Result of evaluating one frame."""

    outcome: TickOutcome
    recognition: Optional[RecognitionResult] = None
    parsed: Optional[ParsedCollectorNumber] = None
    ink: Optional[InkDetection] = None
    match: Optional[MatchOutcome] = None
    match_method: Optional[str] = None
    error: Optional[str] = None
    summary: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome not in (TickOutcome.RECOGNITION_ERROR, TickOutcome.UNAVAILABLE)


@dataclass
class ScannerDebugInfo:
    frame_res: str
    last_ocr_text: str = ""
    last_ocr_confidence: float = 0.0
    detected_ink: str = "-"
    ink_confidence: float = 0.0
    parsed_cn: str = "-"
    match_result: str = ""


@dataclass
class DebugCaptures:
    """Labelled image buffers for visual troubleshooting."""

    full_frame: np.ndarray
    algo_crop: np.ndarray
    cn_region: np.ndarray
    ink_region: np.ndarray
    frame_res: str

    def items(self):
        return [
            ("full_frame", self.full_frame),
            ("algo_crop", self.algo_crop),
            ("cn_region", self.cn_region),
            ("ink_region", self.ink_region),
        ]
