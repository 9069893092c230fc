"""Timed capture loop driving the recognition chain.

One tick: compute crop rects for the current frame, preprocess both regions,
recognise the collector number (queued behind any in-flight call), parse it,
classify the ink banner and resolve against the catalog. Every evaluated frame
is recorded in telemetry whatever the outcome.

A tick that fires while the previous one is still running is dropped, not
queued. Only camera acquisition failures move the scanner into ERROR; every
failure on the recognition path is logged and the next tick simply tries
again.
"""

import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..capture.camera import FrameSource
from ..capture.geometry import DEFAULT_GUIDE, compute_crop_rects
from ..capture.preprocess import RegionPreprocessor
from ..core.constants import ALL_SETS, MATCH_METHOD_CN, MATCH_METHOD_CN_INK
from ..core.types import (
    CatalogEntry,
    CropSnapshot,
    DebugCaptures,
    GuideGeometry,
    InkDetection,
    MatchOutcome,
    ParsedCollectorNumber,
    PipelineState,
    RecognitionResult,
    ScannerDebugInfo,
    TickOutcome,
    TickResult,
)
from ..ocr.regexes import parse_collector_number
from ..ocr.service import RecognitionService
from ..resolve.resolver import CardResolver, card_resolver
from ..store.diagnostics import build_diagnostics, write_diagnostics
from ..store.telemetry import TelemetryRecorder
from ..utils.config import settings
from ..utils.error_handler import (
    CameraAcquisitionError,
    CardScannerError,
    ConfigurationError,
    ErrorContext,
    RecognitionError,
    StateTransitionError,
    handle_error,
)
from ..utils.log import LoggerMixin
from ..utils.validation import validate_enum_value
from ..vision.ink import InkClassifier, ink_classifier
from .cooldown import CooldownMap
from .state import PipelineStateMachine, StateListener

MatchCallback = Callable[[CatalogEntry], None]


class ScannerController(LoggerMixin):
    """Owns the pipeline state and every per-session collaborator.

    Catalog, set filter and match callback are plain fields updated through
    setters, so each tick reads the current values.
    """

    def __init__(
        self,
        camera: FrameSource,
        on_card_matched: Optional[MatchCallback] = None,
        catalog: Sequence[CatalogEntry] = (),
        set_filter: str = ALL_SETS,
        recognition: Optional[RecognitionService] = None,
        telemetry: Optional[TelemetryRecorder] = None,
        resolver: Optional[CardResolver] = None,
        classifier: Optional[InkClassifier] = None,
        preprocessor: Optional[RegionPreprocessor] = None,
        guide: GuideGeometry = DEFAULT_GUIDE,
        viewport: Optional[Tuple[int, int]] = None,
        frame_interval_s: Optional[float] = None,
        cooldown_s: Optional[float] = None,
        match_display_s: Optional[float] = None,
        min_ocr_confidence: Optional[float] = None,
        min_ink_confidence: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateListener] = None,
    ):
        self.camera = camera
        self.telemetry = telemetry or TelemetryRecorder()
        self.recognition = recognition or RecognitionService(listener=self.telemetry)
        self.resolver = resolver or card_resolver
        self.classifier = classifier or ink_classifier
        self.preprocessor = preprocessor or RegionPreprocessor()
        self.guide = guide

        self.frame_interval_s = (
            settings.FRAME_INTERVAL_S if frame_interval_s is None else frame_interval_s
        )
        if self.frame_interval_s <= 0:
            raise ConfigurationError(
                "frame_interval_s must be positive", details={"frame_interval_s": self.frame_interval_s}
            )
        self.match_display_s = (
            settings.MATCH_DISPLAY_S if match_display_s is None else match_display_s
        )
        self.min_ocr_confidence = (
            settings.MIN_OCR_CONFIDENCE if min_ocr_confidence is None else min_ocr_confidence
        )
        self.min_ink_confidence = (
            settings.MIN_INK_CONFIDENCE if min_ink_confidence is None else min_ink_confidence
        )
        self.cooldown = CooldownMap(
            settings.COOLDOWN_S if cooldown_s is None else cooldown_s, clock=clock
        )

        self._state = PipelineStateMachine(on_state_change)
        self._catalog: List[CatalogEntry] = list(catalog)
        self._set_filter = ALL_SETS
        self.set_set_filter(set_filter)
        self._on_card_matched = on_card_matched
        self._viewport = viewport

        self._session = 0
        self._tick_session = 0
        self._processing = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._resume_task: Optional[asyncio.Task] = None

        self._reset_session_fields()

    def _reset_session_fields(self):
        self.error_message: Optional[str] = None
        self.error_cause = None
        self.last_match: Optional[CatalogEntry] = None
        self.match_method: Optional[str] = None
        self.candidates: Tuple[CatalogEntry, ...] = ()
        self.suppressed_candidates = 0
        self._pending_method: Optional[str] = None
        self.scan_count = 0
        self.debug_info: Optional[ScannerDebugInfo] = None
        self.last_ocr_text = ""
        self.last_detected_ink: Optional[InkDetection] = None
        self.crop_snapshot: Optional[CropSnapshot] = None
        self._preprocessed: Optional[np.ndarray] = None

    # Setters

    @property
    def state(self) -> PipelineState:
        return self._state.state

    @property
    def catalog(self) -> List[CatalogEntry]:
        return self._catalog

    @property
    def set_filter(self) -> str:
        return self._set_filter

    def set_catalog(self, catalog: Sequence[CatalogEntry]):
        self._catalog = list(catalog)
        if self._set_filter != ALL_SETS and self._set_filter not in self.set_codes():
            self.logger.warning("Set filter no longer in catalog", set_filter=self._set_filter)

    def set_codes(self) -> List[str]:
        return sorted({card.set_code for card in self._catalog})

    def set_set_filter(self, set_filter: str):
        if set_filter != ALL_SETS and self._catalog:
            validate_enum_value(set_filter, [ALL_SETS] + self.set_codes(), "set_filter")
        self._set_filter = set_filter

    def set_match_callback(self, callback: Optional[MatchCallback]):
        self._on_card_matched = callback

    def set_viewport(self, width: int, height: int):
        """Displayed preview size; 0 for either side means "same as the frame"."""
        self._viewport = (width, height) if width > 0 and height > 0 else None

    def subscribe_state(self, listener: StateListener):
        self._state.subscribe(listener)

    @property
    def card_pool_size(self) -> int:
        if self._set_filter == ALL_SETS:
            return len(self._catalog)
        return sum(1 for card in self._catalog if card.set_code == self._set_filter)

    # Lifecycle

    async def open(self) -> bool:
        """Acquire the camera and start the frame timer.

        Returns False (state ERROR) when the camera cannot be acquired.
        """
        if self.state not in (PipelineState.IDLE, PipelineState.ERROR):
            self.logger.debug("Scanner already open", state=self.state.value)
            return True

        self._reset_session_fields()
        self.cooldown.clear()
        self._session += 1
        session = self._session
        self._state.transition(PipelineState.REQUESTING)

        try:
            await self.camera.open()
        except CameraAcquisitionError as e:
            if session != self._session:
                return False
            self.error_message = e.user_message
            self.error_cause = e.cause
            self.logger.warning("Camera acquisition failed", cause=e.cause.value, error=e.message)
            self._state.transition(PipelineState.ERROR)
            return False

        if session != self._session:
            # Closed while the camera was being acquired
            self.camera.release()
            return False

        self._state.transition(PipelineState.STREAMING)
        self._timer_task = asyncio.create_task(self._run_timer(session))
        self.logger.info(
            "Scanner opened",
            set_filter=self._set_filter,
            card_pool_size=self.card_pool_size,
            frame_interval_s=self.frame_interval_s,
        )
        return True

    async def retry(self) -> bool:
        """Re-request the camera after an acquisition error."""
        if self.state != PipelineState.ERROR:
            raise StateTransitionError(
                "Retry is only possible from the error state",
                details={"state": self.state.value},
            )
        return await self.open()

    async def close(self):
        """Stop the timer, release the camera and tear down the recognition engine."""
        self._session += 1
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._timer_task, self._tick_task, self._resume_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timer_task = self._tick_task = self._resume_task = None

        self.camera.release()
        self.recognition.terminate()
        self.preprocessor.release()
        self.telemetry.reset()
        self.cooldown.clear()
        self._processing = False

        scans = self.scan_count
        self._reset_session_fields()
        self._state.transition(PipelineState.IDLE)
        self.logger.info("Scanner closed", scans=scans)

    async def _run_timer(self, session: int):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.frame_interval_s
        while session == self._session:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += self.frame_interval_s
            self._on_tick()

    def _on_tick(self):
        if self._processing or (self._tick_task is not None and not self._tick_task.done()):
            self.telemetry.record_dropped_tick()
            self.logger.debug("Tick dropped, previous frame still processing")
            return
        if self.state != PipelineState.STREAMING:
            return
        self._tick_task = asyncio.create_task(self._guarded_tick())

    async def _guarded_tick(self):
        try:
            await self.process_frame()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # One bad frame must never stop the loop
            handle_error(
                e,
                ErrorContext(operation="process frame", module=__name__, function="_guarded_tick"),
                self.logger,
                reraise=False,
            )

    # Frame evaluation

    async def process_frame(self, frame: Optional[np.ndarray] = None) -> TickResult:
        """Evaluate one frame and apply the outcome to the pipeline state."""
        if self._processing:
            return TickResult(TickOutcome.SKIPPED, summary="busy")
        if self.state != PipelineState.STREAMING:
            return TickResult(TickOutcome.SKIPPED, summary=f"state {self.state.value}")

        session = self._session
        self._tick_session = session
        try:
            self._processing = True
            self._state.transition(PipelineState.PROCESSING)
            result = await self._evaluate(frame)
        except BaseException:
            if session == self._session and self.state == PipelineState.PROCESSING:
                self._state.transition(PipelineState.STREAMING)
            raise
        finally:
            self._processing = False

        if session != self._session:
            # Scanner closed mid-frame; the result belongs to a dead session
            return TickResult(TickOutcome.SKIPPED, summary="closed")

        self._apply(result)
        return result

    async def _evaluate(self, frame: Optional[np.ndarray]) -> TickResult:
        if frame is None:
            frame = self.camera.read()
        if frame is None:
            return self._finish(TickResult(TickOutcome.UNAVAILABLE, summary="no frame"))

        crops = self.crop_rects(frame)
        frame_h, frame_w = frame.shape[:2]
        frame_res = f"{frame_w}x{frame_h}"
        if crops is None:
            return self._finish(TickResult(TickOutcome.UNAVAILABLE, summary="unavailable"))
        self.crop_snapshot = crops
        debug_info = self.debug_info = ScannerDebugInfo(frame_res=frame_res)

        try:
            binary, _ = self.preprocessor.collector_number_buffer(frame, crops.cn_region)
            self._preprocessed = binary
        except CardScannerError as e:
            return self._finish(TickResult(TickOutcome.UNAVAILABLE, error=e.message, summary="bad crop"))

        try:
            recognition = await self.recognition.recognize_collector_number(binary)
        except RecognitionError as e:
            handle_error(
                e,
                ErrorContext(
                    operation="recognize collector number",
                    module=__name__,
                    function="_evaluate",
                    input_data={"frame_res": frame_res},
                ),
                self.logger,
                reraise=False,
            )
            return self._finish(
                TickResult(TickOutcome.RECOGNITION_ERROR, error=e.message, summary="recognition error")
            )

        if self._tick_session != self._session:
            # Closed while the call was in flight
            return TickResult(TickOutcome.SKIPPED, recognition=recognition, summary="closed")

        self.last_ocr_text = recognition.text
        debug_info.last_ocr_text = recognition.text
        debug_info.last_ocr_confidence = recognition.confidence

        if recognition.confidence < self.min_ocr_confidence:
            return self._finish(
                TickResult(TickOutcome.LOW_CONFIDENCE, recognition=recognition, summary="low confidence")
            )
        if not recognition.text:
            return self._finish(TickResult(TickOutcome.NO_TEXT, recognition=recognition, summary="no text"))

        parsed = parse_collector_number(recognition.text)
        if parsed is None:
            return self._finish(
                TickResult(TickOutcome.PARSE_FAILED, recognition=recognition, summary="parse failed")
            )
        debug_info.parsed_cn = parsed.label

        try:
            ink = self.classifier.classify(self.preprocessor.ink_buffer(frame, crops.ink_region))
        except CardScannerError as e:
            self.logger.debug("Ink sample unavailable", error=e.message)
            ink = InkDetection()
        self.last_detected_ink = ink
        debug_info.detected_ink = ink.label or "-"
        debug_info.ink_confidence = ink.confidence

        inks = ink.detected_inks if ink.confidence >= self.min_ink_confidence else ()
        self.cooldown.sweep()
        match = self.resolver.resolve(
            parsed.cn,
            self._catalog,
            set_filter=self._set_filter,
            total=parsed.total,
            set_number=parsed.set_number,
            inks=inks,
        )
        method = MATCH_METHOD_CN_INK if inks else MATCH_METHOD_CN

        return self._finish(self._classify_match(match, method, recognition, parsed, ink))

    def _classify_match(
        self,
        match: MatchOutcome,
        method: str,
        recognition: RecognitionResult,
        parsed: ParsedCollectorNumber,
        ink: InkDetection,
    ) -> TickResult:
        common = dict(recognition=recognition, parsed=parsed, ink=ink, match=match, match_method=method)

        if match.is_accepted:
            if self.cooldown.is_cooling(match.card.key):
                return TickResult(TickOutcome.COOLDOWN, summary=f"cooldown {match.card.display}", **common)
            return TickResult(TickOutcome.MATCHED, summary=f"{match.card.display} ({method})", **common)

        if match.candidates:
            if self.cooldown.all_cooling(card.key for card in match.candidates):
                return TickResult(TickOutcome.COOLDOWN, summary="cooldown candidates", **common)
            summary = f"{len(match.candidates)} candidates"
            if match.suppressed:
                summary += f" (+{match.suppressed} more)"
            return TickResult(TickOutcome.DISAMBIGUATING, summary=summary, **common)

        return TickResult(TickOutcome.NO_MATCH, summary="no match", **common)

    def _finish(self, result: TickResult) -> TickResult:
        """Record the frame in telemetry and debug info."""
        if self._tick_session != self._session:
            return result
        recognition = result.recognition
        if self.debug_info is not None:
            self.debug_info.match_result = result.summary
        self.telemetry.record_frame(
            ocr_text=recognition.text if recognition else "",
            ocr_confidence=recognition.confidence if recognition else 0.0,
            worker_latency_ms=recognition.latency_ms if recognition else 0.0,
            mutex_contended=recognition.queued if recognition else False,
            parsed_cn=result.parsed.label if result.parsed else None,
            detected_ink=result.ink.label if result.ink else None,
            match_result=result.summary or result.outcome.value,
        )
        return result

    def _apply(self, result: TickResult):
        if result.outcome == TickOutcome.MATCHED:
            self._accept(result.match.card, result.match_method)
        elif result.outcome == TickOutcome.DISAMBIGUATING:
            self.candidates = result.match.candidates
            self._pending_method = result.match_method
            self.suppressed_candidates = result.match.suppressed
            self._state.transition(PipelineState.DISAMBIGUATING)
            self.logger.info(
                "Multiple candidates",
                cn=result.parsed.label,
                candidates=len(self.candidates),
                suppressed=self.suppressed_candidates,
            )
        else:
            self._state.transition(PipelineState.STREAMING)

    # Acceptance

    def _accept(self, card: CatalogEntry, method: str):
        self.cooldown.stamp(card.key)
        self.last_match = card
        self.match_method = method
        self.candidates = ()
        self.suppressed_candidates = 0
        self._state.transition(PipelineState.MATCHED)
        self.scan_count += 1
        self.logger.info(
            "Card matched",
            card=card.display,
            set_code=card.set_code,
            cn=card.cn,
            method=method,
            scan_count=self.scan_count,
        )

        if self._on_card_matched is not None:
            try:
                self._on_card_matched(card)
            except Exception as e:
                handle_error(
                    e,
                    ErrorContext(
                        operation="match callback",
                        module=__name__,
                        function="_accept",
                        input_data={"card": card.display},
                    ),
                    self.logger,
                    reraise=False,
                )

        self._resume_task = asyncio.create_task(self._resume_after_match(self._session))

    async def _resume_after_match(self, session: int):
        await asyncio.sleep(self.match_display_s)
        if session == self._session and self.state == PipelineState.MATCHED:
            self.last_match = None
            self.match_method = None
            self._state.transition(PipelineState.STREAMING)

    def select_candidate(self, card: CatalogEntry):
        """Accept a candidate the user picked from the disambiguation list."""
        if self.state != PipelineState.DISAMBIGUATING:
            raise StateTransitionError(
                "No disambiguation in progress", details={"state": self.state.value}
            )
        validate_enum_value(card, self.candidates, "candidate")
        self._accept(card, self._pending_method or MATCH_METHOD_CN)

    def dismiss_candidates(self):
        """Drop the disambiguation list and resume scanning."""
        if self.state != PipelineState.DISAMBIGUATING:
            return
        self.candidates = ()
        self.suppressed_candidates = 0
        self._state.transition(PipelineState.STREAMING)

    # Debugging

    def crop_rects(self, frame: np.ndarray) -> Optional[CropSnapshot]:
        """Crop rects for this frame under the current viewport."""
        frame_h, frame_w = frame.shape[:2]
        view_w, view_h = self._viewport or (frame_w, frame_h)
        return compute_crop_rects(frame_w, frame_h, view_w, view_h, self.guide)

    def capture_debug_frame(self, frame: Optional[np.ndarray] = None) -> Optional[DebugCaptures]:
        """Copies of the frame and each crop; never touches pipeline state."""
        if frame is None:
            frame = self.camera.read()
        if frame is None:
            return None

        crops = self.crop_rects(frame)
        if crops is None:
            return None
        frame_h, frame_w = frame.shape[:2]

        def _copy(rect):
            return frame[rect.y:rect.y + rect.h, rect.x:rect.x + rect.w].copy()

        return DebugCaptures(
            full_frame=frame.copy(),
            algo_crop=_copy(crops.guide),
            cn_region=_copy(crops.cn_region),
            ink_region=_copy(crops.ink_region),
            frame_res=f"{frame_w}x{frame_h}",
        )

    def export_diagnostics(self) -> dict:
        return build_diagnostics(
            self.telemetry,
            set_filter=self._set_filter,
            card_pool_size=self.card_pool_size,
            crop_snapshot=self.crop_snapshot,
            preprocess_info=self.preprocessor.last_info,
            preprocessed_image=self._preprocessed,
        )

    def write_diagnostics(self, directory: Optional[Path] = None) -> Path:
        return write_diagnostics(self.export_diagnostics(), directory)
