"""Bounded per-frame telemetry for the capture loop."""

import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from ..core.types import FrameSnapshot
from ..utils.config import settings
from ..utils.error_handler import ErrorContext, safe_execute
from ..utils.log import LoggerMixin

TelemetryListener = Callable[[], None]


def current_memory_bytes() -> int:
    """Peak resident set size of this process, 0 where unsupported."""
    if sys.platform == "win32":
        return 0
    import resource

    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes elsewhere
    return int(usage if sys.platform == "darwin" else usage * 1024)


@dataclass
class TelemetryState:
    frames: List[FrameSnapshot] = field(default_factory=list)
    mutex_locked: bool = False
    queue_depth: int = 0
    total_frames: int = 0
    dropped_ticks: int = 0
    avg_latency_ms: float = 0.0
    peak_latency_ms: int = 0
    current_memory_bytes: int = 0

    def summary(self) -> Dict[str, Any]:
        return {
            "total_frames": self.total_frames,
            "dropped_ticks": self.dropped_ticks,
            "avg_latency_ms": round(self.avg_latency_ms, 1),
            "peak_latency_ms": self.peak_latency_ms,
            "current_memory_bytes": self.current_memory_bytes,
            "mutex_locked": self.mutex_locked,
            "queue_depth": self.queue_depth,
        }


class TelemetryRecorder(LoggerMixin):
    """Ring buffer of the last N frame snapshots plus live mutex/queue gauges.

    Frame ids are monotonic and never reused within a session; ``reset()``
    starts a new session. Listeners are notified after every change and are
    expected to call ``get_state()`` themselves. A failing listener is logged
    and ignored so it can never affect the recognition path.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        memory_reader: Callable[[], int] = current_memory_bytes,
    ):
        self.capacity = capacity or settings.TELEMETRY_CAPACITY
        self._memory_reader = memory_reader
        self._lock = threading.Lock()
        self._frames: Deque[FrameSnapshot] = deque(maxlen=self.capacity)
        self._listeners: List[TelemetryListener] = []
        self._next_id = 1
        self._mutex_locked = False
        self._queue_depth = 0
        self._dropped_ticks = 0

    def record_frame(
        self,
        ocr_text: str,
        ocr_confidence: float,
        worker_latency_ms: float,
        mutex_contended: bool,
        parsed_cn: Optional[str],
        detected_ink: Optional[str],
        match_result: str,
    ) -> FrameSnapshot:
        with self._lock:
            snapshot = FrameSnapshot(
                frame_id=self._next_id,
                timestamp=datetime.now(timezone.utc).isoformat(),
                ocr_text=ocr_text,
                ocr_confidence=round(ocr_confidence, 1),
                worker_latency_ms=round(worker_latency_ms),
                mutex_contended=mutex_contended,
                parsed_cn=parsed_cn,
                detected_ink=detected_ink,
                match_result=match_result,
                memory_usage_bytes=self._memory_reader(),
            )
            self._next_id += 1
            self._frames.append(snapshot)
        self._notify()
        return snapshot

    def record_dropped_tick(self):
        with self._lock:
            self._dropped_ticks += 1
        self._notify()

    def set_mutex_locked(self, locked: bool):
        with self._lock:
            self._mutex_locked = locked
        self._notify()

    def increment_queue(self):
        with self._lock:
            self._queue_depth += 1
        self._notify()

    def decrement_queue(self):
        with self._lock:
            self._queue_depth = max(0, self._queue_depth - 1)
        self._notify()

    def subscribe(self, listener: TelemetryListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        with self._lock:
            listeners = list(self._listeners)
        context = ErrorContext(operation="notify listener", module=__name__, function="_notify")
        for listener in listeners:
            safe_execute(listener, context=context, logger=self.logger)

    def get_state(self) -> TelemetryState:
        with self._lock:
            frames = list(self._frames)
            state = TelemetryState(
                frames=frames,
                mutex_locked=self._mutex_locked,
                queue_depth=self._queue_depth,
                total_frames=self._next_id - 1,
                dropped_ticks=self._dropped_ticks,
            )

        if frames:
            latencies = [frame.worker_latency_ms for frame in frames]
            state.avg_latency_ms = sum(latencies) / len(latencies)
            state.peak_latency_ms = max(latencies)
        state.current_memory_bytes = self._memory_reader()
        return state

    def reset(self):
        """Clear frames and gauges and restart frame ids (new session)."""
        with self._lock:
            self._frames.clear()
            self._next_id = 1
            self._mutex_locked = False
            self._queue_depth = 0
            self._dropped_ticks = 0
        self.logger.debug("Telemetry reset")
        self._notify()

    def export_diagnostics(self) -> Dict[str, Any]:
        """Summary plus every retained frame, JSON-serialisable."""
        state = self.get_state()
        return {
            "telemetry_summary": state.summary(),
            "recent_frames": [frame.to_dict() for frame in state.frames],
        }
