"""Serialised access to the shared text recognition engine.

At most one recognition call runs at any instant. Callers queue in FIFO order
on an ``asyncio.Lock``; the blocking engine call runs in a worker thread so
the event loop (and the capture timer) keeps running while Tesseract works.

Each enqueue bumps the queue depth; each dequeue-and-start lowers it and raises
the ``locked`` flag for the duration of the call. A call that fails releases
the lock like any other, so call N failing never blocks call N+1.

``terminate()`` drops the engine and invalidates every call already queued:
those fail with ``RecognitionCancelledError`` when they reach the front. The
next call after teardown recreates the engine lazily.
"""

import asyncio
import time
from typing import Any, Callable, Optional, Protocol, Tuple

import numpy as np

from ..core.constants import CN_CHAR_WHITELIST, CN_PAGE_SEG_MODE
from ..core.types import RecognitionResult
from ..utils.error_handler import RecognitionCancelledError, RecognitionError
from ..utils.log import LoggerMixin
from .engine import TesseractEngine


class RecognitionEngine(Protocol):
    def set_parameters(self, page_seg_mode: int, char_whitelist: str = "") -> None: ...

    def reset_parameters(self) -> None: ...

    def recognize(self, image: np.ndarray) -> Tuple[str, float]: ...

    def terminate(self) -> None: ...


class ConcurrencyListener(Protocol):
    def set_mutex_locked(self, locked: bool) -> None: ...

    def increment_queue(self) -> None: ...

    def decrement_queue(self) -> None: ...


class RecognitionService(LoggerMixin):
    """Owns one recognition engine and the queue in front of it."""

    def __init__(
        self,
        engine_factory: Optional[Callable[[], RecognitionEngine]] = None,
        listener: Optional[ConcurrencyListener] = None,
    ):
        self._engine_factory = engine_factory or TesseractEngine
        self._engine: Optional[RecognitionEngine] = None
        self._listener = listener
        self._lock = asyncio.Lock()
        self._locked = False
        self._queue_depth = 0
        self._generation = 0

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def queue_depth(self) -> int:
        return self._queue_depth

    @property
    def is_ready(self) -> bool:
        """Whether an engine instance currently exists."""
        return self._engine is not None

    def _ensure_engine(self) -> RecognitionEngine:
        if self._engine is None:
            self._engine = self._engine_factory()
        return self._engine

    def _set_locked(self, locked: bool):
        self._locked = locked
        if self._listener is not None:
            self._listener.set_mutex_locked(locked)

    def _enqueue(self):
        self._queue_depth += 1
        if self._listener is not None:
            self._listener.increment_queue()

    def _dequeue(self):
        self._queue_depth = max(0, self._queue_depth - 1)
        if self._listener is not None:
            self._listener.decrement_queue()

    def _release(self):
        self._set_locked(False)
        self._lock.release()

    def _release_when_done(self, future: "asyncio.Future[Any]"):
        # Caller was cancelled mid-call; the engine is still busy, so the lock
        # is held until the worker thread returns.
        def _done(f: "asyncio.Future[Any]"):
            if not f.cancelled() and f.exception() is not None:
                self.logger.debug("Abandoned recognition call failed", error=str(f.exception()))
            self._release()

        future.add_done_callback(_done)

    async def _run(self, operation: Callable[[RecognitionEngine], Tuple[str, float]], label: str) -> RecognitionResult:
        generation = self._generation
        queued = self._lock.locked() or self._queue_depth > 0

        self._enqueue()
        try:
            await self._lock.acquire()
        except asyncio.CancelledError:
            self._dequeue()
            raise
        self._dequeue()
        self._set_locked(True)

        release_now = True
        try:
            if generation != self._generation:
                raise RecognitionCancelledError(
                    "Recognition service was torn down while the call was queued",
                    details={"operation": label},
                )

            engine = self._ensure_engine()
            started = time.perf_counter()
            future = asyncio.ensure_future(asyncio.to_thread(operation, engine))
            try:
                text, confidence = await asyncio.shield(future)
            except asyncio.CancelledError:
                release_now = False
                self._release_when_done(future)
                raise
            latency_ms = (time.perf_counter() - started) * 1000

            self.logger.debug(
                "Recognition completed",
                operation=label,
                latency_ms=round(latency_ms),
                confidence=round(confidence, 1),
                queued=queued,
            )
            return RecognitionResult(
                text=(text or "").strip(),
                confidence=float(confidence),
                latency_ms=latency_ms,
                queued=queued,
            )
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(
                f"{label} failed", details={"error": str(e), "error_type": type(e).__name__}
            ) from e
        finally:
            if release_now:
                self._release()

    async def recognize_text(self, image: np.ndarray) -> RecognitionResult:
        """Recognise free text in block mode."""
        return await self._run(lambda engine: engine.recognize(image), "recognize_text")

    async def recognize_collector_number(self, image: np.ndarray) -> RecognitionResult:
        """Recognise a single "NN/TTT" line with a digit whitelist."""

        def _operation(engine: RecognitionEngine) -> Tuple[str, float]:
            engine.set_parameters(CN_PAGE_SEG_MODE, CN_CHAR_WHITELIST)
            try:
                return engine.recognize(image)
            finally:
                # Restore defaults so the next recognize_text call is unaffected
                engine.reset_parameters()

        return await self._run(_operation, "recognize_collector_number")

    def terminate(self):
        """Tear the engine down; queued calls fail, later calls recreate it."""
        self._generation += 1
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.terminate()
            self.logger.info("Recognition engine torn down", pending=self._queue_depth)
