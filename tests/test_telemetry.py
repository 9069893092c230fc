"""Tests for the telemetry ring buffer."""

import json
from unittest.mock import Mock

import pytest

from lorcana_scanner.store.telemetry import TelemetryRecorder, current_memory_bytes
from lorcana_scanner.utils.config import settings


def _record(recorder, latency=10.0, result="no match"):
    return recorder.record_frame(
        ocr_text="130/204",
        ocr_confidence=87.34,
        worker_latency_ms=latency,
        mutex_contended=False,
        parsed_cn="130/204",
        detected_ink="Amber",
        match_result=result,
    )


@pytest.fixture
def recorder():
    return TelemetryRecorder(capacity=20, memory_reader=lambda: 4096)


class TestTelemetryRecorder:
    """Test retention, gauges and listeners."""

    def test_ring_buffer_keeps_latest(self, recorder):
        """25 inserts into a 20-slot buffer keep frames 6..25 in order."""
        for _ in range(25):
            _record(recorder)
        state = recorder.get_state()
        assert [f.frame_id for f in state.frames] == list(range(6, 26))
        assert state.total_frames == 25

    def test_frame_ids_monotonic(self, recorder):
        ids = [_record(recorder).frame_id for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_snapshot_fields(self, recorder):
        snapshot = _record(recorder, latency=12.6)
        assert snapshot.ocr_confidence == 87.3
        assert snapshot.worker_latency_ms == 13
        assert snapshot.memory_usage_bytes == 4096
        assert snapshot.timestamp.endswith("+00:00")

    def test_reset_restarts_ids(self, recorder):
        _record(recorder)
        recorder.record_dropped_tick()
        recorder.reset()
        state = recorder.get_state()
        assert state.frames == []
        assert state.dropped_ticks == 0
        assert _record(recorder).frame_id == 1

    def test_latency_aggregates(self, recorder):
        for latency in (10, 20, 60):
            _record(recorder, latency=latency)
        state = recorder.get_state()
        assert state.avg_latency_ms == pytest.approx(30.0)
        assert state.peak_latency_ms == 60

    def test_empty_aggregates(self, recorder):
        state = recorder.get_state()
        assert state.avg_latency_ms == 0.0
        assert state.peak_latency_ms == 0

    def test_mutex_and_queue_gauges(self, recorder):
        recorder.set_mutex_locked(True)
        recorder.increment_queue()
        recorder.increment_queue()
        recorder.decrement_queue()
        state = recorder.get_state()
        assert state.mutex_locked is True
        assert state.queue_depth == 1

    def test_queue_never_negative(self, recorder):
        recorder.decrement_queue()
        assert recorder.get_state().queue_depth == 0

    def test_dropped_ticks_counted(self, recorder):
        recorder.record_dropped_tick()
        recorder.record_dropped_tick()
        assert recorder.get_state().dropped_ticks == 2

    def test_subscribe_and_unsubscribe(self, recorder):
        listener = Mock()
        unsubscribe = recorder.subscribe(listener)
        _record(recorder)
        recorder.set_mutex_locked(True)
        assert listener.call_count == 2

        unsubscribe()
        _record(recorder)
        assert listener.call_count == 2

    def test_failing_listener_isolated(self, recorder):
        """A listener that raises does not stop recording or other listeners."""
        healthy = Mock()
        recorder.subscribe(Mock(side_effect=RuntimeError("render failed")))
        recorder.subscribe(healthy)

        snapshot = _record(recorder)
        assert snapshot.frame_id == 1
        healthy.assert_called_once()

    def test_export_is_json_serialisable(self, recorder):
        _record(recorder, result="matched")
        exported = recorder.export_diagnostics()
        assert set(exported) == {"telemetry_summary", "recent_frames"}
        assert exported["recent_frames"][0]["match_result"] == "matched"
        json.dumps(exported)

    def test_capacity_defaults_from_settings(self):
        assert TelemetryRecorder().capacity == settings.TELEMETRY_CAPACITY


class TestMemoryProbe:
    """Test the resident set size reader."""

    def test_returns_non_negative(self):
        assert current_memory_bytes() >= 0
