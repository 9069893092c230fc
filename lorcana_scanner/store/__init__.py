"""Storage package for telemetry and diagnostics export."""

from .diagnostics import build_diagnostics, write_diagnostics
from .telemetry import TelemetryRecorder

__all__ = ["TelemetryRecorder", "build_diagnostics", "write_diagnostics"]
