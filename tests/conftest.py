"""Pytest configuration and shared fixtures for Lorcana Scanner tests."""

import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import numpy as np
import pytest

from lorcana_scanner.catalog.loader import parse_cards
from lorcana_scanner.core.constants import INK_COLOURS
from lorcana_scanner.utils.error_handler import CameraAcquisitionError


# Raw rows: name, version, set_code, set_name, cn, cost, ink, rarity, types, image_url
RAW_CATALOG = [
    ["Ariel", "On Human Legs", "1", "The First Chapter", "1", 4, "Amber", "Uncommon", "Character", None],
    ["Hades", "King of Olympus", "1", "The First Chapter", "5", 8, "Amber", "Rare", "Character", None],
    ["Mickey Mouse", "Brave Little Tailor", "1", "The First Chapter", "115", 8, "Ruby", "Legendary", "Character", None],
    ["Last Card", "", "1", "The First Chapter", "204", 3, "Steel", "Common", "Item", None],
    ["Elsa", "Snow Queen", "2", "Rise of the Floodborn", "10", 6, "Sapphire", "Legendary", "Character", None],
    ["Shared Number", "Floodborn", "2", "Rise of the Floodborn", "115", 3, "Emerald", "Common", "Character", None],
    ["Final Floodborn", "", "2", "Rise of the Floodborn", "216", 2, "Emerald", "Common", "Action", None],
    ["Lilo", "Galactic Hero", "7", "Archazia's Island", "130", 3, "Amber", "Rare", "Character", None],
    ["Stitch", "Rock Star", "7", "Archazia's Island", "131", 6, "Amber/Steel", "Super Rare", "Character", None],
    ["Moana", "Of Motunui", "7", "Archazia's Island", "5", 5, "Ruby", "Rare", "Character", None],
    ["Last of Seven", "", "7", "Archazia's Island", "204", 2, "Ruby", "Common", "Item", None],
]


@pytest.fixture(scope="function")
def temp_dirs():
    """Create temporary directories for each test function."""
    temp_dir = Path(tempfile.mkdtemp())
    output_dir = temp_dir / "output"
    output_dir.mkdir()

    yield {
        'temp_dir': temp_dir,
        'output_dir': output_dir,
    }

    shutil.rmtree(temp_dir)


@pytest.fixture(scope="function")
def sample_catalog():
    """Small catalog with overlapping collector numbers across sets."""
    return parse_cards(RAW_CATALOG)


@pytest.fixture(scope="function")
def blank_frame():
    """A mid-grey 1280x720 BGR frame."""
    return np.full((720, 1280, 3), 128, dtype=np.uint8)


def ink_patch(ink: str, size: int = 40) -> np.ndarray:
    """Solid BGR patch of a palette ink."""
    r, g, b = INK_COLOURS[ink]
    patch = np.zeros((size, size, 3), dtype=np.uint8)
    patch[:, :] = (b, g, r)
    return patch


@pytest.fixture
def make_ink_patch() -> Callable[..., np.ndarray]:
    return ink_patch


class FakeEngine:
    """Scripted recognition engine that tracks concurrent use."""

    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.default = ("", 0.0)
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.peak_active = 0
        self.parameters: List[Tuple[int, str]] = []
        self.terminated = False
        self._lock = threading.Lock()

    def set_parameters(self, page_seg_mode: int, char_whitelist: str = ""):
        self.parameters.append((page_seg_mode, char_whitelist))

    def reset_parameters(self):
        self.parameters.append(("reset", ""))

    def recognize(self, image):
        with self._lock:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            self.calls += 1
            response = self.responses.pop(0) if self.responses else self.default
        try:
            if self.delay:
                time.sleep(self.delay)
            if isinstance(response, Exception):
                raise response
            return response
        finally:
            with self._lock:
                self.active -= 1

    def terminate(self):
        self.terminated = True


@pytest.fixture
def fake_engine():
    return FakeEngine()


class FakeCamera:
    """Frame source serving a fixed frame, optionally failing to open."""

    def __init__(self, frame: Optional[np.ndarray] = None, error: Optional[CameraAcquisitionError] = None):
        self.frame = frame if frame is not None else np.full((720, 1280, 3), 128, dtype=np.uint8)
        self.error = error
        self.opened = 0
        self.released = 0
        self.is_initialized = False

    async def open(self):
        self.opened += 1
        if self.error is not None:
            raise self.error
        self.is_initialized = True

    def read(self):
        return self.frame if self.is_initialized else None

    def release(self):
        self.released += 1
        self.is_initialized = False


@pytest.fixture
def fake_camera():
    return FakeCamera()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# Configure pytest options
def pytest_configure(config):
    """Configure pytest with custom options."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Mark integration tests
        if "integration" in item.name.lower() or "end_to_end" in item.name.lower():
            item.add_marker(pytest.mark.integration)

        # Mark slow tests
        if any(slow_indicator in item.name.lower() for slow_indicator in ['stress', 'concurrent']):
            item.add_marker(pytest.mark.slow)

        # Mark unit tests (default)
        if not item.get_closest_marker('integration') and not item.get_closest_marker('slow'):
            item.add_marker(pytest.mark.unit)
