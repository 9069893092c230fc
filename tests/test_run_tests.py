"""Tests for the test runner's suite and marker selection."""

import importlib.util
from argparse import Namespace
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture(scope="module")
def runner():
    spec = importlib.util.spec_from_file_location("run_tests", ROOT / "run_tests.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _args(**overrides):
    values = dict(unit=False, integration=False, fast=False, stress=False, suite=None, file=None)
    values.update(overrides)
    return Namespace(**values)


def test_suites_cover_every_test_module(runner):
    grouped = [name for names in runner.SUITES.values() for name in names]
    on_disk = sorted(path.name for path in (ROOT / "tests").glob("test_*.py"))

    assert sorted(grouped) == on_disk
    assert len(grouped) == len(set(grouped))


def test_stress_selects_timing_sensitive_tests(runner):
    assert runner.build_marker(_args(stress=True)) == "slow or integration"


@pytest.mark.parametrize("flag,marker", [
    ("unit", "unit"),
    ("integration", "integration"),
    ("fast", "not slow"),
])
def test_single_marker_per_selection(runner, flag, marker):
    assert runner.build_marker(_args(**{flag: True})) == marker


def test_no_selection_runs_everything(runner):
    assert runner.build_marker(_args()) is None
    assert runner.build_targets(_args()) == ["tests/"]


def test_suite_targets(runner):
    assert runner.build_targets(_args(suite="scanner")) == [
        "tests/test_controller.py",
        "tests/test_state.py",
        "tests/test_cooldown.py",
        "tests/test_notifier.py",
    ]
    assert runner.build_targets(_args(file="test_resolver.py")) == ["tests/test_resolver.py"]
