"""Shared fixtures for facetrace tests.

All capabilities are the dummy backends, NO ML models needed.
"""

import importlib.util
import sys
from pathlib import Path

import pytest

# Load helpers module from the tests directory using importlib to avoid
# polluting sys.path.
_helpers_path = Path(__file__).resolve().parent / "helpers.py"
_spec = importlib.util.spec_from_file_location("helpers", _helpers_path)
_helpers = importlib.util.module_from_spec(_spec)
sys.modules["helpers"] = _helpers
_spec.loader.exec_module(_helpers)

from helpers import ListSource, make_image  # noqa: E402

from facetrace.backends.dummy import DummyAnalyzer, DummyDetector  # noqa: E402
from facetrace.record import RecordLayout  # noqa: E402
from facetrace.types import ActionUnitNameSets  # noqa: E402


@pytest.fixture
def detector():
    """Small shape model so reports stay short."""
    return DummyDetector(num_points=5, num_modes=3, num_eye_landmarks=4)


@pytest.fixture
def analyzer():
    return DummyAnalyzer(
        au_reg_names=("AU12", "AU01"),
        au_class_names=("AU04",),
        hog_rows=5,
        hog_cols=5,
    )


@pytest.fixture
def layout():
    return RecordLayout(
        num_points=5,
        num_eye_landmarks=4,
        num_modes=3,
        au_names=ActionUnitNameSets.from_names(["AU12", "AU01"], ["AU04"]),
    )


@pytest.fixture
def make_source():
    """Factory fixture for in-memory sources of blank frames."""
    def _make(count: int = 3, fps: float = 30.0, width: int = 320, height: int = 240, **kwargs):
        images = [make_image(width, height, value=i) for i in range(count)]
        return ListSource(images, fps=fps, **kwargs)
    return _make

