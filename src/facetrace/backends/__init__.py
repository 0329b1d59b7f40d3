"""Capability contracts and built-in backends."""

from facetrace.backends.base import (
    DetectorState,
    LandmarkDetector,
    GazeEstimator,
    FaceAnalyzer,
)
from facetrace.backends.dummy import (
    DummyDetector,
    DummyGazeEstimator,
    DummyAnalyzer,
)

__all__ = [
    # Protocols
    "LandmarkDetector",
    "GazeEstimator",
    "FaceAnalyzer",
    # Data classes
    "DetectorState",
    # Built-in backends
    "DummyDetector",
    "DummyGazeEstimator",
    "DummyAnalyzer",
]
