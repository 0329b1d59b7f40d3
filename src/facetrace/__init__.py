"""facetrace - per-frame facial feature extraction.

Turns videos, camera streams and image directories into a per-frame
feature report (landmarks, head pose, gaze, shape parameters, action
units) and an optional binary FHOG descriptor stream.

Quick Start:
    >>> from facetrace import ExtractionConfig, FeatureExtractor
    >>> from facetrace.backends import DummyDetector, DummyAnalyzer, DummyGazeEstimator
    >>> config = ExtractionConfig(videos=["clip.mp4"], reports=["clip.csv"], quiet=True)
    >>> extractor = FeatureExtractor(
    ...     config, DummyDetector(), DummyAnalyzer(),
    ...     gaze_estimator=DummyGazeEstimator(),
    ... )
    >>> result = extractor.run()
"""

from facetrace.types import (
    CameraIntrinsics,
    FeatureRecord,
    FrameContext,
    GazeEstimate,
    HOGDescriptorFrame,
    SourceKind,
)
from facetrace.config import ExtractionConfig, OutputBlocks, SessionSpec
from facetrace.sources import SourceUnavailable, open_source
from facetrace.session import (
    AlignedImageWriteError,
    ExitRequested,
    FeatureExtractor,
    RunResult,
    SessionResult,
)

__all__ = [
    "CameraIntrinsics",
    "FeatureRecord",
    "FrameContext",
    "GazeEstimate",
    "HOGDescriptorFrame",
    "SourceKind",
    "ExtractionConfig",
    "OutputBlocks",
    "SessionSpec",
    "SourceUnavailable",
    "open_source",
    "AlignedImageWriteError",
    "ExitRequested",
    "FeatureExtractor",
    "RunResult",
    "SessionResult",
]
