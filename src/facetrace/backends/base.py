"""Protocol definitions for the detection and analysis capabilities.

The landmark fitter, the gaze estimator and the face analyser (alignment,
FHOG extraction, AU prediction) are consumed through these narrow
contracts. Implementations are discovered via entry points; see
``facetrace.plugin``.
"""

from dataclasses import dataclass, field
from typing import Dict, Protocol, Sequence, Tuple

import numpy as np

from facetrace.types import AnalyzerFrame, CameraIntrinsics


@dataclass
class DetectorState:
    """Model state after one detection call.

    Attributes:
        success: Whether detection succeeded on this frame.
        certainty: Detection certainty in [-1, 1]; lower is more certain.
        tracking_initialised: Whether the tracker holds a valid face model.
            May be True on a failed frame while tracking is being recovered.
        landmarks_2d: (2N,) all x then all y.
        eye_landmarks: (M, 2) eye landmark coordinates.
        params_global: (6,) rigid parameters: scale, rx, ry, rz, tx, ty.
        params_local: (num_modes,) non-rigid parameters.
    """

    success: bool = False
    certainty: float = 1.0
    tracking_initialised: bool = False
    landmarks_2d: np.ndarray = field(default_factory=lambda: np.zeros(0))
    eye_landmarks: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    params_global: np.ndarray = field(default_factory=lambda: np.zeros(6))
    params_local: np.ndarray = field(default_factory=lambda: np.zeros(0))


class LandmarkDetector(Protocol):
    """Facial landmark / shape model fitting capability."""

    @property
    def num_points(self) -> int:
        """Number of 2D/3D landmarks of the shape model."""
        ...

    @property
    def num_modes(self) -> int:
        """Number of non-rigid shape modes."""
        ...

    @property
    def num_eye_landmarks(self) -> int:
        """Number of eye landmarks reported per frame."""
        ...

    @property
    def has_eye_model(self) -> bool:
        """Whether an eye sub-model is loaded (required for gaze)."""
        ...

    def detect_video(self, image: np.ndarray) -> DetectorState:
        """Track landmarks using the previous frame as initialisation."""
        ...

    def detect_image(self, image: np.ndarray) -> DetectorState:
        """Detect landmarks on a standalone image."""
        ...

    def pose(self, state: DetectorState, intrinsics: CameraIntrinsics) -> np.ndarray:
        """Head pose (Tx, Ty, Tz, Rx, Ry, Rz) for the current model state."""
        ...

    def shape_3d(self, state: DetectorState, intrinsics: CameraIntrinsics) -> np.ndarray:
        """(3N,) 3D landmarks in camera space: all X, then Y, then Z."""
        ...

    def reset(self) -> None:
        """Drop all tracking state."""
        ...


class GazeEstimator(Protocol):
    """Per-eye gaze direction estimation."""

    def estimate(
        self, state: DetectorState, intrinsics: CameraIntrinsics, left: bool
    ) -> np.ndarray:
        """Unit 3D gaze direction for one eye."""
        ...

    def angle(
        self, direction_0: np.ndarray, direction_1: np.ndarray, pose: np.ndarray
    ) -> np.ndarray:
        """Combined (x, y) gaze angle in radians."""
        ...


class FaceAnalyzer(Protocol):
    """Face alignment, FHOG extraction and AU prediction."""

    @property
    def au_reg_names(self) -> Sequence[str]:
        """AU names with intensity (regression) outputs."""
        ...

    @property
    def au_class_names(self) -> Sequence[str]:
        """AU names with presence (classification) outputs."""
        ...

    def advance(
        self,
        image: np.ndarray,
        landmarks_2d: np.ndarray,
        success: bool,
        timestamp: float,
    ) -> AnalyzerFrame:
        """Consume one frame; return the aligned face and its descriptor."""
        ...

    def current_aus(self) -> Tuple[Dict[str, float], Dict[str, float]]:
        """AU scores of the latest frame: (regression map, class map)."""
        ...

    def post_process(self, report_path: str) -> None:
        """Second pass over a finished report file."""
        ...

    def reset(self) -> None:
        """Drop all per-session state."""
        ...


__all__ = ["DetectorState", "LandmarkDetector", "GazeEstimator", "FaceAnalyzer"]
