"""Core data types for facetrace.

Per-frame values flow through these types from the frame source, via the
detection capabilities, into the feature record and the two encoders.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Union

import numpy as np

# FHOG cells carry 31 orientation channels.
NUM_HOG_CHANNELS = 31

# Frame rate assumed for cameras, image sequences and videos without metadata.
DEFAULT_FPS = 30.0

# Focal length heuristic: 500px at 640x480, scaled with the image size.
_FOCAL_AT_VGA = 500.0


class SourceKind(Enum):
    """Kind of frame source a session reads from."""

    VIDEO = "video"
    CAMERA = "camera"
    IMAGES = "images"


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole camera parameters in pixel units.

    A pair is unset when either of its values is 0; ``resolve()`` fills
    unset pairs from the image size.
    """

    fx: float = 0.0
    fy: float = 0.0
    cx: float = 0.0
    cy: float = 0.0

    @property
    def focal_unset(self) -> bool:
        return self.fx == 0 or self.fy == 0

    @property
    def center_unset(self) -> bool:
        return self.cx == 0 or self.cy == 0

    @property
    def is_resolved(self) -> bool:
        return not (self.focal_unset or self.center_unset)

    def resolve(self, width: int, height: int) -> CameraIntrinsics:
        """Return intrinsics with unset pairs derived from the image size.

        The optical centre defaults to the image centre. Focal length uses
        500px at 640x480 scaled per axis, then averaged so fx == fy.

        Example:
            >>> CameraIntrinsics().resolve(640, 480)
            CameraIntrinsics(fx=500.0, fy=500.0, cx=320.0, cy=240.0)
        """
        resolved = self
        if self.center_unset:
            resolved = replace(resolved, cx=width / 2.0, cy=height / 2.0)
        if self.focal_unset:
            fx = _FOCAL_AT_VGA * (width / 640.0)
            fy = _FOCAL_AT_VGA * (height / 480.0)
            focal = (fx + fy) / 2.0
            resolved = replace(resolved, fx=focal, fy=focal)
        return resolved


@dataclass
class FrameContext:
    """Transient per-frame bundle.

    Attributes:
        frame_index: 0-based index within the session.
        timestamp: Seconds since session start (frame_index / fps).
        image: BGR or grayscale 8-bit image.
        success: Detector success flag for this frame.
        certainty: Detector certainty in [-1, 1]; lower is more certain.
    """

    frame_index: int
    timestamp: float
    image: np.ndarray
    success: bool = False
    certainty: float = 1.0

    @property
    def confidence(self) -> float:
        """Confidence in [0, 1] derived from the detector certainty."""
        return 0.5 * (1.0 - self.certainty)


@dataclass
class GazeEstimate:
    """Gaze directions for both eyes plus the combined gaze angle."""

    direction_0: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, -1.0])
    )
    direction_1: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, -1.0])
    )
    angle: np.ndarray = field(default_factory=lambda: np.zeros(2))

    @classmethod
    def forward(cls) -> GazeEstimate:
        """Both eyes looking straight at the camera, zero angle."""
        return cls()


@dataclass
class HOGDescriptorFrame:
    """Dense FHOG descriptor of the aligned face.

    Attributes:
        data: Array of shape (rows, cols, 31).
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        if self.data.ndim != 3 or self.data.shape[2] != NUM_HOG_CHANNELS:
            raise ValueError(
                f"HOG descriptor must have shape (rows, cols, {NUM_HOG_CHANNELS}), "
                f"got {self.data.shape}"
            )

    @property
    def num_rows(self) -> int:
        return int(self.data.shape[0])

    @property
    def num_cols(self) -> int:
        return int(self.data.shape[1])


@dataclass
class AnalyzerFrame:
    """What the analyzer hands back after advancing by one frame."""

    aligned: Optional[np.ndarray] = None
    hog: Optional[HOGDescriptorFrame] = None


@dataclass(frozen=True)
class ActionUnitNameSets:
    """AU names fixed at session start, each list sorted lexicographically."""

    regression: tuple = ()
    classification: tuple = ()

    @classmethod
    def from_names(cls, regression, classification) -> ActionUnitNameSets:
        return cls(
            regression=tuple(sorted(regression)),
            classification=tuple(sorted(classification)),
        )


@dataclass
class Tracked:
    """Detection outcome for a frame on which tracking is initialised.

    Attributes:
        landmarks_2d: (2N,) all x coordinates followed by all y.
        landmarks_3d: (3N,) all X, then all Y, then all Z.
        eye_landmarks: (M, 2) eye landmark image coordinates.
        pose: (6,) Tx, Ty, Tz, Rx, Ry, Rz.
        params_global: (6,) scale, rx, ry, rz, tx, ty.
        params_local: (num_modes,) non-rigid shape parameters.
    """

    landmarks_2d: np.ndarray
    landmarks_3d: np.ndarray
    eye_landmarks: np.ndarray
    pose: np.ndarray
    params_global: np.ndarray
    params_local: np.ndarray


@dataclass
class Untracked:
    """Detection outcome for a frame without an initialised tracker."""


DetectionOutcome = Union[Tracked, Untracked]


@dataclass
class FeatureRecord:
    """One output row.

    Disabled blocks are None. Enabled blocks are always fully populated,
    with zeros when the frame was not tracked.
    """

    frame: int
    timestamp: float
    confidence: float
    success: bool
    gaze: Optional[np.ndarray] = None
    pose: Optional[np.ndarray] = None
    landmarks_2d: Optional[np.ndarray] = None
    landmarks_3d: Optional[np.ndarray] = None
    model_params: Optional[np.ndarray] = None
    au_reg: Optional[Dict[str, float]] = None
    au_class: Optional[Dict[str, float]] = None

    def values(self) -> List[float]:
        """All numeric values of the enabled blocks in column order."""
        out: List[float] = []
        for block in (
            self.gaze, self.pose, self.landmarks_2d,
            self.landmarks_3d, self.model_params,
        ):
            if block is not None:
                out.extend(float(v) for v in block)
        for scores in (self.au_reg, self.au_class):
            if scores is not None:
                out.extend(scores.values())
        return out


__all__ = [
    "NUM_HOG_CHANNELS",
    "DEFAULT_FPS",
    "SourceKind",
    "CameraIntrinsics",
    "FrameContext",
    "GazeEstimate",
    "HOGDescriptorFrame",
    "AnalyzerFrame",
    "ActionUnitNameSets",
    "Tracked",
    "Untracked",
    "DetectionOutcome",
    "FeatureRecord",
]
