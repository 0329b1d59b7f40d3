"""Dummy capabilities for running the pipeline without trained models.

The values are synthetic but deterministic, so reports produced with these
backends are stable across runs. Useful for testing the output pipeline
and for smoke-testing an installation.

Example:
    >>> detector = DummyDetector(fail_frames={3})
    >>> state = detector.detect_video(image)
    >>> state.success
    True
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from facetrace.backends.base import DetectorState
from facetrace.types import (
    NUM_HOG_CHANNELS,
    AnalyzerFrame,
    CameraIntrinsics,
    HOGDescriptorFrame,
)

logger = logging.getLogger(__name__)

# Depth (in mm) the synthetic face is placed at.
_FACE_DEPTH = 500.0


class DummyDetector:
    """Landmark detector that places a ring of points around the image centre.

    Args:
        num_points: Number of facial landmarks.
        num_modes: Number of non-rigid shape modes.
        num_eye_landmarks: Number of eye landmarks.
        eye_model: Whether to report an eye sub-model.
        fail_frames: Call indices (0-based since the last reset) on which
            detection fails and tracking is lost.
    """

    def __init__(
        self,
        num_points: int = 68,
        num_modes: int = 34,
        num_eye_landmarks: int = 56,
        eye_model: bool = True,
        fail_frames: Optional[Iterable[int]] = None,
    ):
        self._num_points = num_points
        self._num_modes = num_modes
        self._num_eye_landmarks = num_eye_landmarks
        self._eye_model = eye_model
        self._fail_frames = set(fail_frames or ())
        self._calls = 0
        self.video_calls = 0
        self.image_calls = 0
        self.reset_count = 0

    @property
    def num_points(self) -> int:
        return self._num_points

    @property
    def num_modes(self) -> int:
        return self._num_modes

    @property
    def num_eye_landmarks(self) -> int:
        return self._num_eye_landmarks

    @property
    def has_eye_model(self) -> bool:
        return self._eye_model

    def detect_video(self, image: np.ndarray) -> DetectorState:
        self.video_calls += 1
        return self._detect(image)

    def detect_image(self, image: np.ndarray) -> DetectorState:
        self.image_calls += 1
        return self._detect(image)

    def _detect(self, image: np.ndarray) -> DetectorState:
        index = self._calls
        self._calls += 1

        if index in self._fail_frames:
            return DetectorState(
                success=False,
                certainty=0.6,
                tracking_initialised=False,
                landmarks_2d=np.zeros(2 * self._num_points),
                eye_landmarks=np.zeros((self._num_eye_landmarks, 2)),
                params_local=np.zeros(self._num_modes),
            )

        h, w = image.shape[:2]
        cx, cy = w / 2.0, h / 2.0
        radius = min(w, h) / 4.0
        # Slow drift so consecutive frames differ.
        phase = 0.01 * index

        angles = np.linspace(0.0, 2.0 * math.pi, self._num_points, endpoint=False)
        xs = cx + radius * np.cos(angles + phase)
        ys = cy + radius * np.sin(angles + phase)

        eye_angles = np.linspace(
            0.0, 2.0 * math.pi, self._num_eye_landmarks, endpoint=False
        )
        half = self._num_eye_landmarks // 2
        eye_cx = np.where(np.arange(self._num_eye_landmarks) < half,
                          cx - radius / 2.0, cx + radius / 2.0)
        eye = np.stack([
            eye_cx + radius / 8.0 * np.cos(eye_angles),
            (cy - radius / 3.0) + radius / 16.0 * np.sin(eye_angles),
        ], axis=1)

        params_global = np.array([radius / 100.0, 0.0, phase, 0.0, cx, cy])
        params_local = np.linspace(-1.0, 1.0, self._num_modes) * math.cos(phase)

        return DetectorState(
            success=True,
            certainty=-0.8,
            tracking_initialised=True,
            landmarks_2d=np.concatenate([xs, ys]),
            eye_landmarks=eye,
            params_global=params_global,
            params_local=params_local,
        )

    def pose(self, state: DetectorState, intrinsics: CameraIntrinsics) -> np.ndarray:
        _, rx, ry, rz, tx, ty = state.params_global
        return np.array([
            (tx - intrinsics.cx) * _FACE_DEPTH / intrinsics.fx,
            (ty - intrinsics.cy) * _FACE_DEPTH / intrinsics.fy,
            _FACE_DEPTH,
            rx, ry, rz,
        ])

    def shape_3d(self, state: DetectorState, intrinsics: CameraIntrinsics) -> np.ndarray:
        n = self._num_points
        xs, ys = state.landmarks_2d[:n], state.landmarks_2d[n:2 * n]
        X = (xs - intrinsics.cx) * _FACE_DEPTH / intrinsics.fx
        Y = (ys - intrinsics.cy) * _FACE_DEPTH / intrinsics.fy
        Z = np.full(n, _FACE_DEPTH)
        return np.concatenate([X, Y, Z])

    def reset(self) -> None:
        self._calls = 0
        self.reset_count += 1


class DummyGazeEstimator:
    """Gaze estimator returning a slightly off-axis direction per eye."""

    def estimate(
        self, state: DetectorState, intrinsics: CameraIntrinsics, left: bool
    ) -> np.ndarray:
        x = 0.1 if left else -0.1
        direction = np.array([x, -0.05, -1.0])
        return direction / np.linalg.norm(direction)

    def angle(
        self, direction_0: np.ndarray, direction_1: np.ndarray, pose: np.ndarray
    ) -> np.ndarray:
        gaze = (np.asarray(direction_0) + np.asarray(direction_1)) / 2.0
        return np.array([
            math.atan2(gaze[0], -gaze[2]),
            math.atan2(gaze[1], -gaze[2]),
        ])


class DummyAnalyzer:
    """Face analyser with a fixed AU vocabulary and synthetic descriptors.

    Args:
        au_reg_names: Regression AU names (any order).
        au_class_names: Classification AU names (any order).
        reg_scores: Fixed regression scores to report on tracked frames.
            Defaults to a score for every regression AU.
        class_scores: Fixed class scores to report on tracked frames.
        hog_rows: Descriptor rows.
        hog_cols: Descriptor columns.
        aligned_size: Side of the square aligned face in pixels.
    """

    def __init__(
        self,
        au_reg_names: Sequence[str] = ("AU01", "AU02", "AU04", "AU06", "AU12", "AU25"),
        au_class_names: Sequence[str] = ("AU04", "AU12", "AU25", "AU28"),
        reg_scores: Optional[Dict[str, float]] = None,
        class_scores: Optional[Dict[str, float]] = None,
        hog_rows: int = 12,
        hog_cols: int = 12,
        aligned_size: int = 112,
    ):
        self._au_reg_names = list(au_reg_names)
        self._au_class_names = list(au_class_names)
        self._reg_scores = reg_scores
        self._class_scores = class_scores
        self._hog_rows = hog_rows
        self._hog_cols = hog_cols
        self._aligned_size = aligned_size
        self._frames = 0
        self._last_success = False
        self.post_processed: List[str] = []
        self.reset_count = 0

    @property
    def au_reg_names(self) -> Sequence[str]:
        return self._au_reg_names

    @property
    def au_class_names(self) -> Sequence[str]:
        return self._au_class_names

    @property
    def frames_seen(self) -> int:
        return self._frames

    def advance(
        self,
        image: np.ndarray,
        landmarks_2d: np.ndarray,
        success: bool,
        timestamp: float,
    ) -> AnalyzerFrame:
        self._frames += 1
        self._last_success = success

        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        h, w = gray.shape[:2]
        side = min(h, w)
        top, left = (h - side) // 2, (w - side) // 2
        crop = gray[top:top + side, left:left + side]
        aligned = cv2.resize(
            crop, (self._aligned_size, self._aligned_size),
            interpolation=cv2.INTER_LINEAR,
        )
        aligned = cv2.cvtColor(aligned, cv2.COLOR_GRAY2BGR)

        cells = cv2.resize(
            crop.astype(np.float32) / 255.0,
            (self._hog_cols, self._hog_rows),
            interpolation=cv2.INTER_AREA,
        )
        channels = np.linspace(0.0, 1.0, NUM_HOG_CHANNELS, dtype=np.float32)
        data = cells[:, :, None] * channels[None, None, :]
        return AnalyzerFrame(
            aligned=aligned,
            hog=HOGDescriptorFrame(data=data),
        )

    def current_aus(self) -> Tuple[Dict[str, float], Dict[str, float]]:
        if not self._last_success:
            return {}, {}
        if self._reg_scores is not None:
            reg = dict(self._reg_scores)
        else:
            reg = {
                name: round(0.25 * (i + 1), 2)
                for i, name in enumerate(sorted(self._au_reg_names))
            }
        if self._class_scores is not None:
            cls = dict(self._class_scores)
        else:
            cls = {name: 1.0 for name in self._au_class_names}
        return reg, cls

    def post_process(self, report_path: str) -> None:
        logger.debug("DummyAnalyzer post-processing %s (no-op)", report_path)
        self.post_processed.append(str(report_path))

    def reset(self) -> None:
        self._frames = 0
        self._last_success = False
        self.reset_count += 1


__all__ = ["DummyDetector", "DummyGazeEstimator", "DummyAnalyzer"]
