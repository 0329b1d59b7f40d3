"""Feature record assembly.

``build_record`` turns the per-frame intermediate values into one
``FeatureRecord``. Frames without an initialised tracker produce literal
zeros in every enabled block, so every row of a session has the same
number of columns.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

from facetrace.backends.base import DetectorState
from facetrace.config import OutputBlocks
from facetrace.types import (
    ActionUnitNameSets,
    DetectionOutcome,
    FeatureRecord,
    FrameContext,
    GazeEstimate,
    Tracked,
    Untracked,
)

# Gaze directions (2 x 3) plus the gaze angle (2).
NUM_GAZE_SCALARS = 8
NUM_POSE_SCALARS = 6
NUM_RIGID_PARAMS = 6


@dataclass(frozen=True)
class RecordLayout:
    """Sizes that fix the column count of a session's report.

    Attributes:
        num_points: Facial landmarks of the shape model.
        num_eye_landmarks: Eye landmarks.
        num_modes: Non-rigid shape modes.
        au_names: Sorted AU names fixed at session start.
    """

    num_points: int
    num_eye_landmarks: int
    num_modes: int
    au_names: ActionUnitNameSets = field(default_factory=ActionUnitNameSets)

    @classmethod
    def from_capabilities(cls, detector, analyzer) -> "RecordLayout":
        return cls(
            num_points=detector.num_points,
            num_eye_landmarks=detector.num_eye_landmarks,
            num_modes=detector.num_modes,
            au_names=ActionUnitNameSets.from_names(
                analyzer.au_reg_names, analyzer.au_class_names,
            ),
        )


def outcome_from_state(
    state: DetectorState,
    pose: np.ndarray,
    landmarks_3d: Optional[np.ndarray],
    num_points: int,
) -> DetectionOutcome:
    """Tag the detector state as tracked or untracked."""
    if not state.tracking_initialised:
        return Untracked()
    if landmarks_3d is None:
        landmarks_3d = np.zeros(3 * num_points)
    return Tracked(
        landmarks_2d=np.asarray(state.landmarks_2d, dtype=float),
        landmarks_3d=np.asarray(landmarks_3d, dtype=float),
        eye_landmarks=np.asarray(state.eye_landmarks, dtype=float).reshape(-1, 2),
        pose=np.asarray(pose, dtype=float),
        params_global=np.asarray(state.params_global, dtype=float),
        params_local=np.asarray(state.params_local, dtype=float),
    )


def _sized(values: np.ndarray, size: int, what: str) -> np.ndarray:
    flat = np.asarray(values, dtype=float).ravel()
    if flat.size != size:
        raise ValueError(f"Expected {size} values for {what}, got {flat.size}")
    return flat


def _gaze_block(
    outcome: DetectionOutcome, gaze: GazeEstimate, layout: RecordLayout
) -> np.ndarray:
    size = NUM_GAZE_SCALARS + 2 * layout.num_eye_landmarks
    match outcome:
        case Tracked(eye_landmarks=eyes):
            eyes = _sized(eyes, 2 * layout.num_eye_landmarks, "eye landmarks")
            eyes = eyes.reshape(-1, 2)
            return np.concatenate([
                _sized(gaze.direction_0, 3, "gaze direction 0"),
                _sized(gaze.direction_1, 3, "gaze direction 1"),
                _sized(gaze.angle, 2, "gaze angle"),
                eyes[:, 0],
                eyes[:, 1],
            ])
        case _:
            return np.zeros(size)


def _pose_block(outcome: DetectionOutcome) -> np.ndarray:
    match outcome:
        case Tracked(pose=pose):
            return _sized(pose, NUM_POSE_SCALARS, "pose")
        case _:
            return np.zeros(NUM_POSE_SCALARS)


def _landmarks_2d_block(outcome: DetectionOutcome, layout: RecordLayout) -> np.ndarray:
    match outcome:
        case Tracked(landmarks_2d=landmarks):
            return _sized(landmarks, 2 * layout.num_points, "2D landmarks")
        case _:
            return np.zeros(2 * layout.num_points)


def _landmarks_3d_block(outcome: DetectionOutcome, layout: RecordLayout) -> np.ndarray:
    match outcome:
        case Tracked(landmarks_3d=landmarks):
            return _sized(landmarks, 3 * layout.num_points, "3D landmarks")
        case _:
            return np.zeros(3 * layout.num_points)


def _model_params_block(outcome: DetectionOutcome, layout: RecordLayout) -> np.ndarray:
    match outcome:
        case Tracked(params_global=rigid, params_local=local):
            return np.concatenate([
                _sized(rigid, NUM_RIGID_PARAMS, "rigid parameters"),
                _sized(local, layout.num_modes, "non-rigid parameters"),
            ])
        case _:
            return np.zeros(NUM_RIGID_PARAMS + layout.num_modes)


def _au_block(
    outcome: DetectionOutcome, names: tuple, scores: Dict[str, float]
) -> Dict[str, float]:
    match outcome:
        case Tracked():
            return {name: float(scores.get(name, 0.0)) for name in names}
        case _:
            return {name: 0.0 for name in names}


def build_record(
    ctx: FrameContext,
    outcome: DetectionOutcome,
    gaze: GazeEstimate,
    au_reg: Dict[str, float],
    au_class: Dict[str, float],
    layout: RecordLayout,
    blocks: OutputBlocks,
) -> FeatureRecord:
    """Compose the output record of one frame.

    Args:
        ctx: Frame index, timestamp, success flag and certainty.
        outcome: Tracked values, or Untracked for zero-filled blocks.
        gaze: Gaze estimate (forward-facing default when not estimated).
        au_reg: AU regression scores by name; missing names give 0.
        au_class: AU class scores by name; missing names give 0.
        layout: Block sizes and sorted AU names of the session.
        blocks: Which blocks to include.

    Returns:
        FeatureRecord with disabled blocks left as None.
    """
    record = FeatureRecord(
        frame=ctx.frame_index + 1,
        timestamp=ctx.timestamp,
        confidence=ctx.confidence,
        success=bool(ctx.success),
    )
    if blocks.gaze:
        record.gaze = _gaze_block(outcome, gaze, layout)
    if blocks.pose:
        record.pose = _pose_block(outcome)
    if blocks.landmarks_2d:
        record.landmarks_2d = _landmarks_2d_block(outcome, layout)
    if blocks.landmarks_3d:
        record.landmarks_3d = _landmarks_3d_block(outcome, layout)
    if blocks.model_params:
        record.model_params = _model_params_block(outcome, layout)
    if blocks.action_units:
        record.au_reg = _au_block(outcome, layout.au_names.regression, au_reg)
        record.au_class = _au_block(outcome, layout.au_names.classification, au_class)
    return record


__all__ = [
    "NUM_GAZE_SCALARS",
    "NUM_POSE_SCALARS",
    "NUM_RIGID_PARAMS",
    "RecordLayout",
    "outcome_from_state",
    "build_record",
]
