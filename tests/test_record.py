"""Tests for feature record assembly."""

import numpy as np
import pytest

from facetrace.backends.base import DetectorState
from facetrace.config import OutputBlocks
from facetrace.record import (
    NUM_GAZE_SCALARS,
    RecordLayout,
    build_record,
    outcome_from_state,
)
from facetrace.types import FrameContext, GazeEstimate, Tracked, Untracked


def _tracked(layout):
    n, m = layout.num_points, layout.num_eye_landmarks
    return Tracked(
        landmarks_2d=np.arange(2 * n, dtype=float) + 1,
        landmarks_3d=np.arange(3 * n, dtype=float) + 100,
        eye_landmarks=np.stack([np.arange(m) + 10.0, np.arange(m) + 20.0], axis=1),
        pose=np.array([1.0, 2.0, 3.0, 0.1, 0.2, 0.3]),
        params_global=np.array([1.5, 0.0, 0.0, 0.0, 5.0, 6.0]),
        params_local=np.ones(layout.num_modes),
    )


def _ctx(index=0, success=True, certainty=-0.8):
    return FrameContext(
        frame_index=index, timestamp=index / 25.0,
        image=np.zeros((4, 4, 3), dtype=np.uint8),
        success=success, certainty=certainty,
    )


class TestRecordLayout:
    def test_from_capabilities(self, detector, analyzer):
        layout = RecordLayout.from_capabilities(detector, analyzer)
        assert layout.num_points == 5
        assert layout.num_eye_landmarks == 4
        assert layout.num_modes == 3
        assert layout.au_names.regression == ("AU01", "AU12")
        assert layout.au_names.classification == ("AU04",)


class TestOutcomeFromState:
    def test_untracked(self):
        state = DetectorState(success=False, tracking_initialised=False)
        assert isinstance(outcome_from_state(state, np.zeros(6), None, 5), Untracked)

    def test_tracked_without_3d_gets_zeros(self):
        state = DetectorState(
            success=False, tracking_initialised=True,
            landmarks_2d=np.ones(10), eye_landmarks=np.ones((4, 2)),
            params_local=np.ones(3),
        )
        outcome = outcome_from_state(state, np.ones(6), None, 5)
        assert isinstance(outcome, Tracked)
        np.testing.assert_array_equal(outcome.landmarks_3d, np.zeros(15))


class TestBuildRecord:
    def test_leading_fields(self, layout):
        record = build_record(
            _ctx(index=4), _tracked(layout), GazeEstimate(), {}, {}, layout, OutputBlocks(),
        )
        assert record.frame == 5
        assert record.timestamp == pytest.approx(0.16)
        assert record.confidence == pytest.approx(0.9)
        assert record.success is True

    def test_tracked_block_contents(self, layout):
        gaze = GazeEstimate(
            direction_0=np.array([0.1, 0.2, -0.9]),
            direction_1=np.array([-0.1, 0.2, -0.9]),
            angle=np.array([0.05, -0.05]),
        )
        record = build_record(
            _ctx(), _tracked(layout), gaze,
            {"AU12": 2.5, "AU01": 0.5}, {"AU04": 1.0}, layout, OutputBlocks(),
        )

        assert record.gaze.size == NUM_GAZE_SCALARS + 2 * 4
        np.testing.assert_allclose(record.gaze[:3], [0.1, 0.2, -0.9])
        np.testing.assert_allclose(record.gaze[6:8], [0.05, -0.05])
        # eye xs first, then eye ys
        np.testing.assert_array_equal(record.gaze[8:12], [10, 11, 12, 13])
        np.testing.assert_array_equal(record.gaze[12:16], [20, 21, 22, 23])
        assert record.pose.size == 6
        assert record.landmarks_2d.size == 10
        assert record.landmarks_3d.size == 15
        assert record.model_params.size == 6 + 3
        assert record.model_params[0] == 1.5
        assert list(record.au_reg.items()) == [("AU01", 0.5), ("AU12", 2.5)]
        assert record.au_class == {"AU04": 1.0}

    def test_untracked_zero_filled(self, layout):
        record = build_record(
            _ctx(success=False, certainty=0.6), Untracked(), GazeEstimate(),
            {"AU01": 3.0}, {"AU04": 1.0}, layout, OutputBlocks(),
        )
        assert record.success is False
        assert record.confidence == pytest.approx(0.2)
        assert len(record.values()) == 16 + 6 + 10 + 15 + 9 + 3
        assert all(v == 0.0 for v in record.values())

    def test_missing_au_scores_are_zero(self, layout):
        record = build_record(
            _ctx(), _tracked(layout), GazeEstimate(),
            {"AU12": 1.25}, {}, layout, OutputBlocks(),
        )
        assert record.au_reg == {"AU01": 0.0, "AU12": 1.25}
        assert record.au_class == {"AU04": 0.0}

    def test_disabled_blocks_are_none(self, layout):
        blocks = OutputBlocks(gaze=False, landmarks_3d=False, action_units=False)
        record = build_record(
            _ctx(), _tracked(layout), GazeEstimate(), {}, {}, layout, blocks,
        )
        assert record.gaze is None
        assert record.landmarks_3d is None
        assert record.au_reg is None and record.au_class is None
        assert record.pose is not None
        assert record.landmarks_2d is not None
        assert record.model_params is not None

    @pytest.mark.parametrize("blocks", list(OutputBlocks.all_combinations()))
    def test_tracked_and_untracked_same_length(self, layout, blocks):
        tracked = build_record(
            _ctx(), _tracked(layout), GazeEstimate(), {}, {}, layout, blocks,
        )
        untracked = build_record(
            _ctx(success=False), Untracked(), GazeEstimate(), {}, {}, layout, blocks,
        )
        assert len(tracked.values()) == len(untracked.values())

    def test_wrong_landmark_count_raises(self, layout):
        outcome = _tracked(layout)
        outcome.landmarks_2d = np.zeros(7)
        with pytest.raises(ValueError, match="2D landmarks"):
            build_record(_ctx(), outcome, GazeEstimate(), {}, {}, layout, OutputBlocks())
