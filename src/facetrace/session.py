"""Session orchestration.

A session is one input source plus its output files. For each session the
``FeatureExtractor`` opens the source, resolves camera intrinsics from the
first frame, opens the outputs and then runs one detect / analyse / encode
cycle per frame until the source is exhausted::

    IDLE -> SESSION_OPEN -> PER_FRAME (loop) -> SESSION_CLOSING -> IDLE

Detection failures never stop a session: the frame is still written, with
zero-filled blocks in the report and a negative good-flag in the HOG
stream. Fatal conditions (unopenable source, empty image directory,
an output file that cannot be created, failed aligned-image write) raise
and abort the run after the session's open outputs are closed.

Example:
    >>> extractor = FeatureExtractor(config, DummyDetector(), DummyAnalyzer(),
    ...                              gaze_estimator=DummyGazeEstimator())
    >>> result = extractor.run()
    >>> print(f"{result.frame_count} frames in {len(result.sessions)} sessions")
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import cv2
import numpy as np

from facetrace.backends.base import FaceAnalyzer, GazeEstimator, LandmarkDetector
from facetrace.config import ExtractionConfig, SessionSpec, prepare_output_dirs
from facetrace.encoders.hog import HOGWriter
from facetrace.encoders.tabular import TabularWriter
from facetrace.record import RecordLayout, build_record, outcome_from_state
from facetrace.sources import FrameSource, open_source
from facetrace.types import (
    AnalyzerFrame,
    CameraIntrinsics,
    FrameContext,
    GazeEstimate,
    SourceKind,
)
from facetrace.viz import KEY_QUIT, KEY_RESET, TrackedVideoWriter, TrackingVisualizer

logger = logging.getLogger(__name__)

ALIGNED_NAME_FORMAT = "frame_det_{:06d}.bmp"


class AlignedImageWriteError(IOError):
    """Raised when a similarity-aligned face cannot be written."""


class ExitRequested(Exception):
    """Raised when the user asks to quit from the tracking window."""


class SessionState(Enum):
    IDLE = "idle"
    SESSION_OPEN = "session_open"
    PER_FRAME = "per_frame"
    SESSION_CLOSING = "session_closing"


@dataclass
class SessionResult:
    """Summary of one finished session.

    Attributes:
        spec: The session that ran.
        frame_count: Frames processed.
        detected_count: Frames on which detection succeeded.
        fps: Frame rate used for timestamps.
        intrinsics: Intrinsics resolved for the session.
    """

    spec: SessionSpec
    frame_count: int = 0
    detected_count: int = 0
    fps: float = 0.0
    intrinsics: Optional[CameraIntrinsics] = None


@dataclass
class RunResult:
    """Result of ``FeatureExtractor.run()``."""

    sessions: List[SessionResult] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return sum(s.frame_count for s in self.sessions)


class _SessionOutputs:
    """Output handles owned by one session."""

    def __init__(self):
        self.report: Optional[TabularWriter] = None
        self.hog: Optional[HOGWriter] = None
        self.tracked: Optional[TrackedVideoWriter] = None
        self.aligned_dir: Optional[str] = None

    def close(self) -> None:
        for handle in (self.report, self.hog, self.tracked):
            if handle is not None:
                handle.close()


class FeatureExtractor:
    """Run extraction sessions over every configured input.

    The capabilities are owned by the extractor and reset between
    sessions, so one instance processes any number of inputs in sequence.

    Args:
        config: Parsed run configuration.
        detector: Landmark detection capability.
        analyzer: Alignment / descriptor / AU capability.
        gaze_estimator: Gaze capability; gaze stays at its default when None.
        visualizer: Overlay and window handling; built from ``config.quiet``
            when omitted.
    """

    def __init__(
        self,
        config: ExtractionConfig,
        detector: LandmarkDetector,
        analyzer: FaceAnalyzer,
        gaze_estimator: Optional[GazeEstimator] = None,
        visualizer: Optional[TrackingVisualizer] = None,
    ):
        config.validate()
        self._config = config
        self._detector = detector
        self._analyzer = analyzer
        self._gaze = gaze_estimator
        self._viz = visualizer or TrackingVisualizer(quiet=config.quiet)
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    def run(self) -> RunResult:
        """Process every session of the configuration in order.

        Raises:
            SourceUnavailable: A source cannot be opened or is empty.
            AlignedImageWriteError: An aligned face could not be written.
            OSError: A report or descriptor file could not be created.
            ExitRequested: The user pressed the quit key.
        """
        prepare_output_dirs(self._config)
        result = RunResult()
        try:
            for spec in self._config.sessions():
                result.sessions.append(self.run_session(spec))
        finally:
            self._viz.close()
        return result

    def run_session(
        self, spec: SessionSpec, source: Optional[FrameSource] = None
    ) -> SessionResult:
        """Run one session; ``source`` overrides opening ``spec.source``."""
        if source is None:
            source = open_source(spec)

        try:
            with source:
                self._state = SessionState.SESSION_OPEN
                result = SessionResult(spec=spec, fps=source.fps)
                layout = RecordLayout.from_capabilities(self._detector, self._analyzer)
                outputs = _SessionOutputs()
                try:
                    image = source.read()
                    if image is None:
                        logger.warning("Source %s produced no frames", spec.name)
                        if spec.report:
                            outputs.report = TabularWriter(
                                spec.report, layout, self._config.blocks,
                            )
                    else:
                        self._track(source, image, spec, layout, outputs, result)
                finally:
                    outputs.close()

            self._finish_session(spec, report_written=outputs.report is not None)
        finally:
            self._state = SessionState.IDLE

        logger.info(
            "Finished %s: %d frames, %d detected",
            spec.name, result.frame_count, result.detected_count,
        )
        return result

    def _track(
        self,
        source: FrameSource,
        image: np.ndarray,
        spec: SessionSpec,
        layout: RecordLayout,
        outputs: _SessionOutputs,
        result: SessionResult,
    ) -> None:
        h, w = image.shape[:2]
        intrinsics = self._config.intrinsics.resolve(w, h)
        result.intrinsics = intrinsics
        logger.debug(
            "Intrinsics for %s: fx=%.1f fy=%.1f cx=%.1f cy=%.1f",
            spec.name, intrinsics.fx, intrinsics.fy, intrinsics.cx, intrinsics.cy,
        )

        self._open_outputs(outputs, spec, layout, source.fps, w, h)
        video_mode = (
            source.kind is not SourceKind.IMAGES or self._config.images_as_video
        )

        logger.info("Starting tracking: %s", spec.name)
        self._state = SessionState.PER_FRAME
        reported = 0
        while image is not None:
            success = self._process_frame(
                image, result.frame_count, source.fps,
                intrinsics, layout, outputs, video_mode,
            )
            if success:
                result.detected_count += 1

            image = source.read()
            self._handle_key()

            result.frame_count += 1
            reported = self._report_progress(
                result.frame_count, source.total_frames, reported,
            )

    def _open_outputs(
        self,
        outputs: _SessionOutputs,
        spec: SessionSpec,
        layout: RecordLayout,
        fps: float,
        width: int,
        height: int,
    ) -> None:
        """Open the session's output handles into ``outputs``.

        Handles opened before a failing one stay in ``outputs`` so the
        caller can close them.
        """
        if spec.report:
            outputs.report = TabularWriter(spec.report, layout, self._config.blocks)
        if spec.hog_file:
            outputs.hog = HOGWriter(spec.hog_file)
        if spec.aligned_dir:
            outputs.aligned_dir = spec.aligned_dir
        if spec.tracked_video:
            try:
                outputs.tracked = TrackedVideoWriter(
                    spec.tracked_video, fps, width, height,
                    codec=self._config.output_codec,
                )
            except IOError as e:
                logger.warning(
                    "%s. Tracked video will not be written; try another codec.", e,
                )

    def _process_frame(
        self,
        image: np.ndarray,
        frame_index: int,
        fps: float,
        intrinsics: CameraIntrinsics,
        layout: RecordLayout,
        outputs: _SessionOutputs,
        video_mode: bool,
    ) -> bool:
        blocks = self._config.blocks
        timestamp = frame_index / fps

        if video_mode:
            state = self._detector.detect_video(image)
        else:
            state = self._detector.detect_image(image)

        pose = self._detector.pose(state, intrinsics)

        gaze = GazeEstimate.forward()
        if self._gaze is not None and state.success and self._detector.has_eye_model:
            direction_0 = self._gaze.estimate(state, intrinsics, left=True)
            direction_1 = self._gaze.estimate(state, intrinsics, left=False)
            gaze = GazeEstimate(
                direction_0=direction_0,
                direction_1=direction_1,
                angle=self._gaze.angle(direction_0, direction_1, pose),
            )

        analyzed = AnalyzerFrame()
        if outputs.aligned_dir or outputs.hog is not None or blocks.action_units:
            analyzed = self._analyzer.advance(
                image, state.landmarks_2d, state.success, timestamp,
            )
            self._viz.show_aligned(analyzed.aligned)
            if outputs.hog is not None and self._config.verbose:
                self._viz.show_hog(analyzed.hog)

        if outputs.hog is not None:
            outputs.hog.write(analyzed.hog, state.success)

        if outputs.aligned_dir:
            self._write_aligned(outputs.aligned_dir, frame_index, analyzed.aligned)

        if outputs.tracked is not None or not self._config.quiet:
            display = self._viz.draw(image, state, gaze, frame_index)
            self._viz.show(display)
            if outputs.tracked is not None:
                outputs.tracked.write(display)

        if outputs.report is not None:
            au_reg, au_class = (
                self._analyzer.current_aus() if blocks.action_units else ({}, {})
            )
            landmarks_3d = None
            if blocks.landmarks_3d and state.tracking_initialised:
                landmarks_3d = self._detector.shape_3d(state, intrinsics)
            outcome = outcome_from_state(
                state, pose, landmarks_3d, layout.num_points,
            )
            ctx = FrameContext(
                frame_index=frame_index,
                timestamp=timestamp,
                image=image,
                success=state.success,
                certainty=state.certainty,
            )
            outputs.report.write(
                build_record(ctx, outcome, gaze, au_reg, au_class, layout, blocks)
            )

        return state.success

    def _write_aligned(
        self, directory: str, frame_index: int, aligned: Optional[np.ndarray]
    ) -> None:
        path = os.path.join(directory, ALIGNED_NAME_FORMAT.format(frame_index + 1))
        if aligned is None or aligned.size == 0:
            raise AlignedImageWriteError(f"No aligned face available for {path}")
        try:
            written = cv2.imwrite(path, aligned)
        except cv2.error as e:
            raise AlignedImageWriteError(f"Could not write aligned image {path}: {e}")
        if not written:
            raise AlignedImageWriteError(f"Could not write aligned image {path}")

    def _handle_key(self) -> None:
        key = self._viz.poll_key()
        if key == KEY_RESET:
            logger.info("Resetting tracker")
            self._detector.reset()
            self._viz.reset_timing()
        elif key == KEY_QUIT:
            raise ExitRequested()

    def _report_progress(self, frame_count: int, total_frames: int, reported: int) -> int:
        if total_frames <= 0:
            return reported
        while reported <= 10 and frame_count / total_frames >= reported / 10.0:
            logger.info("Progress: %d%%", reported * 10)
            reported += 1
        return reported

    def _finish_session(self, spec: SessionSpec, report_written: bool) -> None:
        self._state = SessionState.SESSION_CLOSING
        if report_written and self._config.blocks.action_units:
            logger.info("Postprocessing the Action Unit predictions")
            self._analyzer.post_process(spec.report)
        self._analyzer.reset()
        self._detector.reset()
        self._state = SessionState.IDLE


__all__ = [
    "ALIGNED_NAME_FORMAT",
    "AlignedImageWriteError",
    "ExitRequested",
    "SessionState",
    "SessionResult",
    "RunResult",
    "FeatureExtractor",
]
