"""Tracking visualisation: overlay drawing, live windows and video output."""

import logging
import math
import time
from typing import Optional

import cv2
import numpy as np

from facetrace.backends.base import DetectorState
from facetrace.types import GazeEstimate, HOGDescriptorFrame

logger = logging.getLogger(__name__)

# Overlays are drawn only for certainty below this value.
VISUALISATION_BOUNDARY = 0.2

# The FPS counter is refreshed every this many frames.
FPS_WINDOW = 10

KEY_RESET = "r"
KEY_QUIT = "q"


class TrackingVisualizer:
    """Draw tracking results and optionally show them in windows.

    Args:
        quiet: Headless mode: nothing is shown and no keys are polled.
        title: Main window title.
        wait_ms: cv2.waitKey delay in milliseconds.
    """

    def __init__(self, quiet: bool = False, title: str = "tracking_result", wait_ms: int = 1):
        self._quiet = quiet
        self._title = title
        self._wait_ms = wait_ms
        self._fps = -1.0
        self._t0 = time.perf_counter()

    @property
    def fps(self) -> float:
        return self._fps

    def reset_timing(self) -> None:
        self._fps = -1.0
        self._t0 = time.perf_counter()

    def draw(
        self,
        image: np.ndarray,
        state: DetectorState,
        gaze: Optional[GazeEstimate],
        frame_index: int,
    ) -> np.ndarray:
        """Return a BGR copy of ``image`` with the tracking overlay.

        Landmarks, the face box and gaze lines are drawn only when the
        certainty is below VISUALISATION_BOUNDARY. The box colour moves
        from blue (certain) to red (uncertain).
        """
        display = image.copy()
        if display.ndim == 2:
            display = cv2.cvtColor(display, cv2.COLOR_GRAY2BGR)

        if state.certainty < VISUALISATION_BOUNDARY and state.landmarks_2d.size:
            self._draw_face(display, state)
            if gaze is not None and state.success and state.eye_landmarks.size:
                self._draw_gaze(display, state, gaze)

        if frame_index % FPS_WINDOW == 0:
            t1 = time.perf_counter()
            elapsed = t1 - self._t0
            if elapsed > 0:
                self._fps = FPS_WINDOW / elapsed
            self._t0 = t1

        cv2.putText(
            display, f"FPS:{int(self._fps)}", (10, 20),
            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 255), 1, cv2.LINE_AA,
        )
        return display

    def _draw_face(self, display: np.ndarray, state: DetectorState) -> None:
        n = state.landmarks_2d.size // 2
        xs, ys = state.landmarks_2d[:n], state.landmarks_2d[n:]
        for x, y in zip(xs, ys):
            cv2.circle(display, (int(round(x)), int(round(y))), 1, (0, 255, 0), -1)

        certainty = min(1.0, max(-1.0, state.certainty))
        weight = (certainty + 1.0) / (VISUALISATION_BOUNDARY + 1.0)
        color = ((1.0 - weight) * 255.0, 0.0, weight * 255.0)
        thickness = int(math.ceil(2.0 * display.shape[1] / 640.0))
        top_left = (int(xs.min()), int(ys.min()))
        bottom_right = (int(xs.max()), int(ys.max()))
        cv2.rectangle(display, top_left, bottom_right, color, thickness)

    def _draw_gaze(
        self, display: np.ndarray, state: DetectorState, gaze: GazeEstimate
    ) -> None:
        eyes = state.eye_landmarks.reshape(-1, 2)
        half = len(eyes) // 2
        length = display.shape[1] / 8.0
        for points, direction in (
            (eyes[:half], gaze.direction_0),
            (eyes[half:], gaze.direction_1),
        ):
            if len(points) == 0:
                continue
            start = points.mean(axis=0)
            end = start + length * np.asarray(direction[:2])
            cv2.line(
                display,
                (int(start[0]), int(start[1])),
                (int(end[0]), int(end[1])),
                (110, 220, 0), 2, cv2.LINE_AA,
            )

    def show(self, display: np.ndarray) -> None:
        if not self._quiet:
            cv2.imshow(self._title, display)

    def show_aligned(self, aligned: Optional[np.ndarray]) -> None:
        if not self._quiet and aligned is not None and aligned.size:
            cv2.imshow("sim_warp", aligned)

    def show_hog(self, hog: Optional[HOGDescriptorFrame]) -> None:
        if not self._quiet and hog is not None:
            cv2.imshow("hog", render_hog(hog))

    def poll_key(self) -> Optional[str]:
        """Return "r", "q" or None. Always None in quiet mode."""
        if self._quiet:
            return None
        key = cv2.waitKey(self._wait_ms) & 0xFF
        if key == ord(KEY_RESET):
            return KEY_RESET
        if key == ord(KEY_QUIT):
            return KEY_QUIT
        return None

    def close(self) -> None:
        if not self._quiet:
            cv2.destroyAllWindows()


def render_hog(hog: HOGDescriptorFrame, cell_px: int = 8) -> np.ndarray:
    """Render the per-cell descriptor energy as a grayscale image."""
    energy = np.abs(hog.data).sum(axis=2)
    peak = float(energy.max())
    if peak > 0:
        energy = energy / peak
    image = (energy * 255.0).astype(np.uint8)
    return cv2.resize(
        image, (hog.num_cols * cell_px, hog.num_rows * cell_px),
        interpolation=cv2.INTER_NEAREST,
    )


class TrackedVideoWriter:
    """Write overlay frames to a video file.

    Args:
        path: Output file path.
        fps: Output video FPS.
        width: Frame width.
        height: Frame height.
        codec: FourCC codec string.

    Raises:
        IOError: If the writer cannot be opened.
    """

    def __init__(self, path: str, fps: float, width: int, height: int, codec: str = "DIVX"):
        self._path = path
        fourcc = cv2.VideoWriter_fourcc(*codec)
        self._writer = cv2.VideoWriter(path, fourcc, fps, (width, height), True)
        if not self._writer.isOpened():
            raise IOError(f"Failed to open video writer: {path} (codec {codec})")

    def write(self, display: np.ndarray) -> None:
        if display.ndim == 2:
            display = cv2.cvtColor(display, cv2.COLOR_GRAY2BGR)
        self._writer.write(display)

    def close(self) -> None:
        self._writer.release()


__all__ = [
    "VISUALISATION_BOUNDARY",
    "KEY_RESET",
    "KEY_QUIT",
    "TrackingVisualizer",
    "TrackedVideoWriter",
    "render_hog",
]
