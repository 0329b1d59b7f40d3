"""Shared test helpers for facetrace tests."""

from pathlib import Path
from typing import List, Optional, Sequence

import cv2
import numpy as np

from facetrace.sources import FrameSource
from facetrace.types import SourceKind


def make_image(width: int = 320, height: int = 240, value: int = 0) -> np.ndarray:
    """Create a BGR test image with a frame label drawn on it."""
    image = np.full((height, width, 3), value % 256, dtype=np.uint8)
    cv2.putText(
        image, f"F{value}", (10, 30),
        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2,
    )
    return image


def create_test_video(
    path: Path, num_frames: int = 10, fps: float = 25, width: int = 320, height: int = 240
) -> None:
    """Write an MJPG video with ``num_frames`` distinct frames."""
    fourcc = cv2.VideoWriter_fourcc(*"MJPG")
    writer = cv2.VideoWriter(str(path), fourcc, fps, (width, height))
    for i in range(num_frames):
        writer.write(make_image(width, height, value=i * 10))
    writer.release()


def create_image_dir(path: Path, names: Sequence[str], width: int = 320, height: int = 240) -> Path:
    """Write one image per file name into ``path``."""
    path.mkdir(parents=True, exist_ok=True)
    for i, name in enumerate(names):
        cv2.imwrite(str(path / name), make_image(width, height, value=i * 10))
    return path


class ListSource(FrameSource):
    """In-memory frame source."""

    def __init__(
        self,
        images: List[np.ndarray],
        fps: float = 30.0,
        kind: SourceKind = SourceKind.VIDEO,
        total_frames: Optional[int] = None,
    ):
        self.kind = kind
        self.fps = fps
        self._images = list(images)
        self.total_frames = len(self._images) if total_frames is None else total_frames
        self.closed = False

    def read(self):
        if not self._images:
            return None
        return self._images.pop(0)

    def close(self) -> None:
        self.closed = True


class ScriptedVisualizer:
    """Visualizer stand-in that replays scripted key presses.

    Args:
        keys: Mapping of poll index (0-based) to key ("r" or "q").
    """

    def __init__(self, keys=None):
        self._keys = dict(keys or {})
        self._polls = 0
        self.drawn = 0
        self.timing_resets = 0
        self.closed = False

    def draw(self, image, state, gaze, frame_index):
        self.drawn += 1
        return image.copy()

    def show(self, display):
        pass

    def show_aligned(self, aligned):
        pass

    def show_hog(self, hog):
        pass

    def poll_key(self):
        key = self._keys.get(self._polls)
        self._polls += 1
        return key

    def reset_timing(self):
        self.timing_resets += 1

    def close(self):
        self.closed = True
