"""Frame sources: video files, cameras and image directories.

All sources share one iteration model: ``read()`` returns the next BGR or
grayscale 8-bit image, or None once the source is exhausted.

Example:
    >>> with open_source(spec) as source:
    ...     for image in source:
    ...         process(image, source.fps)
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Sequence

import cv2
import numpy as np

from facetrace.config import SessionSpec, list_image_files
from facetrace.types import DEFAULT_FPS, SourceKind

logger = logging.getLogger(__name__)


class SourceUnavailable(IOError):
    """Raised when a source cannot be opened or has nothing to read."""


def to_8bit(image: np.ndarray) -> np.ndarray:
    """Normalize an image to 8-bit BGR or 8-bit grayscale.

    16-bit images are scaled down by 256 and BGRA images lose their alpha
    channel. 8-bit BGR and grayscale images are returned unchanged.
    """
    if image.dtype == np.uint16:
        image = np.clip(np.round(image / 256.0), 0, 255).astype(np.uint8)
    elif image.dtype != np.uint8:
        image = cv2.convertScaleAbs(image)

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    elif image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    return image


class FrameSource(ABC):
    """Base class of all frame sources.

    Attributes:
        kind: Source kind.
        fps: Frame rate used for timestamps.
        total_frames: Frame count, or -1 when unknown.
    """

    kind: SourceKind
    fps: float = DEFAULT_FPS
    total_frames: int = -1

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the next frame, or None at end of source."""
        ...

    def close(self) -> None:
        """Release the underlying resource."""

    @property
    def name(self) -> str:
        return self.kind.value

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            image = self.read()
            if image is None:
                return
            yield image

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class _CaptureSource(FrameSource):
    """Shared cv2.VideoCapture handling for files and cameras."""

    def __init__(self, target):
        self._cap = cv2.VideoCapture(target)
        if not self._cap.isOpened():
            self._cap.release()
            raise SourceUnavailable(f"Failed to open video source: {target}")

    def read(self) -> Optional[np.ndarray]:
        ok, image = self._cap.read()
        if not ok or image is None or image.size == 0:
            return None
        return image

    def close(self) -> None:
        self._cap.release()


class VideoSource(_CaptureSource):
    """Decoded video file.

    The frame rate comes from the container; when it is missing,
    non-positive or NaN, DEFAULT_FPS is assumed.
    """

    kind = SourceKind.VIDEO

    def __init__(self, path: str):
        logger.info("Attempting to read from file: %s", path)
        super().__init__(path)
        self._path = path

        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if fps is None or math.isnan(fps) or fps <= 0:
            logger.info("FPS of the video file cannot be determined, assuming %g", DEFAULT_FPS)
            fps = DEFAULT_FPS
        self.fps = float(fps)

        count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.total_frames = count if count > 0 else -1
        logger.info("Device or file opened: %s (%.3g fps, %d frames)", path, self.fps, self.total_frames)

    @property
    def name(self) -> str:
        return self._path


class CameraSource(_CaptureSource):
    """Live camera. Length is unknown and DEFAULT_FPS is assumed."""

    kind = SourceKind.CAMERA

    def __init__(self, device: int = 0):
        super().__init__(device)
        self._device = device
        self.fps = DEFAULT_FPS
        self.total_frames = -1
        logger.info("Camera %d opened", device)

    @property
    def name(self) -> str:
        return f"camera:{self._device}"


class ImageSequenceSource(FrameSource):
    """Ordered image files read one by one, at an assumed DEFAULT_FPS.

    Args:
        files: Image paths in reading order.
        name: Label used in logs (usually the directory).

    Raises:
        SourceUnavailable: If ``files`` is empty.
    """

    kind = SourceKind.IMAGES

    def __init__(self, files: Sequence[str], name: str = "images"):
        if not files:
            raise SourceUnavailable(f"No .jpg or .png images in {name}")
        self._files: List[str] = list(files)
        self._name = name
        self._next = 0
        self.fps = DEFAULT_FPS
        self.total_frames = len(self._files)

    @classmethod
    def from_directory(cls, directory: str) -> "ImageSequenceSource":
        return cls(list_image_files(directory), name=directory)

    @property
    def name(self) -> str:
        return self._name

    @property
    def files(self) -> List[str]:
        return list(self._files)

    def read(self) -> Optional[np.ndarray]:
        while self._next < len(self._files):
            path = self._files[self._next]
            self._next += 1
            image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
            if image is None:
                logger.warning("Could not read image, skipping: %s", path)
                continue
            return to_8bit(image)
        return None


def open_source(spec: SessionSpec) -> FrameSource:
    """Open the frame source a session spec describes.

    Raises:
        SourceUnavailable: If the source cannot be opened or is empty.
    """
    if spec.kind is SourceKind.VIDEO:
        return VideoSource(spec.source)
    if spec.kind is SourceKind.CAMERA:
        return CameraSource(int(spec.source))
    return ImageSequenceSource.from_directory(spec.source)


__all__ = [
    "SourceUnavailable",
    "to_8bit",
    "FrameSource",
    "VideoSource",
    "CameraSource",
    "ImageSequenceSource",
    "open_source",
]
