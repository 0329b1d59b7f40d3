"""Binary FHOG descriptor stream.

Each frame is a 16-byte header followed by an optional payload, all
little-endian 4-byte fields::

    int32   num_cols
    int32   num_rows
    int32   num_channels   (always 31)
    float32 good_frame     (1.0 tracked, -1.0 otherwise)
    float32 payload[num_cols][num_rows][31]

The payload is laid out column-major over cells: outer loop over columns,
then rows, then the 31 channels. A frame without a computed descriptor is
written as a header declaring 0 columns and 0 rows, so readers can always
skip ``num_cols * num_rows * num_channels`` floats to reach the next frame.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

import numpy as np

from facetrace.types import NUM_HOG_CHANNELS, HOGDescriptorFrame

logger = logging.getLogger(__name__)

HEADER_BYTES = 16
_INT = np.dtype("<i4")
_FLOAT = np.dtype("<f4")


def encode_hog_frame(descriptor: Optional[HOGDescriptorFrame], good: bool) -> bytes:
    """Encode one frame of the stream.

    Args:
        descriptor: Descriptor to store, or None for a header-only frame.
        good: Whether the frame was successfully tracked.
    """
    if descriptor is None:
        num_rows = num_cols = 0
        payload = b""
    else:
        num_rows, num_cols = descriptor.num_rows, descriptor.num_cols
        # (rows, cols, ch) -> (cols, rows, ch) so columns form the outer loop
        payload = np.ascontiguousarray(
            descriptor.data.transpose(1, 0, 2), dtype=_FLOAT
        ).tobytes()

    header = np.array([num_cols, num_rows, NUM_HOG_CHANNELS], dtype=_INT).tobytes()
    flag = np.array([1.0 if good else -1.0], dtype=_FLOAT).tobytes()
    return header + flag + payload


class HOGWriter:
    """Append descriptor frames to a binary stream file."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._file: BinaryIO = open(self._path, "wb")
        self._frames = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def frames_written(self) -> int:
        return self._frames

    def write(self, descriptor: Optional[HOGDescriptorFrame], good: bool) -> None:
        self._file.write(encode_hog_frame(descriptor, good))
        self._frames += 1

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.debug("HOG stream %s: %d frames", self._path, self._frames)

    def __enter__(self) -> "HOGWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


@dataclass
class HOGFrame:
    """One decoded frame of the stream.

    Attributes:
        num_cols: Declared columns.
        num_rows: Declared rows.
        num_channels: Declared channels.
        good: Good-frame flag.
        data: (rows, cols, channels) array, or None for header-only frames.
    """

    num_cols: int
    num_rows: int
    num_channels: int
    good: bool
    data: Optional[np.ndarray] = None


def iter_hog_frames(stream: BinaryIO) -> Iterator[HOGFrame]:
    """Decode frames from an open binary stream until EOF.

    Raises:
        ValueError: On a truncated header or payload.
    """
    while True:
        header = stream.read(HEADER_BYTES)
        if not header:
            return
        if len(header) < HEADER_BYTES:
            raise ValueError(f"Truncated HOG header ({len(header)} bytes)")

        num_cols, num_rows, num_channels = (
            int(v) for v in np.frombuffer(header[:12], dtype=_INT)
        )
        good = float(np.frombuffer(header[12:], dtype=_FLOAT)[0]) > 0

        count = num_cols * num_rows * num_channels
        data = None
        if count > 0:
            payload = stream.read(count * _FLOAT.itemsize)
            if len(payload) < count * _FLOAT.itemsize:
                raise ValueError(
                    f"Truncated HOG payload: expected {count} floats"
                )
            data = (
                np.frombuffer(payload, dtype=_FLOAT)
                .reshape(num_cols, num_rows, num_channels)
                .transpose(1, 0, 2)
            )
        yield HOGFrame(num_cols, num_rows, num_channels, good, data)


def read_hog_frames(path: Union[str, Path]) -> List[HOGFrame]:
    """Read every frame of a descriptor file."""
    with open(path, "rb") as f:
        return list(iter_hog_frames(f))


__all__ = [
    "HEADER_BYTES",
    "encode_hog_frame",
    "HOGWriter",
    "HOGFrame",
    "iter_hog_frames",
    "read_hog_frames",
]
