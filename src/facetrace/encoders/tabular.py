"""Tabular feature report.

One header line per session followed by one row per frame. Columns are
separated by ``", "``. Numbers are written in general format with a fixed
number of significant digits per block:

======================  ==========
column(s)               digits
======================  ==========
frame                   integer
timestamp               9
confidence, success     2
gaze block              5
everything else         4
======================  ==========

Example:
    >>> with TabularWriter("out.csv", layout, OutputBlocks()) as writer:
    ...     writer.write(record)
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

from facetrace.config import OutputBlocks
from facetrace.record import RecordLayout
from facetrace.types import FeatureRecord

logger = logging.getLogger(__name__)

SEPARATOR = ", "

TIMESTAMP_DIGITS = 9
CONFIDENCE_DIGITS = 2
GAZE_DIGITS = 5
FEATURE_DIGITS = 4

LEADING_COLUMNS = ["frame", "timestamp", "confidence", "success"]
GAZE_COLUMNS = [
    "gaze_0_x", "gaze_0_y", "gaze_0_z",
    "gaze_1_x", "gaze_1_y", "gaze_1_z",
    "gaze_angle_x", "gaze_angle_y",
]
POSE_COLUMNS = ["pose_Tx", "pose_Ty", "pose_Tz", "pose_Rx", "pose_Ry", "pose_Rz"]
RIGID_COLUMNS = ["p_scale", "p_rx", "p_ry", "p_rz", "p_tx", "p_ty"]


def format_number(value: float, digits: int) -> str:
    """Format like an iostream with ``setprecision(digits)``.

    >>> format_number(0.04, 9)
    '0.04'
    >>> format_number(123.456789, 4)
    '123.5'
    """
    return "%.*g" % (digits, float(value))


def header_columns(layout: RecordLayout, blocks: OutputBlocks) -> List[str]:
    """Column names for the given layout and enabled blocks."""
    columns = list(LEADING_COLUMNS)

    if blocks.gaze:
        columns += GAZE_COLUMNS
        columns += [f"eye_lmk_x_{i}" for i in range(layout.num_eye_landmarks)]
        columns += [f"eye_lmk_y_{i}" for i in range(layout.num_eye_landmarks)]

    if blocks.pose:
        columns += POSE_COLUMNS

    if blocks.landmarks_2d:
        for axis in ("x", "y"):
            columns += [f"{axis}_{i}" for i in range(layout.num_points)]

    if blocks.landmarks_3d:
        for axis in ("X", "Y", "Z"):
            columns += [f"{axis}_{i}" for i in range(layout.num_points)]

    if blocks.model_params:
        columns += RIGID_COLUMNS
        columns += [f"p_{i}" for i in range(layout.num_modes)]

    if blocks.action_units:
        columns += [f"{name}_r" for name in layout.au_names.regression]
        columns += [f"{name}_c" for name in layout.au_names.classification]

    return columns


def format_row(record: FeatureRecord) -> str:
    """Serialize one record into a report line (without newline)."""
    fields = [
        str(record.frame),
        format_number(record.timestamp, TIMESTAMP_DIGITS),
        format_number(record.confidence, CONFIDENCE_DIGITS),
        "1" if record.success else "0",
    ]

    if record.gaze is not None:
        fields += [format_number(v, GAZE_DIGITS) for v in record.gaze]

    for block in (
        record.pose,
        record.landmarks_2d,
        record.landmarks_3d,
        record.model_params,
    ):
        if block is not None:
            fields += [format_number(v, FEATURE_DIGITS) for v in block]

    for scores in (record.au_reg, record.au_class):
        if scores is not None:
            fields += [format_number(v, FEATURE_DIGITS) for v in scores.values()]

    return SEPARATOR.join(fields)


class TabularWriter:
    """Write a session's feature report.

    The header is written on construction.

    Args:
        path: Output CSV path.
        layout: Block sizes and AU names of the session.
        blocks: Enabled blocks.
    """

    def __init__(
        self,
        path: Union[str, Path],
        layout: RecordLayout,
        blocks: OutputBlocks,
    ):
        self._path = Path(path)
        self._columns = header_columns(layout, blocks)
        self._rows = 0
        self._file = open(self._path, "w", encoding="utf-8", newline="\n")
        self._file.write(SEPARATOR.join(self._columns) + "\n")
        logger.debug("Report %s: %d columns", self._path, len(self._columns))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    @property
    def rows_written(self) -> int:
        return self._rows

    def write(self, record: FeatureRecord) -> None:
        self._file.write(format_row(record) + "\n")
        self._rows += 1

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> "TabularWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def read_report(path: Union[str, Path]) -> Tuple[List[str], List[List[float]]]:
    """Read a report back as (column names, numeric rows)."""
    with open(path, "r", encoding="utf-8") as f:
        lines = [line.rstrip("\n") for line in f if line.strip()]
    if not lines:
        return [], []
    header = lines[0].split(SEPARATOR)
    rows = [[float(v) for v in line.split(SEPARATOR)] for line in lines[1:]]
    return header, rows


__all__ = [
    "SEPARATOR",
    "LEADING_COLUMNS",
    "format_number",
    "header_columns",
    "format_row",
    "TabularWriter",
    "read_report",
]
