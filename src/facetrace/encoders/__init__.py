"""Output encoders: the tabular report and the FHOG binary stream."""

from facetrace.encoders.tabular import TabularWriter, header_columns, format_row, read_report
from facetrace.encoders.hog import HOGWriter, HOGFrame, read_hog_frames, iter_hog_frames

__all__ = [
    "TabularWriter",
    "header_columns",
    "format_row",
    "read_report",
    "HOGWriter",
    "HOGFrame",
    "read_hog_frames",
    "iter_hog_frames",
]
