"""Configuration for a facetrace run.

``ExtractionConfig`` is the parsed form of all command-line and file
options. It is built once (by the CLI, ``from_dict`` or ``from_yaml``) and
resolved into one ``SessionSpec`` per input source.

Example:
    >>> config = ExtractionConfig(
    ...     videos=["a.mp4", "b.mp4"],
    ...     reports=["a.csv", "b.csv"],
    ...     hog_files=["a.hog"],
    ...     blocks=OutputBlocks(gaze=False),
    ... )
    >>> [s.hog_file for s in config.sessions()]
    ['a.hog', None]
"""

import itertools
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from facetrace.types import CameraIntrinsics, SourceKind

logger = logging.getLogger(__name__)

DEFAULT_CODEC = "DIVX"
IMAGE_EXTENSIONS = (".jpg", ".png")


@dataclass(frozen=True)
class OutputBlocks:
    """Which blocks of the feature record are written to the report."""

    landmarks_2d: bool = True
    landmarks_3d: bool = True
    model_params: bool = True
    pose: bool = True
    action_units: bool = True
    gaze: bool = True

    @classmethod
    def all_combinations(cls) -> Iterator["OutputBlocks"]:
        """Yield every on/off combination of the six blocks (64 in total)."""
        names = [f.name for f in fields(cls)]
        for values in itertools.product((True, False), repeat=len(names)):
            yield cls(**dict(zip(names, values)))


@dataclass(frozen=True)
class SessionSpec:
    """One input source and the destinations its outputs go to.

    Attributes:
        index: Position in the resolved input list.
        kind: Video file, camera, or image directory.
        source: Video path, camera index, or image directory.
        report: Tabular report path or None.
        aligned_dir: Directory for similarity-aligned faces or None.
        hog_file: Binary descriptor stream path or None.
        tracked_video: Overlay video path or None.
    """

    index: int
    kind: SourceKind
    source: Any
    report: Optional[str] = None
    aligned_dir: Optional[str] = None
    hog_file: Optional[str] = None
    tracked_video: Optional[str] = None

    @property
    def name(self) -> str:
        if self.kind is SourceKind.CAMERA:
            return f"camera:{self.source}"
        return str(self.source)


@dataclass
class ExtractionConfig:
    """Complete configuration of an extraction run.

    Attributes:
        videos: Video files, one session each.
        camera_index: Camera device used when no videos or image
            directories are given.
        image_dirs: Image directories, one session each.
        images_as_video: Track image sequences with the video-mode
            detector instead of detecting on each image independently.
        intrinsics: Camera intrinsics; unset values are derived per session.
        output_codec: FourCC of the tracked video writer.
        output_root: Prefix joined onto every output path.
        reports: Tabular report per session.
        aligned_dirs: Aligned-face directory per session.
        hog_files: Binary descriptor file per session.
        tracked_videos: Tracked overlay video per session.
        blocks: Report block toggles.
        quiet: Headless mode: no windows, no key handling.
        verbose: Show descriptor visualisation while tracking.
    """

    videos: List[str] = field(default_factory=list)
    camera_index: Optional[int] = None
    image_dirs: List[str] = field(default_factory=list)
    images_as_video: bool = False
    intrinsics: CameraIntrinsics = field(default_factory=CameraIntrinsics)
    output_codec: str = DEFAULT_CODEC
    output_root: str = ""
    reports: List[str] = field(default_factory=list)
    aligned_dirs: List[str] = field(default_factory=list)
    hog_files: List[str] = field(default_factory=list)
    tracked_videos: List[str] = field(default_factory=list)
    blocks: OutputBlocks = field(default_factory=OutputBlocks)
    quiet: bool = False
    verbose: bool = False

    def validate(self) -> None:
        """Raise ValueError for settings that cannot be used."""
        if len(self.output_codec) != 4:
            raise ValueError(
                f"Output codec must be 4 characters, got '{self.output_codec}'"
            )

    def _out(self, paths: List[str], index: int) -> Optional[str]:
        if index >= len(paths):
            return None
        if self.output_root:
            return os.path.join(self.output_root, paths[index])
        return paths[index]

    def sessions(self) -> List[SessionSpec]:
        """Resolve inputs into per-session specs.

        Videos take precedence over image directories; with neither, a
        single camera session is created. Output lists are matched to
        sessions by index.
        """
        if self.videos:
            inputs = [(SourceKind.VIDEO, v) for v in self.videos]
        elif self.image_dirs:
            inputs = [(SourceKind.IMAGES, d) for d in self.image_dirs]
        else:
            inputs = [(SourceKind.CAMERA, self.camera_index or 0)]

        return [
            SessionSpec(
                index=i,
                kind=kind,
                source=source,
                report=self._out(self.reports, i),
                aligned_dir=self._out(self.aligned_dirs, i),
                hog_file=self._out(self.hog_files, i),
                tracked_video=self._out(self.tracked_videos, i),
            )
            for i, (kind, source) in enumerate(inputs)
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionConfig":
        """Create ExtractionConfig from a dictionary (e.g. loaded from YAML).

        Unknown keys are ignored.

        Example:
            >>> config = ExtractionConfig.from_dict({
            ...     "videos": ["clip.mp4"],
            ...     "outputs": {"reports": ["clip.csv"]},
            ...     "blocks": {"gaze": False},
            ...     "camera": {"fx": 600, "fy": 600},
            ... })
        """
        outputs = data.get("outputs", {})
        camera = data.get("camera", {})
        block_names = {f.name for f in fields(OutputBlocks)}
        blocks = {
            k: bool(v) for k, v in data.get("blocks", {}).items()
            if k in block_names
        }

        return cls(
            videos=list(data.get("videos", [])),
            camera_index=camera.get("device", data.get("camera_index")),
            image_dirs=list(data.get("image_dirs", [])),
            images_as_video=data.get("images_as_video", False),
            intrinsics=CameraIntrinsics(
                fx=float(camera.get("fx", 0.0)),
                fy=float(camera.get("fy", 0.0)),
                cx=float(camera.get("cx", 0.0)),
                cy=float(camera.get("cy", 0.0)),
            ),
            output_codec=data.get("output_codec", DEFAULT_CODEC),
            output_root=data.get("output_root", ""),
            reports=list(outputs.get("reports", [])),
            aligned_dirs=list(outputs.get("aligned_dirs", [])),
            hog_files=list(outputs.get("hog_files", [])),
            tracked_videos=list(outputs.get("tracked_videos", [])),
            blocks=OutputBlocks(**blocks),
            quiet=data.get("quiet", False),
            verbose=data.get("verbose", False),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "ExtractionConfig":
        """Load ExtractionConfig from a YAML file.

        Raises:
            ImportError: If PyYAML is not installed.
            FileNotFoundError: If the file doesn't exist.
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for YAML config support. "
                "Install it with: pip install pyyaml"
            )

        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "videos": list(self.videos),
            "image_dirs": list(self.image_dirs),
            "images_as_video": self.images_as_video,
            "camera": {
                "device": self.camera_index,
                "fx": self.intrinsics.fx,
                "fy": self.intrinsics.fy,
                "cx": self.intrinsics.cx,
                "cy": self.intrinsics.cy,
            },
            "output_codec": self.output_codec,
            "output_root": self.output_root,
            "outputs": {
                "reports": list(self.reports),
                "aligned_dirs": list(self.aligned_dirs),
                "hog_files": list(self.hog_files),
                "tracked_videos": list(self.tracked_videos),
            },
            "blocks": {f.name: getattr(self.blocks, f.name) for f in fields(OutputBlocks)},
            "quiet": self.quiet,
            "verbose": self.verbose,
        }


def list_image_files(directory: str) -> List[str]:
    """Return the .jpg/.png files of a directory in sorted path order.

    A missing or non-directory path yields an empty list.
    """
    path = Path(directory)
    if not path.is_dir():
        logger.warning("Image directory does not exist: %s", directory)
        return []
    return [
        str(p) for p in sorted(path.iterdir())
        if p.suffix in IMAGE_EXTENSIONS
    ]


def prepare_output_dirs(config: ExtractionConfig) -> None:
    """Create the directories the configured outputs will be written into.

    Parent directories are created for file outputs, the directory itself
    for aligned-face outputs. Failures are logged; the failing output will
    surface its own error when written.
    """
    targets = []
    for spec in config.sessions():
        for file_path in (spec.report, spec.hog_file, spec.tracked_video):
            if file_path:
                targets.append(Path(file_path).parent)
        if spec.aligned_dir:
            targets.append(Path(spec.aligned_dir))

    for directory in targets:
        if str(directory) in ("", "."):
            continue
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Failed to create directory %s: %s", directory, e)


__all__ = [
    "DEFAULT_CODEC",
    "IMAGE_EXTENSIONS",
    "OutputBlocks",
    "SessionSpec",
    "ExtractionConfig",
    "list_image_files",
    "prepare_output_dirs",
]
