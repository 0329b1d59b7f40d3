"""Command-line interface: ``facetrace``.

Option names follow the long-standing single-dash spelling of facial
feature extraction tools (``-f``, ``-fdir``, ``-of``, ``-hogalign`` ...);
double-dash spellings are accepted as well. Unrecognized arguments are
logged and ignored.

Examples:
  facetrace -f clip.mp4 -of clip.csv                 # report only
  facetrace -f a.mp4 -f b.mp4 -of a.csv -of b.csv -q  # two sessions, headless
  facetrace -fdir frames/ -of frames.csv -asvid       # image sequence as video
  facetrace -f clip.mp4 -hogalign clip.hog -noAUs     # descriptors only
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from facetrace.config import DEFAULT_CODEC, ExtractionConfig
from facetrace.plugin import load_analyzer, load_detector, load_gaze_estimator
from facetrace.session import ExitRequested, FeatureExtractor

logger = logging.getLogger(__name__)

_BLOCK_FLAGS = {
    "no2Dfp": "landmarks_2d",
    "no3Dfp": "landmarks_3d",
    "noMparams": "model_params",
    "noPose": "pose",
    "noAUs": "action_units",
    "noGaze": "gaze",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facetrace",
        description="Extract per-frame facial features from videos, cameras or image directories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:" + __doc__.split("Examples:", 1)[1],
        allow_abbrev=False,
    )

    inputs = parser.add_argument_group("inputs")
    inputs.add_argument("-f", "--video", action="append", default=[], dest="videos",
                        metavar="PATH", help="Video file (repeat for several sessions)")
    inputs.add_argument("-fdir", "--fdir", action="append", default=[], dest="image_dirs",
                        metavar="DIR", help="Directory of .jpg/.png images, one session each")
    inputs.add_argument("-device", "--device", type=int, default=None, dest="camera_index",
                        help="Camera device used when no files are given (default: 0)")
    inputs.add_argument("-asvid", "--asvid", action="store_true", dest="images_as_video",
                        help="Track image sequences as video")
    inputs.add_argument("--config", type=str, metavar="PATH",
                        help="YAML config; command-line values are added on top")

    camera = parser.add_argument_group("camera")
    for name in ("fx", "fy", "cx", "cy"):
        camera.add_argument(f"-{name}", f"--{name}", type=float, default=None,
                            help=f"Camera {name} in pixels (default: from image size)")

    outputs = parser.add_argument_group("outputs")
    outputs.add_argument("-of", "--report", action="append", default=[], dest="reports",
                         metavar="PATH", help="Feature report (CSV) per session")
    outputs.add_argument("-ov", "--tracked", action="append", default=[], dest="tracked_videos",
                         metavar="PATH", help="Tracked overlay video per session")
    outputs.add_argument("-oc", "--codec", default=None, dest="output_codec",
                         help=f"FourCC of the tracked video (default: {DEFAULT_CODEC})")
    outputs.add_argument("-simalign", "--simalign", action="append", default=[],
                         dest="aligned_dirs", metavar="DIR",
                         help="Directory for similarity-aligned faces per session")
    outputs.add_argument("-hogalign", "--hogalign", action="append", default=[],
                         dest="hog_files", metavar="PATH",
                         help="Binary FHOG descriptor file per session")
    outputs.add_argument("-root", "--root", "-outroot", "--outroot", default=None,
                         dest="output_root", help="Prefix for every output path")
    for flag, block in _BLOCK_FLAGS.items():
        outputs.add_argument(f"-{flag}", f"--{flag}", action="store_true", dest=flag,
                             help=f"Leave the {block.replace('_', ' ')} block out of the report")

    backends = parser.add_argument_group("backends")
    backends.add_argument("--detector", default="dummy", help="Landmark detector backend")
    backends.add_argument("--analyzer", default="dummy", help="Face analyser backend")
    backends.add_argument("--gaze", default="dummy", help="Gaze estimator backend")
    backends.add_argument("--no-gaze-tracking", action="store_true",
                          help="Do not run the gaze estimator")

    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Headless: no windows and no key handling")
    parser.add_argument("-verbose", "--verbose", action="store_true",
                        help="Show the descriptor visualisation")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> ExtractionConfig:
    """Build the run configuration from parsed arguments."""
    config = ExtractionConfig.from_yaml(args.config) if args.config else ExtractionConfig()

    intrinsics = config.intrinsics
    overrides = {
        name: getattr(args, name) for name in ("fx", "fy", "cx", "cy")
        if getattr(args, name) is not None
    }
    if overrides:
        intrinsics = replace(intrinsics, **overrides)

    blocks = config.blocks
    disabled = {block: False for flag, block in _BLOCK_FLAGS.items() if getattr(args, flag)}
    if disabled:
        blocks = replace(blocks, **disabled)

    return replace(
        config,
        videos=config.videos + args.videos,
        image_dirs=config.image_dirs + args.image_dirs,
        camera_index=args.camera_index if args.camera_index is not None else config.camera_index,
        images_as_video=config.images_as_video or args.images_as_video,
        intrinsics=intrinsics,
        output_codec=args.output_codec or config.output_codec,
        output_root=args.output_root if args.output_root is not None else config.output_root,
        reports=config.reports + args.reports,
        aligned_dirs=config.aligned_dirs + args.aligned_dirs,
        hog_files=config.hog_files + args.hog_files,
        tracked_videos=config.tracked_videos + args.tracked_videos,
        blocks=blocks,
        quiet=config.quiet or args.quiet,
        verbose=config.verbose or args.verbose,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``facetrace`` CLI. Returns the exit code."""
    parser = _build_parser()
    args, unknown = parser.parse_known_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if unknown:
        logger.warning("Ignoring unrecognized arguments: %s", " ".join(unknown))

    try:
        config = config_from_args(args)
        config.validate()
        detector = load_detector(args.detector)()
        analyzer = load_analyzer(args.analyzer)()
        gaze = None if args.no_gaze_tracking else load_gaze_estimator(args.gaze)()
    except (KeyError, ImportError, ValueError, OSError) as e:
        logger.error("Fatal error: %s", e)
        return 1

    extractor = FeatureExtractor(config, detector, analyzer, gaze_estimator=gaze)
    try:
        result = extractor.run()
    except OSError as e:  # SourceUnavailable, AlignedImageWriteError, unwritable outputs
        logger.error("Fatal error: %s", e)
        return 1
    except ExitRequested:
        logger.info("Quit requested")
        return 0

    logger.info(
        "Done: %d frames in %d session(s)", result.frame_count, len(result.sessions),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
