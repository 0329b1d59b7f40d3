"""Tests for the facetrace CLI."""

import logging
from unittest.mock import patch

import pytest

from helpers import create_image_dir, create_test_video

from facetrace.cli import _build_parser, config_from_args, main
from facetrace.encoders.hog import read_hog_frames
from facetrace.encoders.tabular import read_report
from facetrace.session import ExitRequested
from facetrace.types import CameraIntrinsics


def _config(*argv):
    args, _ = _build_parser().parse_known_args(list(argv))
    return config_from_args(args)


class TestParser:
    def test_repeated_inputs_and_outputs(self):
        config = _config("-f", "a.mp4", "-f", "b.mp4", "-of", "a.csv", "-of", "b.csv")
        assert config.videos == ["a.mp4", "b.mp4"]
        assert config.reports == ["a.csv", "b.csv"]

    def test_double_dash_spellings(self):
        config = _config("--video", "a.mp4", "--report", "a.csv", "--hogalign", "a.hog")
        assert config.videos == ["a.mp4"]
        assert config.reports == ["a.csv"]
        assert config.hog_files == ["a.hog"]

    def test_block_flags(self):
        config = _config("-noAUs", "-noGaze", "-no3Dfp")
        assert not config.blocks.action_units
        assert not config.blocks.gaze
        assert not config.blocks.landmarks_3d
        assert config.blocks.landmarks_2d
        assert config.blocks.pose
        assert config.blocks.model_params

    def test_camera_options(self):
        config = _config("-device", "2", "-fx", "600", "-fy", "610", "-cx", "320", "-cy", "240")
        assert config.camera_index == 2
        assert config.intrinsics == CameraIntrinsics(fx=600, fy=610, cx=320, cy=240)

    def test_image_options(self):
        config = _config("-fdir", "frames", "-asvid", "-simalign", "aligned", "-outroot", "out")
        assert config.image_dirs == ["frames"]
        assert config.images_as_video
        assert config.aligned_dirs == ["aligned"]
        assert config.output_root == "out"

    def test_defaults(self):
        config = _config()
        assert config.output_codec == "DIVX"
        assert not config.quiet
        assert not config.verbose
        assert config.sessions()[0].source == 0

    def test_yaml_config_with_overrides(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            "videos: [a.mp4]\n"
            "camera: {fx: 700, fy: 700}\n"
            "blocks: {pose: false}\n"
            "quiet: true\n"
        )
        config = _config("--config", str(path), "-f", "b.mp4", "-fx", "800", "-noGaze")
        assert config.videos == ["a.mp4", "b.mp4"]
        assert config.intrinsics.fx == 800
        assert config.intrinsics.fy == 700
        assert not config.blocks.pose
        assert not config.blocks.gaze
        assert config.quiet


class TestMain:
    def test_video_to_report_and_hog(self, tmp_path):
        video = tmp_path / "clip.avi"
        create_test_video(video, num_frames=4, fps=25)
        report = tmp_path / "clip.csv"
        hog = tmp_path / "clip.hog"

        code = main(["-f", str(video), "-of", str(report), "-hogalign", str(hog), "-q"])

        assert code == 0
        header, rows = read_report(report)
        assert len(rows) == 4
        assert header[:4] == ["frame", "timestamp", "confidence", "success"]
        assert len(read_hog_frames(hog)) == 4

    def test_no_aus_flag(self, tmp_path):
        frames = create_image_dir(tmp_path / "frames", ["a.png", "b.png"])
        report = tmp_path / "out" / "frames.csv"

        code = main(["-fdir", str(frames), "-of", str(report), "-noAUs", "-q"])

        assert code == 0
        header, rows = read_report(report)
        assert len(rows) == 2
        assert not any(c.endswith("_r") or c.endswith("_c") for c in header)

    def test_missing_video_exits_with_error(self, tmp_path):
        assert main(["-f", str(tmp_path / "missing.avi"), "-q"]) == 1

    def test_unwritable_report_exits_with_error(self, tmp_path, caplog):
        video = tmp_path / "clip.avi"
        create_test_video(video, num_frames=2, fps=25)
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with caplog.at_level(logging.ERROR, logger="facetrace.cli"):
            code = main(["-f", str(video), "-of", str(blocker / "out.csv"), "-q"])

        assert code == 1
        assert "Fatal error" in caplog.text

    def test_bad_codec_exits_with_error(self, tmp_path):
        assert main(["-f", "clip.avi", "-oc", "BAD", "-q"]) == 1

    def test_unknown_backend_exits_with_error(self):
        assert main(["--detector", "nope", "-q"]) == 1

    def test_quit_exits_cleanly(self):
        with patch("facetrace.cli.FeatureExtractor") as extractor_cls:
            extractor_cls.return_value.run.side_effect = ExitRequested()
            assert main(["-q"]) == 0

    def test_unknown_arguments_are_ignored(self, tmp_path, caplog):
        frames = create_image_dir(tmp_path / "frames", ["a.png"])
        with caplog.at_level(logging.WARNING, logger="facetrace.cli"):
            code = main(["-fdir", str(frames), "-q", "-wild", "-mloc", "x"])
        assert code == 0
        assert "Ignoring unrecognized arguments" in caplog.text
        assert "-wild" in caplog.text

    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help(self, flag, capsys):
        with pytest.raises(SystemExit) as exc:
            main([flag])
        assert exc.value.code == 0
        assert "Examples:" in capsys.readouterr().out
