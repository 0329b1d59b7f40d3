"""Tests for run configuration and session resolution."""

import os

import pytest

from facetrace.config import (
    ExtractionConfig,
    OutputBlocks,
    list_image_files,
    prepare_output_dirs,
)
from facetrace.types import CameraIntrinsics, SourceKind


class TestOutputBlocks:
    def test_defaults_all_enabled(self):
        blocks = OutputBlocks()
        assert all([
            blocks.landmarks_2d, blocks.landmarks_3d, blocks.model_params,
            blocks.pose, blocks.action_units, blocks.gaze,
        ])

    def test_all_combinations(self):
        combos = list(OutputBlocks.all_combinations())
        assert len(combos) == 64
        assert len(set(combos)) == 64


class TestSessions:
    def test_videos_one_session_each(self):
        config = ExtractionConfig(
            videos=["a.mp4", "b.mp4"],
            reports=["a.csv", "b.csv"],
            hog_files=["a.hog"],
        )
        sessions = config.sessions()
        assert [s.kind for s in sessions] == [SourceKind.VIDEO, SourceKind.VIDEO]
        assert [s.source for s in sessions] == ["a.mp4", "b.mp4"]
        assert [s.report for s in sessions] == ["a.csv", "b.csv"]
        assert [s.hog_file for s in sessions] == ["a.hog", None]
        assert sessions[1].aligned_dir is None
        assert sessions[1].tracked_video is None

    def test_videos_take_precedence_over_image_dirs(self):
        config = ExtractionConfig(videos=["a.mp4"], image_dirs=["frames"])
        sessions = config.sessions()
        assert len(sessions) == 1
        assert sessions[0].kind is SourceKind.VIDEO

    def test_image_dirs(self):
        config = ExtractionConfig(image_dirs=["d1", "d2"], aligned_dirs=["x", "y"])
        sessions = config.sessions()
        assert [s.kind for s in sessions] == [SourceKind.IMAGES] * 2
        assert [s.aligned_dir for s in sessions] == ["x", "y"]

    def test_camera_when_no_inputs(self):
        sessions = ExtractionConfig().sessions()
        assert len(sessions) == 1
        assert sessions[0].kind is SourceKind.CAMERA
        assert sessions[0].source == 0
        assert sessions[0].name == "camera:0"

    def test_camera_index(self):
        sessions = ExtractionConfig(camera_index=2).sessions()
        assert sessions[0].source == 2

    def test_output_root_prefixes_outputs(self):
        config = ExtractionConfig(
            videos=["a.mp4"], reports=["a.csv"], output_root="out",
        )
        spec = config.sessions()[0]
        assert spec.report == os.path.join("out", "a.csv")
        assert spec.source == "a.mp4"


class TestValidate:
    def test_default_codec_ok(self):
        ExtractionConfig().validate()

    @pytest.mark.parametrize("codec", ["", "MJP", "MPEG4"])
    def test_codec_must_have_four_chars(self, codec):
        with pytest.raises(ValueError, match="4 characters"):
            ExtractionConfig(output_codec=codec).validate()


class TestFromDict:
    def test_full(self):
        config = ExtractionConfig.from_dict({
            "videos": ["clip.mp4"],
            "camera": {"device": 1, "fx": 600, "fy": 610},
            "output_codec": "MJPG",
            "output_root": "out",
            "outputs": {"reports": ["clip.csv"], "hog_files": ["clip.hog"]},
            "blocks": {"gaze": False, "noSuchBlock": False},
            "quiet": True,
        })
        assert config.videos == ["clip.mp4"]
        assert config.camera_index == 1
        assert config.intrinsics == CameraIntrinsics(fx=600, fy=610)
        assert config.output_codec == "MJPG"
        assert config.reports == ["clip.csv"]
        assert config.hog_files == ["clip.hog"]
        assert config.blocks == OutputBlocks(gaze=False)
        assert config.quiet
        assert not config.verbose

    def test_empty(self):
        config = ExtractionConfig.from_dict({})
        assert config.videos == []
        assert config.blocks == OutputBlocks()
        assert config.camera_index is None

    def test_to_dict_roundtrip(self):
        config = ExtractionConfig(
            image_dirs=["frames"], images_as_video=True,
            intrinsics=CameraIntrinsics(fx=1, fy=2, cx=3, cy=4),
            aligned_dirs=["aligned"], blocks=OutputBlocks(pose=False),
            verbose=True,
        )
        assert ExtractionConfig.from_dict(config.to_dict()) == config


class TestFromYaml:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "videos:\n"
            "  - a.mp4\n"
            "outputs:\n"
            "  reports: [a.csv]\n"
            "blocks:\n"
            "  action_units: false\n"
        )
        config = ExtractionConfig.from_yaml(str(path))
        assert config.videos == ["a.mp4"]
        assert config.reports == ["a.csv"]
        assert not config.blocks.action_units

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ExtractionConfig.from_yaml(str(path)) == ExtractionConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ExtractionConfig.from_yaml(str(tmp_path / "nope.yaml"))


class TestListImageFiles:
    def test_sorted_and_filtered(self, tmp_path):
        for name in ["b.png", "a.jpg", "c.txt", "d.bmp", "e.JPG"]:
            (tmp_path / name).write_bytes(b"")
        files = list_image_files(str(tmp_path))
        assert [os.path.basename(f) for f in files] == ["a.jpg", "b.png"]

    def test_missing_directory(self, tmp_path):
        assert list_image_files(str(tmp_path / "missing")) == []


class TestPrepareOutputDirs:
    def test_creates_parents_and_aligned_dirs(self, tmp_path):
        config = ExtractionConfig(
            videos=["a.mp4"],
            reports=[str(tmp_path / "reports" / "a.csv")],
            hog_files=[str(tmp_path / "hog" / "a.hog")],
            aligned_dirs=[str(tmp_path / "aligned" / "a")],
        )
        prepare_output_dirs(config)
        assert (tmp_path / "reports").is_dir()
        assert (tmp_path / "hog").is_dir()
        assert (tmp_path / "aligned" / "a").is_dir()
        assert not (tmp_path / "reports" / "a.csv").exists()
