"""Tests for docintake.cli.batch: CLI batch auto-crop."""

from unittest.mock import patch

import pytest

from docintake.cli.batch import (
    build_detection_config,
    build_parser,
    discover_files,
    load_asset,
    main,
    output_name,
    unique_name,
)
from docintake.domain.models import Asset
from fakes import FakeDetector, detected, image_bytes, image_size


class FakeClient(FakeDetector):
    answers_by_name = {}

    def __init__(self, config):
        super().__init__(dict(self.answers_by_name))
        self.config = config

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass


@pytest.fixture
def scans(tmp_path):
    src = tmp_path / "scans"
    src.mkdir()
    (src / "a.png").write_bytes(image_bytes(1000, 800))
    (src / "b.png").write_bytes(image_bytes(100, 100))
    (src / "doc.pdf").write_bytes(b"%PDF-1.4\n%%EOF\n")
    (src / "notes.txt").write_text("ignore me")
    return src


class TestBuildParser:
    def test_defaults(self):
        args = build_parser().parse_args(["scan.jpg"])
        assert args.inputs == ["scan.jpg"]
        assert args.output == "./export"
        assert args.detector_url is None
        assert args.api_key is None
        assert args.timeout is None
        assert args.max_dimension is None
        assert args.min_confidence is None
        assert args.max_items is None
        assert args.verbose is False

    def test_all_flags(self):
        args = build_parser().parse_args([
            "--output", "/tmp/out",
            "--detector-url", "https://d.test/crop",
            "--api-key", "k",
            "--timeout", "5",
            "--max-dimension", "512",
            "--min-confidence", "0.4",
            "--max-items", "10",
            "--verbose",
            "a.jpg", "b.png",
        ])
        assert args.inputs == ["a.jpg", "b.png"]
        assert args.timeout == 5.0
        assert args.max_dimension == 512
        assert args.min_confidence == pytest.approx(0.4)
        assert args.max_items == 10
        assert args.verbose is True


class TestBuildDetectionConfig:
    def test_flags_override_environment(self):
        args = build_parser().parse_args(
            ["--detector-url", "https://d.test/crop", "--api-key", "k", "--max-dimension", "512"]
        )
        config = build_detection_config(args)
        assert config.url == "https://d.test/crop"
        assert config.api_key == "k"
        assert config.max_dimension == 512

    def test_no_flags_keeps_defaults(self):
        config = build_detection_config(build_parser().parse_args([]))
        assert config.timeout > 0
        assert config.max_dimension > 0


class TestDiscoverFiles:
    def test_directory_walk_filters_extensions(self, scans):
        files = discover_files([str(scans)])
        assert [f.rsplit("/", 1)[-1] for f in files] == ["a.png", "b.png", "doc.pdf"]

    def test_unsupported_file_is_skipped(self, scans, capsys):
        files = discover_files([str(scans / "notes.txt")])
        assert files == []
        assert "Skipping unsupported file" in capsys.readouterr().err

    def test_missing_path(self, tmp_path, capsys):
        assert discover_files([str(tmp_path / "nope")]) == []
        assert "Path not found" in capsys.readouterr().err


def test_load_asset_mime(scans):
    assert load_asset(str(scans / "a.png")).mime_type == "image/png"
    assert load_asset(str(scans / "doc.pdf")).mime_type == "application/pdf"


def test_output_name_follows_mime():
    assert output_name(Asset("scan.png", "image/jpeg", b"x")) == "scan.jpg"
    assert output_name(Asset("doc.pdf", "application/pdf", b"x")) == "doc.pdf"


def test_unique_name():
    used = {"scan.jpg", "scan_1.jpg"}
    assert unique_name("scan.jpg", used) == "scan_2.jpg"
    assert unique_name("other.jpg", used) == "other.jpg"


class TestMain:
    def test_reencoded_output_does_not_overwrite_sibling(self, tmp_path):
        src = tmp_path / "scans"
        src.mkdir()
        original_jpg = image_bytes(100, 100, fmt="JPEG")
        (src / "scan.jpg").write_bytes(original_jpg)
        (src / "scan.png").write_bytes(image_bytes(1000, 800))
        out = tmp_path / "out"

        FakeClient.answers_by_name = {
            "scan.jpg": detected(0, 0, 100, 100),
            "scan.png": detected(10, 10, 80, 80),
        }
        with patch("docintake.cli.batch.CropDetectionClient", FakeClient):
            code = main([str(src), "--output", str(out)])

        assert code == 0
        assert sorted(p.name for p in out.iterdir()) == ["scan.jpg", "scan_1.jpg"]
        assert (out / "scan.jpg").read_bytes() == original_jpg
        assert image_size((out / "scan_1.jpg").read_bytes()) == (800, 640)

    def test_no_inputs(self, capsys):
        assert main([]) == 1
        assert "No supported files" in capsys.readouterr().err

    def test_batch_writes_results(self, scans, tmp_path, capsys):
        out = tmp_path / "out"
        FakeClient.answers_by_name = {
            "a.png": detected(10, 10, 80, 80),
            "b.png": detected(0, 0, 100, 100),
        }
        with patch("docintake.cli.batch.CropDetectionClient", FakeClient):
            code = main([str(scans), "--output", str(out)])

        assert code == 0
        assert sorted(p.name for p in out.iterdir()) == ["a.jpg", "b.png", "doc.pdf"]
        assert image_size((out / "a.jpg").read_bytes()) == (800, 640)
        assert (out / "b.png").read_bytes() == (scans / "b.png").read_bytes()

        err = capsys.readouterr().err
        assert "[2/2]" in err
        assert "1 cropped, 1 unchanged, 0 failed" in err

    def test_failures_set_exit_code(self, scans, tmp_path):
        FakeClient.answers_by_name = {}
        with patch("docintake.cli.batch.CropDetectionClient", FakeClient):
            code = main([str(scans), "--output", str(tmp_path / "out")])
        assert code == 1

    def test_max_items_refuses_batch(self, scans, tmp_path, capsys):
        FakeClient.answers_by_name = {}
        with patch("docintake.cli.batch.CropDetectionClient", FakeClient):
            code = main([str(scans), "--output", str(tmp_path / "out"), "--max-items", "1"])
        assert code == 1
        assert "exceeds the limit" in capsys.readouterr().err
