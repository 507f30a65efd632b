"""
Unit Tests for the Command-Line Entry Point

This module tests __main__.py: argument parsing, pipeline construction
from resolved files and settings, JSON output and exit codes.
"""

import json
import logging
from pathlib import Path

import numpy as np
import pytest

import yolo_detect.__main__ as cli
from yolo_detect.model.engine import OnnxRuntimeEngine
from yolo_detect.pipeline import DetectionPipeline
from yolo_detect.settings import get_settings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Empty working directory, fresh settings, root logger restored afterwards."""
    monkeypatch.chdir(tmp_path)
    for name in ("MODEL_PATH", "NMS_MODEL_PATH", "CLASSES_PATH", "TOP_K", "MODELS_DIR"):
        monkeypatch.delenv(f"YOLO_DETECT_{name}", raising=False)
    get_settings.cache_clear()

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    get_settings.cache_clear()


@pytest.fixture
def image_file(tmp_path: Path, encode_png) -> Path:
    path = tmp_path / "photo.png"
    path.write_bytes(encode_png(np.full((640, 1280, 3), 90, dtype=np.uint8)))
    return path


@pytest.fixture
def model_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "models"
    directory.mkdir()
    (directory / "yolov8n.onnx").write_bytes(b"detector")
    (directory / "nms-yolov8.onnx").write_bytes(b"nms")
    return directory


@pytest.fixture
def stub_pipeline(monkeypatch: pytest.MonkeyPatch, stub_engine_factory, single_class_registry):
    """Replace build_pipeline with one backed by the stub engine."""
    engine = stub_engine_factory(
        np.array([[320, 320, 100, 100, 0.9]], dtype=np.float32), num_classes=1
    )

    def build(args):
        return DetectionPipeline(
            engine,
            model_path="models/yolov8n.onnx",
            nms_model_path="models/nms-yolov8.onnx",
            class_loader=lambda: single_class_registry,
        )

    monkeypatch.setattr(cli, "build_pipeline", build)
    return engine


class TestParser:
    """Tests for build_parser."""

    def test_options(self) -> None:
        args = cli.build_parser().parse_args(
            ["photo.jpg", "--model", "models/", "--top-k", "5", "--iou-threshold", "0.6"]
        )

        assert args.image == Path("photo.jpg")
        assert args.model == "models/"
        assert args.top_k == 5
        assert args.iou_threshold == 0.6
        assert args.confidence_threshold is None
        assert args.log_level is None

    def test_log_level_case_insensitive(self) -> None:
        args = cli.build_parser().parse_args(["photo.jpg", "--log-level", "debug"])

        assert args.log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.build_parser().parse_args(["photo.jpg", "--log-level", "foo"])

        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err


class TestBuildPipeline:
    """Tests for build_pipeline."""

    def test_resolves_directory_and_overrides(self, model_dir: Path) -> None:
        args = cli.build_parser().parse_args(
            ["photo.jpg", "--model", str(model_dir), "--top-k", "5"]
        )

        pipeline = cli.build_pipeline(args)

        assert isinstance(pipeline.engine, OnnxRuntimeEngine)
        assert pipeline.model_path == model_dir / "yolov8n.onnx"
        assert pipeline.nms_model_path == model_dir / "nms-yolov8.onnx"
        assert pipeline.config.top_k == 5
        assert pipeline.config.iou_threshold == 0.45
        assert len(pipeline.classes) == 80

    def test_classes_file_next_to_model(self, model_dir: Path) -> None:
        (model_dir / "classes.txt").write_text("widget\ngadget\n")
        args = cli.build_parser().parse_args(["photo.jpg", "--model", str(model_dir)])

        pipeline = cli.build_pipeline(args)

        assert pipeline.classes.names == ("widget", "gadget")

    def test_settings_supply_model_path(
        self, model_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("YOLO_DETECT_MODEL_PATH", str(model_dir / "yolov8n.onnx"))
        monkeypatch.setenv("YOLO_DETECT_TOP_K", "7")
        args = cli.build_parser().parse_args(["photo.jpg"])

        pipeline = cli.build_pipeline(args)

        assert pipeline.model_path == model_dir / "yolov8n.onnx"
        assert pipeline.config.top_k == 7


class TestMain:
    """Tests for main()."""

    def test_prints_summary(self, stub_pipeline, image_file: Path, capsys) -> None:
        exit_code = cli.main([str(image_file), "--log-level", "ERROR"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["detected"] == ["person (90.00%)"]
        assert summary["annotations"][0]["bbox"] == [540.0, 540.0, 200.0, 200.0]

    def test_missing_image(self, stub_pipeline, tmp_path: Path) -> None:
        assert cli.main([str(tmp_path / "missing.png"), "--log-level", "ERROR"]) == 1

    def test_undecodable_image(self, stub_pipeline, tmp_path: Path, capsys) -> None:
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")

        assert cli.main([str(path), "--log-level", "ERROR"]) == 1
        assert capsys.readouterr().out == ""

    def test_unresolvable_model(self, image_file: Path, tmp_path: Path) -> None:
        argv = [str(image_file), "--model", str(tmp_path / "nope"), "--log-level", "ERROR"]

        assert cli.main(argv) == 1

    def test_invalid_log_level_setting(
        self, image_file: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setenv("YOLO_DETECT_LOG_LEVEL", "chatty")

        assert cli.main([str(image_file)]) == 2
        assert "LOG_LEVEL" in capsys.readouterr().err
