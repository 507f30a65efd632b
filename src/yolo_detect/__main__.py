"""Run one detection from the command line and print the result as JSON.

Usage:
    python -m yolo_detect photo.jpg --model models/
    python -m yolo_detect photo.jpg --model models/yolov8n.onnx --top-k 50
"""

import argparse
import asyncio
import json
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from yolo_detect.errors import DetectionError
from yolo_detect.logger import LOG_LEVELS, setup_logging
from yolo_detect.model.classes import ClassRegistry
from yolo_detect.model.engine import OnnxRuntimeEngine, SessionConfig
from yolo_detect.model.resolver import resolve_model_files
from yolo_detect.pipeline import DetectionPipeline, DetectorConfig
from yolo_detect.processing.postprocess import summarize
from yolo_detect.settings import get_settings

logger = logging.getLogger("yolo_detect")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yolo-detect",
        description="Detect objects in an image with a YOLOv8 ONNX model.",
    )
    parser.add_argument("image", type=Path, help="Image file to analyze")
    parser.add_argument("--model", default=None, help="Model file or directory")
    parser.add_argument("--nms-model", default=None, help="NMS model file")
    parser.add_argument("--classes", default=None, help="Class list file")
    parser.add_argument("--top-k", type=int, default=None, help="Detections kept per class")
    parser.add_argument("--iou-threshold", type=float, default=None)
    parser.add_argument("--confidence-threshold", type=float, default=None)
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: YOLO_DETECT_LOG_LEVEL or INFO)",
    )
    return parser


def build_pipeline(args: argparse.Namespace) -> DetectionPipeline:
    settings = get_settings()

    resolved = resolve_model_files(
        args.model or settings.MODEL_PATH,
        classes_path=args.classes or settings.CLASSES_PATH,
        nms_model_path=args.nms_model or settings.NMS_MODEL_PATH,
        models_dir=settings.MODELS_DIR,
    )

    defaults = settings.detector_config()
    config = DetectorConfig(
        top_k=args.top_k if args.top_k is not None else defaults.top_k,
        iou_threshold=(
            args.iou_threshold if args.iou_threshold is not None else defaults.iou_threshold
        ),
        confidence_threshold=(
            args.confidence_threshold
            if args.confidence_threshold is not None
            else defaults.confidence_threshold
        ),
    )

    engine = OnnxRuntimeEngine(
        SessionConfig(
            intra_op_threads=settings.INTRA_OP_THREADS,
            inter_op_threads=settings.INTER_OP_THREADS,
            providers=list(settings.PROVIDERS),
        )
    )

    if resolved.classes_source == "bundled":
        class_loader = ClassRegistry.default
    else:
        class_loader = partial(ClassRegistry.from_file, resolved.classes_path)

    return DetectionPipeline(
        engine,
        model_path=resolved.model_path,
        nms_model_path=resolved.nms_model_path,
        class_loader=class_loader,
        config=config,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid YOLO_DETECT_ settings: {e}", file=sys.stderr)
        return 2

    setup_logging(args.log_level or settings.LOG_LEVEL, stream=sys.stderr)

    try:
        image_bytes = args.image.read_bytes()
    except OSError as e:
        logger.error(f"Cannot read image {args.image}: {e}")
        return 1

    try:
        pipeline = build_pipeline(args)
        boxes = asyncio.run(pipeline.detect(image_bytes))
    except DetectionError as e:
        logger.error(f"Detection failed: {e}", exc_info=True)
        return 1

    print(json.dumps(summarize(boxes), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
