"""
yolo_detect - Letterbox preprocessing and NMS decoding for YOLOv8

This package wraps a fixed-shape YOLOv8 detector and its companion NMS
network:

- processing: letterbox, tensor packing and NMS-row decoding
- model: class registry, inference engine capability, file resolution
- pipeline: the detect() lifecycle (load once, warm up, run)

The numeric contract (input size, pad color, channel order, tensor names)
lives in contract.yaml.
"""

from yolo_detect.errors import (
    ClassRegistryMismatchError,
    ConfigurationError,
    DetectionError,
    EngineLoadError,
    InferenceError,
    InvalidImageError,
    ModelLoadError,
    RegistryLoadError,
)
from yolo_detect.model import (
    ClassRegistry,
    EngineHandle,
    InferenceEngine,
    OnnxRuntimeEngine,
    ResolvedModel,
    SessionConfig,
    resolve_model_files,
)
from yolo_detect.pipeline import DetectionPipeline, DetectorConfig, PipelineState
from yolo_detect.processing import (
    DetectionBox,
    DetectionDecoder,
    LetterboxResult,
    YOLOPreprocessor,
    letterbox,
    load_image_from_bytes,
    pack_tensor,
    summarize,
    unpack_tensor,
)
from yolo_detect.tensor import Tensor

__all__ = [
    # Pipeline
    "DetectionPipeline",
    "DetectorConfig",
    "PipelineState",
    # Processing
    "letterbox",
    "load_image_from_bytes",
    "pack_tensor",
    "unpack_tensor",
    "LetterboxResult",
    "YOLOPreprocessor",
    "DetectionBox",
    "DetectionDecoder",
    "summarize",
    # Model
    "ClassRegistry",
    "EngineHandle",
    "InferenceEngine",
    "OnnxRuntimeEngine",
    "SessionConfig",
    "ResolvedModel",
    "resolve_model_files",
    "Tensor",
    # Errors
    "DetectionError",
    "InvalidImageError",
    "ConfigurationError",
    "ModelLoadError",
    "EngineLoadError",
    "RegistryLoadError",
    "ClassRegistryMismatchError",
    "InferenceError",
]

__version__ = "0.1.0"
