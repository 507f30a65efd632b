"""
Model Module - Class Registry, Inference Engine and File Resolution

This module provides:
- classes: ClassRegistry mapping class indices to names
- engine: InferenceEngine capability and the ONNX Runtime implementation
- resolver: Locate detector, NMS and class-list files
"""

from yolo_detect.model.classes import ClassRegistry, default_classes_path
from yolo_detect.model.engine import (
    DEFAULT_INTER_OP_THREADS,
    DEFAULT_INTRA_OP_THREADS,
    EngineHandle,
    InferenceEngine,
    OnnxRuntimeEngine,
    SessionConfig,
)
from yolo_detect.model.resolver import ResolvedModel, resolve_model_files

__all__ = [
    # Classes
    "ClassRegistry",
    "default_classes_path",
    # Engine
    "EngineHandle",
    "InferenceEngine",
    "OnnxRuntimeEngine",
    "SessionConfig",
    "DEFAULT_INTRA_OP_THREADS",
    "DEFAULT_INTER_OP_THREADS",
    # Resolver
    "ResolvedModel",
    "resolve_model_files",
]
