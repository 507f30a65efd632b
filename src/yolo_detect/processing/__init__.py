"""
Processing Module - Pre- and Post-processing around the Detector

- transforms: decode, letterbox (top-left anchored), tensor packing
- yolo_preprocess: YOLOPreprocessor combining the transforms
- postprocess: NMS-row decoding into image-space DetectionBox objects
"""

from yolo_detect.processing.transforms import (
    LETTERBOX_COLOR,
    LetterboxResult,
    letterbox,
    load_image_from_bytes,
    pack_tensor,
    unpack_tensor,
)
from yolo_detect.processing.yolo_preprocess import YOLOPreprocessor, YOLOPreprocessResult
from yolo_detect.processing.postprocess import (
    DetectionBox,
    DetectionDecoder,
    selected_rows,
    summarize,
)

__all__ = [
    # Low-level transforms
    "LETTERBOX_COLOR",
    "LetterboxResult",
    "letterbox",
    "load_image_from_bytes",
    "pack_tensor",
    "unpack_tensor",
    # Preprocessor
    "YOLOPreprocessor",
    "YOLOPreprocessResult",
    # Decoding
    "DetectionBox",
    "DetectionDecoder",
    "selected_rows",
    "summarize",
]
