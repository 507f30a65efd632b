"""YOLOv8 Preprocessing Pipeline.

This module provides the YOLOPreprocessor class for preparing images
for the fixed-shape YOLOv8 detector.

Pipeline:
    1. Decode bytes to RGB(A) (when starting from encoded bytes)
    2. Letterbox resize to 640x640, anchored top-left, gray 114 padding
    3. Drop alpha, RGB -> BGR, HWC -> CHW
    4. Normalize to [0, 1] by dividing by 255.0
    5. Add batch dimension -> [1, 3, 640, 640]
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from yolo_detect.config import get_contract_value, get_tensor_name
from yolo_detect.processing.transforms import (
    LETTERBOX_COLOR,
    LetterboxResult,
    letterbox,
    load_image_from_bytes,
    pack_tensor,
)
from yolo_detect.tensor import Tensor

# =============================================================================
# Constants (Loaded from contract.yaml)
# =============================================================================

YOLO_INPUT_SIZE: int = get_contract_value("preprocessing", "input_size")
"""Square detector input edge from contract.yaml."""


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class YOLOPreprocessResult:
    """Result container for YOLO preprocessing.

    Attributes:
        tensor: Packed detector input [1, 3, 640, 640], float32, range [0, 1]
        letterboxed: Canvas and geometry produced by letterbox()
    """

    tensor: Tensor
    letterboxed: LetterboxResult

    @property
    def original_width(self) -> int:
        return self.letterboxed.original_width

    @property
    def original_height(self) -> int:
        return self.letterboxed.original_height


# =============================================================================
# Preprocessor Class
# =============================================================================


class YOLOPreprocessor:
    """Preprocessor for the YOLOv8 detector.

    Attributes:
        input_size: Target input dimension (default: 640)
        pad_color: RGB letterbox padding color (default: 114, 114, 114)

    Example:
        >>> preprocessor = YOLOPreprocessor()
        >>> image = np.random.randint(0, 256, (1080, 1920, 3), dtype=np.uint8)
        >>> result = preprocessor(image)
        >>> result.tensor.shape
        (1, 3, 640, 640)
        >>> result.letterboxed.scaled_height
        360
    """

    def __init__(
        self,
        input_size: int = YOLO_INPUT_SIZE,
        pad_color: Tuple[int, int, int] = LETTERBOX_COLOR,
    ) -> None:
        self.input_size = input_size
        self.pad_color = pad_color

    def __call__(self, image: np.ndarray) -> YOLOPreprocessResult:
        return self.preprocess(image)

    def preprocess(self, image: np.ndarray) -> YOLOPreprocessResult:
        """Letterbox and pack a decoded image.

        Args:
            image: RGB or RGBA uint8 array with shape [H, W, 3|4]

        Returns:
            YOLOPreprocessResult with the input tensor and letterbox geometry

        Raises:
            InvalidImageError: If image has invalid shape, dtype or size
        """
        letterboxed = letterbox(image, self.input_size, self.pad_color)
        tensor = pack_tensor(letterboxed, name=get_tensor_name("detector_input"))

        return YOLOPreprocessResult(tensor=tensor, letterboxed=letterboxed)

    def preprocess_bytes(self, image_bytes: bytes) -> YOLOPreprocessResult:
        """Decode encoded image bytes, then preprocess them."""
        return self.preprocess(load_image_from_bytes(image_bytes))

    def get_input_shape(self) -> tuple[int, int, int, int]:
        """Get expected detector input shape (batch, channels, height, width)."""
        return (1, 3, self.input_size, self.input_size)

    @staticmethod
    def get_input_dtype() -> np.dtype:
        return np.dtype(np.float32)
