"""
Low-Level Image Transforms

This module contains the atomic transformations used by YOLOPreprocessor.

Functions:
    load_image_from_bytes: Decode encoded image bytes as an RGB(A) numpy array
    letterbox: Top-left anchored aspect-preserving resize with constant padding
    pack_tensor: Interleaved RGB bytes -> planar BGR float32 tensor in [0, 1]
    unpack_tensor: Exact inverse of pack_tensor

Constants:
    LETTERBOX_COLOR: Default padding color (gray 114, RGB)
    NORMALIZATION_SCALE: Byte divisor applied while packing
"""

import math
from dataclasses import dataclass
from typing import Tuple, Union

import cv2
import numpy as np

from yolo_detect.config import get_contract_value, get_tensor_name
from yolo_detect.errors import InvalidImageError
from yolo_detect.tensor import Tensor


# =============================================================================
# Constants (Loaded from contract.yaml)
# =============================================================================

LETTERBOX_COLOR: Tuple[int, int, int] = tuple(
    get_contract_value("preprocessing", "pad_color")
)

NORMALIZATION_SCALE: float = float(
    get_contract_value("preprocessing", "normalization_scale")
)

DEFAULT_TARGET_SIZE: int = get_contract_value("preprocessing", "input_size")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class LetterboxResult:
    """Letterboxed pixel canvas plus the geometry needed to undo it.

    Attributes:
        pixels: RGB uint8 canvas [S, S, 3]
        original_width: Width of the source image
        original_height: Height of the source image
        scaled_width: Columns [0, scaled_width) hold the resized image
        scaled_height: Rows [0, scaled_height) hold the resized image
    """

    pixels: np.ndarray
    original_width: int
    original_height: int
    scaled_width: int
    scaled_height: int

    @property
    def target_size(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def buffer(self) -> bytes:
        """Interleaved row-major RGB bytes, exactly S*S*3 long."""
        return np.ascontiguousarray(self.pixels).tobytes()


# =============================================================================
# Image Loading
# =============================================================================

def load_image_from_bytes(image_bytes: bytes) -> np.ndarray:
    """
    Decode image bytes as an RGB (or RGBA) numpy array.

    Decoding uses IMREAD_UNCHANGED so the stored orientation and
    dimensions are kept (no EXIF auto-rotation) and an alpha channel
    survives until letterbox drops it. Grayscale input is expanded to RGB
    and 16-bit samples are reduced to their high byte.

    Args:
        image_bytes: Raw image bytes (JPEG, PNG, WebP, etc.)

    Returns:
        uint8 array with shape [H, W, 3] (RGB) or [H, W, 4] (RGBA)

    Raises:
        InvalidImageError: If the bytes are empty or cannot be decoded

    Example:
        >>> with open("image.jpg", "rb") as f:
        ...     image = load_image_from_bytes(f.read())
        >>> image.shape
        (1080, 1920, 3)
    """
    if not image_bytes:
        raise InvalidImageError("Failed to decode image from bytes: empty input")

    nparr = np.frombuffer(image_bytes, np.uint8)
    decoded = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)

    if decoded is None:
        raise InvalidImageError(
            f"Failed to decode image from bytes ({len(image_bytes)} bytes)"
        )

    if decoded.dtype == np.uint16:
        decoded = (decoded >> 8).astype(np.uint8)
    elif decoded.dtype != np.uint8:
        raise InvalidImageError(f"Unsupported sample type: {decoded.dtype}")

    if decoded.ndim == 2:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)

    channels = decoded.shape[2]
    if channels == 1:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGB)
    if channels == 3:
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
    if channels == 4:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)

    raise InvalidImageError(f"Unsupported channel count: {channels}")


# =============================================================================
# Geometric Transforms
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def letterbox(
    image: np.ndarray,
    target_size: int = DEFAULT_TARGET_SIZE,
    color: Tuple[int, int, int] = LETTERBOX_COLOR,
) -> LetterboxResult:
    """
    Resize image into a square canvas, anchored top-left, padding the rest.

    The scaled image always starts at row 0, column 0. Detection decoding
    inverts only the scale, so any offset here would shift every box.

    Args:
        image: RGB or RGBA uint8 array with shape [H, W, 3|4]
        target_size: Square canvas edge (e.g., 640)
        color: RGB padding color (default: gray 114)

    Returns:
        LetterboxResult holding the [target_size, target_size, 3] canvas

    Raises:
        InvalidImageError: If the image is empty or not [H, W, 3|4] uint8

    Example:
        >>> image = np.zeros((640, 1280, 3), dtype=np.uint8)
        >>> result = letterbox(image, 640)
        >>> result.pixels.shape, result.scaled_width, result.scaled_height
        ((640, 640, 3), 640, 320)
    """
    _validate_image(image)

    height, width = image.shape[:2]
    if image.shape[2] == 4:
        image = np.ascontiguousarray(image[:, :, :3])

    scale = target_size / max(width, height)
    # A thin image keeps at least one pixel along its short side
    scaled_width = max(1, _round_half_up(width * scale))
    scaled_height = max(1, _round_half_up(height * scale))

    if (scaled_width, scaled_height) != (width, height):
        resized = cv2.resize(
            image,
            (scaled_width, scaled_height),
            interpolation=cv2.INTER_LINEAR,
        )
    else:
        resized = image

    canvas = np.full((target_size, target_size, 3), color, dtype=np.uint8)
    canvas[:scaled_height, :scaled_width] = resized

    return LetterboxResult(
        pixels=canvas,
        original_width=int(width),
        original_height=int(height),
        scaled_width=scaled_width,
        scaled_height=scaled_height,
    )


def _validate_image(image: np.ndarray) -> None:
    if not isinstance(image, np.ndarray):
        raise InvalidImageError(f"Expected numpy array, got {type(image)}")

    if image.ndim != 3:
        raise InvalidImageError(f"Expected 3D array [H, W, C], got {image.ndim}D")

    if image.shape[2] not in (3, 4):
        raise InvalidImageError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise InvalidImageError(f"Expected uint8 dtype, got {image.dtype}")

    height, width = image.shape[:2]
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Invalid image dimensions: {width}x{height}")


# =============================================================================
# Tensor Packing
# =============================================================================

def pack_tensor(
    pixels: Union[LetterboxResult, np.ndarray, bytes],
    target_size: int = DEFAULT_TARGET_SIZE,
    name: str | None = None,
) -> Tensor:
    """
    Convert interleaved RGB bytes into a planar BGR float32 tensor.

    Plane 0 holds every B value, plane 1 every G value, plane 2 every R
    value, each row-major over the S x S grid. Each byte v becomes v / 255.

    Args:
        pixels: LetterboxResult, [S, S, 3] uint8 RGB array, or S*S*3 raw bytes
        target_size: Canvas edge S (used for raw bytes)
        name: Tensor name (default: detector input name from the contract)

    Returns:
        Tensor of shape [1, 3, S, S], float32, values in [0, 1]

    Raises:
        InvalidImageError: If the buffer does not hold S*S*3 bytes
    """
    if isinstance(pixels, LetterboxResult):
        array = pixels.pixels
        target_size = pixels.target_size
    elif isinstance(pixels, (bytes, bytearray, memoryview)):
        expected = target_size * target_size * 3
        if len(pixels) != expected:
            raise InvalidImageError(
                f"Expected {expected} bytes for a {target_size}x{target_size} RGB "
                f"canvas, got {len(pixels)}"
            )
        array = np.frombuffer(pixels, dtype=np.uint8).reshape(target_size, target_size, 3)
    else:
        array = np.asarray(pixels)
        if array.shape != (target_size, target_size, 3) or array.dtype != np.uint8:
            raise InvalidImageError(
                f"Expected uint8 canvas {(target_size, target_size, 3)}, "
                f"got {array.dtype} {array.shape}"
            )

    # RGB -> BGR, HWC -> CHW
    planar = array[:, :, ::-1].transpose(2, 0, 1)

    # Divide in float64, then round once to float32
    normalized = (planar.astype(np.float64) / NORMALIZATION_SCALE).astype(np.float32)

    return Tensor(
        name=name or get_tensor_name("detector_input"),
        data=np.ascontiguousarray(normalized[np.newaxis, ...]),
    )


def unpack_tensor(tensor: Tensor) -> np.ndarray:
    """
    Invert pack_tensor: planar BGR floats back to interleaved RGB bytes.

    Args:
        tensor: Tensor of shape [1, 3, S, S]

    Returns:
        RGB uint8 array [S, S, 3]
    """
    data = tensor.data
    if data.ndim != 4 or data.shape[0] != 1 or data.shape[1] != 3:
        raise InvalidImageError(f"Expected tensor shape [1, 3, S, S], got {list(data.shape)}")

    planar = data[0].astype(np.float64) * NORMALIZATION_SCALE
    interleaved = planar.transpose(1, 2, 0)[:, :, ::-1]

    return np.clip(np.rint(interleaved), 0, 255).astype(np.uint8)
