"""
Pytest Fixtures - Shared Test Fixtures for yolo_detect

Fixtures:
    sample_image: Landscape RGB image (640x1280) for testing
    sample_image_square: Square RGB image (640x640) for testing
    sample_image_portrait: Portrait RGB image (1280x640) for testing
    encode_png: Helper turning an RGB(A) array into PNG bytes
    single_class_registry / three_class_registry: small ClassRegistry objects
    stub_engine_factory: Builds StubEngine instances that count loads
"""

import time
from pathlib import Path
from typing import Callable, Mapping

import cv2
import numpy as np
import pytest

from yolo_detect.errors import ModelLoadError
from yolo_detect.model.classes import ClassRegistry
from yolo_detect.model.engine import EngineHandle, check_inputs
from yolo_detect.tensor import Tensor


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_image() -> np.ndarray:
    """
    Landscape RGB image (width 1280, height 640).

    Returns:
        RGB uint8 array with shape [640, 1280, 3]
    """
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (640, 1280, 3), dtype=np.uint8)


@pytest.fixture
def sample_image_square() -> np.ndarray:
    """
    Square RGB image (640x640).

    Returns:
        RGB uint8 array with shape [640, 640, 3]
    """
    rng = np.random.default_rng(43)
    return rng.integers(0, 256, (640, 640, 3), dtype=np.uint8)


@pytest.fixture
def sample_image_portrait() -> np.ndarray:
    """
    Portrait RGB image (width 640, height 1280).

    Returns:
        RGB uint8 array with shape [1280, 640, 3]
    """
    rng = np.random.default_rng(44)
    return rng.integers(0, 256, (1280, 640, 3), dtype=np.uint8)


@pytest.fixture
def encode_png() -> Callable[[np.ndarray], bytes]:
    """Encode an RGB or RGBA uint8 array as PNG bytes."""

    def _encode(image: np.ndarray) -> bytes:
        if image.ndim == 3 and image.shape[2] == 4:
            bgr = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
        else:
            bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
        ok, encoded = cv2.imencode(".png", bgr)
        assert ok
        return encoded.tobytes()

    return _encode


# =============================================================================
# Class Registry Fixtures
# =============================================================================

@pytest.fixture
def single_class_registry() -> ClassRegistry:
    return ClassRegistry(["person"])


@pytest.fixture
def three_class_registry() -> ClassRegistry:
    return ClassRegistry(["person", "bicycle", "car"])


# =============================================================================
# Stub Inference Engine
# =============================================================================

class StubEngine:
    """Inference Engine stand-in that records every load and run.

    The detector returns zeros; the NMS network returns the configured
    rows as its 'selected' output with shape [1, N, 4 + C].
    """

    def __init__(
        self,
        rows: np.ndarray,
        num_classes: int | None,
        input_shape: tuple = (1, 3, 640, 640),
        fail_load: bool = False,
        load_delay: float = 0.0,
    ) -> None:
        self.rows = np.asarray(rows, dtype=np.float32)
        self.num_classes = num_classes
        self.input_shape = input_shape
        self.fail_load = fail_load
        self.load_delay = load_delay
        self.load_calls: list[Path] = []
        self.run_calls: list[tuple[str, dict[str, Tensor]]] = []

    @property
    def detector_loads(self) -> int:
        return sum(1 for p in self.load_calls if not p.name.startswith("nms-"))

    def load(self, model_path) -> EngineHandle:
        path = Path(model_path)
        self.load_calls.append(path)
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.fail_load:
            raise ModelLoadError(f"Model file not found: {path}")

        channels = None if self.num_classes is None else 4 + self.num_classes
        if path.name.startswith("nms-"):
            return EngineHandle(
                path=path,
                inputs={"detection": (1, channels, None), "config": (3,)},
                outputs={"selected": (1, None, channels)},
            )
        return EngineHandle(
            path=path,
            inputs={"images": self.input_shape},
            outputs={"output0": (1, channels, 8400)},
        )

    def run(self, handle: EngineHandle, inputs: Mapping[str, Tensor]) -> dict[str, Tensor]:
        check_inputs(handle, inputs)
        self.run_calls.append((handle.name, dict(inputs)))

        if "images" in handle.inputs:
            channels = self.rows.shape[1] if self.rows.ndim == 2 else 4 + (self.num_classes or 1)
            return {"output0": Tensor("output0", np.zeros((1, channels, 8), dtype=np.float32))}

        return {"selected": Tensor("selected", self.rows[np.newaxis, ...])}


@pytest.fixture
def stub_engine_factory() -> Callable[..., StubEngine]:
    """Build StubEngine instances (rows, num_classes, ...)."""
    return StubEngine
