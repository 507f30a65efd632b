"""Inference Engine capability and its ONNX Runtime implementation.

The pipeline depends only on the InferenceEngine protocol:

    handle = engine.load(model_path)
    outputs = engine.run(handle, {"images": tensor})

OnnxRuntimeEngine provides it with consistent session configuration
(thread counts, providers) and validates input names and concrete
dimensions before every run, so a shape mismatch is reported with the
expected and actual shapes instead of surfacing as a runtime crash.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, runtime_checkable

import numpy as np

from yolo_detect.errors import InferenceError, ModelLoadError
from yolo_detect.tensor import Tensor

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_INTRA_OP_THREADS: int = 2
"""ONNX Runtime intra-op parallelism (within single operator)."""

DEFAULT_INTER_OP_THREADS: int = 1
"""ONNX Runtime inter-op parallelism (across operators)."""

Shape = tuple[int | None, ...]

# Map of ONNX type strings to numpy dtypes
_ONNX_TO_NUMPY: dict[str, type] = {
    "tensor(float)": np.float32,
    "tensor(float16)": np.float16,
    "tensor(double)": np.float64,
    "tensor(int64)": np.int64,
    "tensor(int32)": np.int32,
    "tensor(uint8)": np.uint8,
}


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SessionConfig:
    """Configuration for ONNX Runtime inference sessions.

    Attributes:
        intra_op_threads: Number of threads for intra-op parallelism
        inter_op_threads: Number of threads for inter-op parallelism
        providers: Execution providers (default: CPUExecutionProvider)
    """

    intra_op_threads: int = DEFAULT_INTRA_OP_THREADS
    inter_op_threads: int = DEFAULT_INTER_OP_THREADS
    providers: list[str] = field(default_factory=lambda: ["CPUExecutionProvider"])


@dataclass
class EngineHandle:
    """A loaded network.

    Attributes:
        path: Model file the network was loaded from
        inputs: Declared input shapes by name (symbolic dims are None)
        outputs: Declared output shapes by name (symbolic dims are None)
        input_dtypes: Declared input dtypes by name
        session: Runtime-specific session object
    """

    path: Path
    inputs: dict[str, Shape]
    outputs: dict[str, Shape]
    input_dtypes: dict[str, np.dtype] = field(default_factory=dict)
    session: Any = None

    @property
    def name(self) -> str:
        return self.path.name


@runtime_checkable
class InferenceEngine(Protocol):
    """Capability to load a network and execute it on named tensors."""

    def load(self, model_path: str | Path) -> EngineHandle:
        """Load a model file.

        Raises:
            ModelLoadError: If the file is missing or cannot be loaded
        """
        ...

    def run(self, handle: EngineHandle, inputs: Mapping[str, Tensor]) -> dict[str, Tensor]:
        """Execute a loaded network.

        Raises:
            InferenceError: If inputs do not match or execution fails
        """
        ...


# =============================================================================
# Shape helpers
# =============================================================================


def normalize_shape(dims: Any) -> Shape:
    """Convert declared dims to ints, mapping symbolic/unknown dims to None."""
    return tuple(d if isinstance(d, int) and d >= 0 else None for d in dims)


def shape_matches(declared: Shape, actual: tuple[int, ...]) -> bool:
    """True if ranks agree and every concrete declared dim equals the actual."""
    if len(declared) != len(actual):
        return False
    return all(d is None or d == a for d, a in zip(declared, actual))


def format_shape(shape: Shape) -> str:
    return "[" + ", ".join("?" if d is None else str(d) for d in shape) + "]"


def check_inputs(handle: EngineHandle, inputs: Mapping[str, Tensor]) -> None:
    """Verify every declared input is present with a compatible shape.

    Raises:
        InferenceError: Naming the model, the input and both shapes
    """
    missing = [name for name in handle.inputs if name not in inputs]
    if missing:
        raise InferenceError(
            f"{handle.name}: missing inputs {missing}; "
            f"provided {sorted(inputs)}, expected {sorted(handle.inputs)}"
        )

    for name, declared in handle.inputs.items():
        actual = inputs[name].shape
        if not shape_matches(declared, actual):
            raise InferenceError(
                f"{handle.name}: input '{name}' expected shape "
                f"{format_shape(declared)}, got {list(actual)}"
            )


# =============================================================================
# ONNX Runtime Engine
# =============================================================================


class OnnxRuntimeEngine:
    """InferenceEngine backed by ONNX Runtime sessions.

    Example:
        >>> engine = OnnxRuntimeEngine()
        >>> handle = engine.load("models/yolov8n.onnx")
        >>> outputs = engine.run(handle, {"images": tensor})
        >>> outputs["output0"].shape
        (1, 84, 8400)

    Attributes:
        config: Session configuration (thread settings, providers)
    """

    def __init__(self, config: SessionConfig | None = None) -> None:
        self.config = config or SessionConfig()

        logger.info("OnnxRuntimeEngine initialized")
        logger.info(f"  Intra-op threads: {self.config.intra_op_threads}")
        logger.info(f"  Inter-op threads: {self.config.inter_op_threads}")
        logger.info(f"  Providers: {self.config.providers}")

    def load(self, model_path: str | Path) -> EngineHandle:
        """Create an inference session for a model file.

        Args:
            model_path: Path to an ONNX model

        Returns:
            EngineHandle with declared I/O shapes

        Raises:
            ModelLoadError: If the file is missing or ONNX Runtime rejects it
        """
        import onnxruntime as ort

        model_path = Path(model_path)
        if not model_path.is_file():
            raise ModelLoadError(f"Model file not found: {model_path}")

        logger.info(f"Loading model from {model_path}", extra={"model_path": str(model_path)})

        sess_options = ort.SessionOptions()
        sess_options.intra_op_num_threads = self.config.intra_op_threads
        sess_options.inter_op_num_threads = self.config.inter_op_threads

        # Disable memory pattern optimization for consistent behavior
        sess_options.enable_mem_pattern = False

        try:
            session = ort.InferenceSession(
                str(model_path),
                sess_options,
                providers=self.config.providers,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {model_path}: {e}") from e

        handle = EngineHandle(
            path=model_path,
            inputs={meta.name: normalize_shape(meta.shape) for meta in session.get_inputs()},
            outputs={meta.name: normalize_shape(meta.shape) for meta in session.get_outputs()},
            input_dtypes={
                meta.name: np.dtype(_ONNX_TO_NUMPY.get(meta.type, np.float32))
                for meta in session.get_inputs()
            },
            session=session,
        )

        logger.info(f"  ✓ Loaded {handle.name}")
        for name, shape in handle.inputs.items():
            logger.info(f"    Input: {name} {format_shape(shape)}")
        for name, shape in handle.outputs.items():
            logger.info(f"    Output: {name} {format_shape(shape)}")

        return handle

    def run(self, handle: EngineHandle, inputs: Mapping[str, Tensor]) -> dict[str, Tensor]:
        """Run a loaded network.

        Args:
            handle: Handle returned by load()
            inputs: Tensors keyed by graph input name

        Returns:
            Output tensors keyed by graph output name

        Raises:
            InferenceError: If inputs are missing/mis-shaped or the run fails
        """
        check_inputs(handle, inputs)

        feeds = {}
        for name in handle.inputs:
            data = inputs[name].data
            expected = handle.input_dtypes.get(name)
            if expected is not None and data.dtype != expected:
                data = data.astype(expected)
            feeds[name] = np.ascontiguousarray(data)

        output_names = list(handle.outputs)
        try:
            results = handle.session.run(output_names, feeds)
        except Exception as e:
            raise InferenceError(f"{handle.name}: inference failed: {e}") from e

        return {
            name: Tensor(name=name, data=np.asarray(value))
            for name, value in zip(output_names, results)
        }
