"""Detection pipeline: bytes in, labeled image-space boxes out.

Stages per detect() call:
    1. Decode image bytes
    2. Letterbox to 640x640 (top-left anchored) and pack to [1, 3, 640, 640]
    3. Detector network: images -> output0
    4. NMS network: (detection, config) -> selected
    5. Decode selected rows into DetectionBox objects

Networks are loaded on the first detect() call. Concurrent first calls
share a single in-flight load. A failed load is permanent for the
instance.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np

from yolo_detect.config import get_contract_value, get_tensor_name
from yolo_detect.errors import (
    ConfigurationError,
    EngineLoadError,
    InferenceError,
    RegistryLoadError,
)
from yolo_detect.logger import detection_id_var, log_transition
from yolo_detect.model.classes import ClassRegistry
from yolo_detect.model.engine import (
    EngineHandle,
    InferenceEngine,
    format_shape,
    shape_matches,
)
from yolo_detect.processing.postprocess import (
    DetectionBox,
    DetectionDecoder,
    selected_rows,
)
from yolo_detect.processing.yolo_preprocess import YOLOPreprocessor
from yolo_detect.tensor import Tensor

logger = logging.getLogger(__name__)

ClassLoader = Callable[[], ClassRegistry]


@dataclass(frozen=True)
class DetectorConfig:
    """NMS parameters fed to the NMS network as its config tensor.

    Attributes:
        top_k: Maximum detections kept per class (>= 1)
        iou_threshold: Overlap above which boxes are duplicates, [0, 1]
        confidence_threshold: Minimum class score kept, [0, 1]
    """

    top_k: int = get_contract_value("nms", "top_k")
    iou_threshold: float = get_contract_value("nms", "iou_threshold")
    confidence_threshold: float = get_contract_value("nms", "confidence_threshold")

    def __post_init__(self) -> None:
        if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) or self.top_k < 1:
            raise ConfigurationError(f"top_k must be an integer >= 1, got {self.top_k!r}")
        for key in ("iou_threshold", "confidence_threshold"):
            value = getattr(self, key)
            if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{key} must be in [0, 1], got {value!r}")

    def to_tensor(self, name: str | None = None) -> Tensor:
        """Config tensor [top_k, iou_threshold, confidence_threshold], float32."""
        return Tensor(
            name=name or get_tensor_name("nms_config_input"),
            data=np.array(
                [self.top_k, self.iou_threshold, self.confidence_threshold],
                dtype=np.float32,
            ),
        )


class PipelineState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class DetectionPipeline:
    """Object detection over encoded images.

    Example:
        >>> pipeline = DetectionPipeline(
        ...     OnnxRuntimeEngine(),
        ...     model_path="models/yolov8n.onnx",
        ...     nms_model_path="models/nms-yolov8.onnx",
        ... )
        >>> boxes = await pipeline.detect(image_bytes)
        >>> boxes[0].label
        'person (91.27%)'

    Attributes:
        engine: Inference Engine capability
        model_path: Detector model file
        nms_model_path: NMS model file
        config: NMS parameters
        state: Current PipelineState
    """

    def __init__(
        self,
        engine: InferenceEngine,
        model_path: str | Path,
        nms_model_path: str | Path,
        class_loader: ClassLoader = ClassRegistry.default,
        config: DetectorConfig | None = None,
    ) -> None:
        self.engine = engine
        self.model_path = Path(model_path)
        self.nms_model_path = Path(nms_model_path)
        self.config = config or DetectorConfig()
        self.preprocessor = YOLOPreprocessor()

        self._config_tensor = self.config.to_tensor()
        self._detector: EngineHandle | None = None
        self._nms: EngineHandle | None = None
        self._load_task: asyncio.Future | None = None
        self._failure: Exception | None = None
        self.state = PipelineState.UNLOADED

        try:
            self.classes = class_loader()
        except RegistryLoadError as e:
            self.classes = None
            self.decoder = None
            self._fail(e)
            return

        self.decoder = DetectionDecoder(self.classes, self.preprocessor.input_size)

        logger.info(
            f"Pipeline created with {len(self.classes)} classes "
            f"(top_k={self.config.top_k}, iou={self.config.iou_threshold}, "
            f"confidence={self.config.confidence_threshold})",
            extra={"model_path": str(self.model_path)},
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def is_ready(self) -> bool:
        return self.state is PipelineState.READY

    def _set_state(self, state: PipelineState, reason: str | None = None, **fields) -> None:
        previous, self.state = self.state, state
        log_transition(
            logger, previous, state, reason, model_path=str(self.model_path), **fields
        )

    def _fail(self, error: Exception) -> None:
        self._failure = error
        self._set_state(PipelineState.FAILED, str(error))

    def _raise_failure(self) -> None:
        error = self._failure
        if isinstance(error, RegistryLoadError):
            raise RegistryLoadError(f"Pipeline unusable: {error}") from error
        raise EngineLoadError(f"Pipeline unusable: {error}") from error

    async def ensure_ready(self) -> None:
        """Load the networks once; later and concurrent callers share the load.

        Raises:
            RegistryLoadError: If the class registry failed at construction
            EngineLoadError: If loading, validation or warmup failed
        """
        if self.state is PipelineState.READY:
            return
        if self.state is PipelineState.FAILED:
            self._raise_failure()

        if self._load_task is None:
            self._set_state(PipelineState.LOADING)
            self._load_task = asyncio.ensure_future(self._load())
        elif self._load_task.cancelled():
            # Cancelled before _load ran; no failure was recorded
            self._fail(EngineLoadError("Network load was cancelled"))
            self._raise_failure()

        try:
            await asyncio.shield(self._load_task)
        except asyncio.CancelledError:
            if self._load_task.cancelled() and self.state is PipelineState.LOADING:
                self._fail(EngineLoadError("Network load was cancelled"))
            raise

    async def _load(self) -> None:
        t0 = time.perf_counter()
        try:
            detector = await asyncio.to_thread(self.engine.load, self.model_path)
            nms = await asyncio.to_thread(self.engine.load, self.nms_model_path)
            self._validate(detector, nms)
            await self._warmup(detector)
        except asyncio.CancelledError:
            self._fail(EngineLoadError("Network load was cancelled"))
            raise
        except Exception as e:
            self._fail(e)
            raise EngineLoadError(f"Failed to load detection networks: {e}") from e

        self._detector = detector
        self._nms = nms
        self._set_state(PipelineState.READY, latency_ms=(time.perf_counter() - t0) * 1000)

    def _validate(self, detector: EngineHandle, nms: EngineHandle) -> None:
        """Check declared shapes against the preprocessing and class contract."""
        input_name = get_tensor_name("detector_input")
        output_name = get_tensor_name("detector_output")
        expected_input = self.preprocessor.get_input_shape()

        declared = detector.inputs.get(input_name)
        if declared is None:
            raise EngineLoadError(
                f"{detector.name}: no input '{input_name}' (inputs: {sorted(detector.inputs)})"
            )
        if not shape_matches(declared, expected_input):
            raise EngineLoadError(
                f"{detector.name}: input '{input_name}' declared {format_shape(declared)}, "
                f"preprocessing produces {list(expected_input)}"
            )

        declared_out = detector.outputs.get(output_name)
        if declared_out is None:
            raise EngineLoadError(
                f"{detector.name}: no output '{output_name}' (outputs: {sorted(detector.outputs)})"
            )
        if len(declared_out) == 3 and declared_out[1] is not None:
            channels = declared_out[1] - 4
            if channels != len(self.classes):
                raise EngineLoadError(
                    f"{detector.name}: output '{output_name}' carries {channels} class "
                    f"scores but the class registry has {len(self.classes)} names"
                )

        for role in ("nms_detection_input", "nms_config_input"):
            name = get_tensor_name(role)
            if name not in nms.inputs:
                raise EngineLoadError(
                    f"{nms.name}: no input '{name}' (inputs: {sorted(nms.inputs)})"
                )
        nms_output = get_tensor_name("nms_output")
        if nms_output not in nms.outputs:
            raise EngineLoadError(
                f"{nms.name}: no output '{nms_output}' (outputs: {sorted(nms.outputs)})"
            )

    async def _warmup(self, detector: EngineHandle) -> None:
        tensor = Tensor.zeros(
            get_tensor_name("detector_input"),
            self.preprocessor.get_input_shape(),
        )
        await asyncio.to_thread(self.engine.run, detector, {tensor.name: tensor})

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #

    async def detect(self, image_bytes: bytes) -> list[DetectionBox]:
        """Detect objects in an encoded image.

        Args:
            image_bytes: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            Boxes in original-image pixels, in NMS output order

        Raises:
            RegistryLoadError: If the class registry failed at construction
            EngineLoadError: If the networks could not be loaded
            InvalidImageError: If the image cannot be decoded
            InferenceError: If the engine fails or returns unexpected tensors
            ClassRegistryMismatchError: If a row's class is not in the registry
        """
        detection_id_var.set(uuid.uuid4().hex)
        await self.ensure_ready()

        t0 = time.perf_counter()
        prep = self.preprocessor.preprocess_bytes(image_bytes)

        detector_out = await asyncio.to_thread(
            self.engine.run, self._detector, {prep.tensor.name: prep.tensor}
        )
        raw = _require_output(detector_out, get_tensor_name("detector_output"))

        detection = raw.renamed(get_tensor_name("nms_detection_input"))
        nms_out = await asyncio.to_thread(
            self.engine.run,
            self._nms,
            {detection.name: detection, self._config_tensor.name: self._config_tensor},
        )
        selected = _require_output(nms_out, get_tensor_name("nms_output"))

        boxes = self.decoder.decode(
            selected_rows(selected),
            prep.original_width,
            prep.original_height,
        )

        logger.info(
            "Detection complete",
            extra={
                "detections": len(boxes),
                "shape": [prep.original_height, prep.original_width],
                "latency_ms": (time.perf_counter() - t0) * 1000,
            },
        )
        return boxes


def _require_output(outputs: dict[str, Tensor], name: str) -> Tensor:
    if name not in outputs:
        raise InferenceError(f"Engine returned no '{name}' output (got {sorted(outputs)})")
    return outputs[name]
