"""NMS output decoding.

The NMS network has already applied confidence, IoU and top-k filtering.
This module only turns its surviving rows into labeled boxes in the
original image's pixel space. It never filters or reorders rows.

Row layout (model space, 640x640 letterbox canvas):
    [cx, cy, w, h, score_0, score_1, ..., score_{C-1}]
"""

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import numpy as np

from yolo_detect.config import get_contract_value
from yolo_detect.errors import InferenceError
from yolo_detect.model.classes import ClassRegistry
from yolo_detect.tensor import Tensor

_BOX_VALUES = 4


@dataclass(frozen=True)
class DetectionBox:
    """A detected object in original-image coordinates.

    Attributes:
        class_id: Index of the best-scoring class
        class_name: Registry name for class_id
        probability: Best class score, [0, 1]
        bbox: (x, y, width, height), top-left corner form
        label: "<class_name> (<probability as percent, 2 decimals>%)"
    """

    class_id: int
    class_name: str
    probability: float
    bbox: tuple[float, float, float, float]
    label: str

    def to_annotation(self) -> dict[str, Any]:
        """Annotation mapping in the shape downstream drawing tools consume."""
        return {
            "type": "rect",
            "label": self.label,
            "classId": self.class_id,
            "className": self.class_name,
            "probability": self.probability,
            "bbox": list(self.bbox),
        }


def format_label(class_name: str, probability: float) -> str:
    return f"{class_name} ({probability * 100:.2f}%)"


class DetectionDecoder:
    """Decode NMS rows into DetectionBox objects.

    Example:
        >>> decoder = DetectionDecoder(ClassRegistry(["person"]))
        >>> rows = np.array([[320, 320, 100, 100, 0.9]], dtype=np.float32)
        >>> decoder.decode(rows, 1280, 640)[0].bbox
        (540.0, 540.0, 200.0, 200.0)
    """

    def __init__(
        self,
        class_registry: ClassRegistry,
        target_size: int = get_contract_value("preprocessing", "input_size"),
    ) -> None:
        self.class_registry = class_registry
        self.target_size = target_size

    def scale_for(self, original_width: int, original_height: int) -> float:
        """Inverse of the letterbox scale, recomputed from the original size."""
        return max(original_width, original_height) / self.target_size

    def decode(
        self,
        rows: np.ndarray | Sequence[Sequence[float]],
        original_width: int,
        original_height: int,
    ) -> list[DetectionBox]:
        """Convert rows to boxes, preserving row order.

        Args:
            rows: [N, 4 + C] array (or nested sequence) of NMS rows
            original_width: Width of the source image
            original_height: Height of the source image

        Returns:
            One DetectionBox per row

        Raises:
            InferenceError: If rows are not [N, >= 5]
            ClassRegistryMismatchError: If a class index exceeds the registry
        """
        rows = np.asarray(rows, dtype=np.float64)
        if rows.size == 0:
            return []
        if rows.ndim != 2 or rows.shape[1] <= _BOX_VALUES:
            raise InferenceError(
                f"Expected detection rows [N, 4 + classes], got shape {list(rows.shape)}"
            )

        scale = self.scale_for(original_width, original_height)
        return [self._decode_row(row, scale) for row in rows]

    def _decode_row(self, row: np.ndarray, scale: float) -> DetectionBox:
        cx, cy, w, h = (float(v) for v in row[:_BOX_VALUES])
        scores = row[_BOX_VALUES:]

        # argmax returns the first index on ties
        class_id = int(np.argmax(scores))
        probability = float(scores[class_id])
        class_name = self.class_registry.name_of(class_id)

        # Center form -> corner form, then scale, with no rounding in between
        bbox = (
            (cx - 0.5 * w) * scale,
            (cy - 0.5 * h) * scale,
            w * scale,
            h * scale,
        )

        return DetectionBox(
            class_id=class_id,
            class_name=class_name,
            probability=probability,
            bbox=bbox,
            label=format_label(class_name, probability),
        )


def selected_rows(selected: Tensor) -> np.ndarray:
    """Flatten the NMS output tensor [1, N, 4 + C] into rows [N, 4 + C].

    Raises:
        InferenceError: If the tensor does not have that layout
    """
    data = selected.data
    if data.ndim == 3 and data.shape[0] == 1:
        return data[0]
    if data.ndim == 2:
        return data
    raise InferenceError(
        f"Expected '{selected.name}' with shape [1, N, 4 + classes], "
        f"got {list(data.shape)}"
    )


def summarize(boxes: Iterable[DetectionBox]) -> dict[str, list]:
    """Unique labels (first-seen order) plus every box as an annotation."""
    boxes = list(boxes)
    return {
        "detected": list(dict.fromkeys(box.label for box in boxes)),
        "annotations": [box.to_annotation() for box in boxes],
    }
