"""
Unit Tests for NMS-Row Decoding

This module tests postprocess.py:
- DetectionDecoder: best-class selection, tie-break, inverse scaling
- DetectionBox: label format and annotation mapping
- selected_rows / summarize helpers
"""

import numpy as np
import pytest

from yolo_detect.errors import ClassRegistryMismatchError, InferenceError
from yolo_detect.model.classes import ClassRegistry
from yolo_detect.processing.postprocess import (
    DetectionBox,
    DetectionDecoder,
    format_label,
    selected_rows,
    summarize,
)
from yolo_detect.tensor import Tensor


class TestDetectionDecoder:
    """Tests for DetectionDecoder."""

    def test_scale_example(self, single_class_registry: ClassRegistry) -> None:
        """1280x640 source: boxes scale by 2 after corner conversion."""
        decoder = DetectionDecoder(single_class_registry, target_size=640)
        rows = np.array([[320, 320, 100, 100, 0.9]], dtype=np.float32)

        (box,) = decoder.decode(rows, 1280, 640)

        assert box.bbox == (540.0, 540.0, 200.0, 200.0)
        assert box.class_id == 0
        assert box.class_name == "person"

    def test_tie_break_lowest_index(self) -> None:
        """Equal maxima at indices 2 and 5 resolve to 2."""
        registry = ClassRegistry([f"class{i}" for i in range(6)])
        decoder = DetectionDecoder(registry)
        rows = [[10, 10, 4, 4, 0.1, 0.2, 0.7, 0.3, 0.1, 0.7]]

        (box,) = decoder.decode(rows, 640, 640)

        assert box.class_id == 2
        assert box.class_name == "class2"

    def test_probability_is_max_score(self, three_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(three_class_registry)
        rows = np.array([[50, 60, 10, 20, 0.1, 0.8, 0.3]], dtype=np.float32)

        (box,) = decoder.decode(rows, 640, 640)

        assert box.class_id == 1
        assert box.probability == pytest.approx(0.8)
        assert box.probability == float(np.float32(0.8))

    def test_no_scaling_for_640_square(self, single_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(single_class_registry)
        rows = [[100, 200, 50, 80, 0.5]]

        (box,) = decoder.decode(rows, 640, 640)

        assert box.bbox == (75.0, 160.0, 50.0, 80.0)

    def test_portrait_scale_uses_longer_side(self, single_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(single_class_registry)
        rows = [[100, 100, 20, 40, 0.5]]

        (box,) = decoder.decode(rows, 320, 1600)

        assert decoder.scale_for(320, 1600) == 2.5
        assert box.bbox == (225.0, 200.0, 50.0, 100.0)

    def test_preserves_row_order(self, three_class_registry: ClassRegistry) -> None:
        """Rows are neither sorted nor filtered."""
        decoder = DetectionDecoder(three_class_registry)
        rows = np.array(
            [
                [10, 10, 2, 2, 0.01, 0.0, 0.0],
                [20, 20, 2, 2, 0.0, 0.0, 0.99],
                [30, 30, 2, 2, 0.0, 0.5, 0.0],
            ],
            dtype=np.float32,
        )

        boxes = decoder.decode(rows, 640, 640)

        assert [b.class_id for b in boxes] == [0, 2, 1]
        assert boxes[0].probability == pytest.approx(0.01)

    def test_empty_rows(self, single_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(single_class_registry)

        assert decoder.decode(np.zeros((0, 5), dtype=np.float32), 640, 480) == []

    def test_class_index_outside_registry(self, single_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(single_class_registry)
        rows = [[10, 10, 2, 2, 0.1, 0.9]]

        with pytest.raises(ClassRegistryMismatchError) as exc_info:
            decoder.decode(rows, 640, 640)

        assert exc_info.value.class_id == 1
        assert exc_info.value.registry_size == 1
        assert "size 1" in str(exc_info.value)

    def test_rows_without_scores(self, single_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(single_class_registry)

        with pytest.raises(InferenceError, match="Expected detection rows"):
            decoder.decode([[1, 2, 3, 4]], 640, 640)


class TestDetectionBox:
    """Tests for DetectionBox formatting."""

    @pytest.mark.parametrize(
        "probability,expected",
        [
            (0.9, "person (90.00%)"),
            (0.12345, "person (12.35%)"),
            (1.0, "person (100.00%)"),
            (0.0, "person (0.00%)"),
        ],
    )
    def test_format_label(self, probability: float, expected: str) -> None:
        assert format_label("person", probability) == expected

    def test_to_annotation(self) -> None:
        box = DetectionBox(
            class_id=2,
            class_name="car",
            probability=0.5,
            bbox=(1.0, 2.0, 3.0, 4.0),
            label="car (50.00%)",
        )

        assert box.to_annotation() == {
            "type": "rect",
            "label": "car (50.00%)",
            "classId": 2,
            "className": "car",
            "probability": 0.5,
            "bbox": [1.0, 2.0, 3.0, 4.0],
        }


class TestHelpers:
    """Tests for selected_rows and summarize."""

    def test_selected_rows_drops_batch(self) -> None:
        data = np.zeros((1, 3, 6), dtype=np.float32)

        rows = selected_rows(Tensor("selected", data))

        assert rows.shape == (3, 6)

    def test_selected_rows_rejects_batches(self) -> None:
        with pytest.raises(InferenceError, match="selected"):
            selected_rows(Tensor("selected", np.zeros((2, 3, 6), dtype=np.float32)))

    def test_summarize_unique_labels_in_order(self, three_class_registry: ClassRegistry) -> None:
        decoder = DetectionDecoder(three_class_registry)
        rows = [
            [10, 10, 2, 2, 0.0, 0.5, 0.0],
            [20, 20, 2, 2, 0.9, 0.0, 0.0],
            [30, 30, 2, 2, 0.0, 0.5, 0.0],
        ]

        summary = summarize(decoder.decode(rows, 640, 640))

        assert summary["detected"] == ["bicycle (50.00%)", "person (90.00%)"]
        assert len(summary["annotations"]) == 3
        assert summary["annotations"][1]["className"] == "person"
