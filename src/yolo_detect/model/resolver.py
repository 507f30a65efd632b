"""Model and class-list file resolution.

Turns an optional user-supplied path into exactly one detector model, one
NMS model and one class list. The pipeline itself never searches the
filesystem; it receives the resolved paths.

Class list priority:
    1. explicit classes_path
    2. <model stem>.classes.txt next to the model
    3. classes.txt next to the model
    4. classes.txt in the model's parent directory
    5. bundled default (COCO)
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from yolo_detect.config import get_contract_value
from yolo_detect.errors import ConfigurationError
from yolo_detect.model.classes import default_classes_path

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".onnx"
NMS_PREFIX = "nms-"
CLASSES_FILENAME = "classes.txt"


@dataclass(frozen=True)
class ResolvedModel:
    """Resolved model files.

    Attributes:
        model_path: Detector model
        nms_model_path: NMS model
        classes_path: Class list
        classes_source: Which rule selected classes_path
    """

    model_path: Path
    nms_model_path: Path
    classes_path: Path
    classes_source: str


def find_model_in_dir(directory: Path) -> Path:
    """Return the single detector model in a directory.

    NMS models (``nms-*.onnx``) are not candidates.

    Raises:
        ConfigurationError: If there are zero or several candidates
    """
    candidates = sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.suffix.lower() == MODEL_SUFFIX
        and not p.name.lower().startswith(NMS_PREFIX)
    )

    if not candidates:
        raise ConfigurationError(f"No {MODEL_SUFFIX} model found in {directory}")

    if len(candidates) > 1:
        names = [p.name for p in candidates]
        raise ConfigurationError(
            f"Multiple candidate models in {directory}: {names}. "
            f"Pass the model file path explicitly."
        )

    return candidates[0]


def resolve_classes(model_path: Path, classes_path: str | Path | None = None) -> tuple[Path, str]:
    """Pick the class list for a model by priority search.

    Returns:
        (path, rule name)

    Raises:
        ConfigurationError: If an explicit classes_path does not exist
    """
    if classes_path is not None:
        explicit = Path(classes_path)
        if not explicit.is_file():
            raise ConfigurationError(f"Class list not found: {explicit}")
        return explicit, "explicit"

    model_dir = model_path.parent
    candidates = [
        (model_dir / f"{model_path.stem}.classes.txt", "model-specific"),
        (model_dir / CLASSES_FILENAME, "model-directory"),
        (model_dir.parent / CLASSES_FILENAME, "parent-directory"),
    ]
    for candidate, source in candidates:
        if candidate.is_file():
            return candidate, source

    return default_classes_path(), "bundled"


def resolve_nms_model(
    model_path: Path,
    nms_model_path: str | Path | None = None,
    models_dir: str | Path | None = None,
) -> Path:
    """Pick the NMS model: explicit > next to the detector > models_dir.

    Raises:
        ConfigurationError: If no NMS model is found
    """
    if nms_model_path is not None:
        explicit = Path(nms_model_path)
        if not explicit.is_file():
            raise ConfigurationError(f"NMS model not found: {explicit}")
        return explicit

    filename = get_contract_value("nms", "model_file")
    searched = [model_path.parent / filename]
    if models_dir is not None:
        searched.append(Path(models_dir) / filename)

    for candidate in searched:
        if candidate.is_file():
            return candidate

    raise ConfigurationError(
        f"NMS model '{filename}' not found; searched {[str(p) for p in searched]}"
    )


def resolve_model_files(
    path: str | Path | None = None,
    *,
    classes_path: str | Path | None = None,
    nms_model_path: str | Path | None = None,
    models_dir: str | Path | None = None,
) -> ResolvedModel:
    """Resolve a model file or directory into the full set of files.

    Args:
        path: Model file or directory (default: models_dir)
        classes_path: Explicit class list (highest priority)
        nms_model_path: Explicit NMS model
        models_dir: Default directory for the detector and NMS models

    Returns:
        ResolvedModel

    Raises:
        ConfigurationError: If a file is missing or a directory is ambiguous

    Example:
        >>> resolved = resolve_model_files("models/")
        >>> resolved.model_path.name, resolved.classes_source
        ('yolov8n.onnx', 'bundled')
    """
    if path is None:
        if models_dir is None:
            raise ConfigurationError("No model path given and no models directory configured")
        path = models_dir

    target = Path(path)
    if target.is_dir():
        model_path = find_model_in_dir(target)
    elif target.is_file():
        model_path = target
    else:
        raise ConfigurationError(f"Model path not found: {target}")

    nms_path = resolve_nms_model(model_path, nms_model_path, models_dir)
    resolved_classes, source = resolve_classes(model_path, classes_path)

    logger.info(
        f"Resolved model {model_path} (nms: {nms_path}, classes: {resolved_classes} [{source}])",
        extra={"model_path": str(model_path)},
    )

    return ResolvedModel(
        model_path=model_path,
        nms_model_path=nms_path,
        classes_path=resolved_classes,
        classes_source=source,
    )
