"""Exception hierarchy for the detection pipeline.

Every error raised by this package derives from DetectionError, and also
from the builtin exception that best describes it, so callers can catch
either the package-specific type or the generic one.
"""


class DetectionError(Exception):
    """Base class for all yolo_detect errors."""


class InvalidImageError(DetectionError, ValueError):
    """Image bytes could not be decoded or the pixel grid is unusable."""


class ConfigurationError(DetectionError, ValueError):
    """Settings are out of range or model files cannot be resolved."""


class ModelLoadError(DetectionError, RuntimeError):
    """A model file is missing or was rejected by the inference runtime."""


class EngineLoadError(DetectionError, RuntimeError):
    """The pipeline failed to bring its networks to a ready state.

    Fatal to the pipeline instance: it is not retried.
    """


class RegistryLoadError(DetectionError, RuntimeError):
    """The class list is missing, unreadable or empty."""


class ClassRegistryMismatchError(DetectionError, IndexError):
    """A decoded class index has no entry in the class registry.

    Attributes:
        class_id: Index produced by the network
        registry_size: Number of names in the registry
    """

    def __init__(self, class_id: int, registry_size: int) -> None:
        self.class_id = class_id
        self.registry_size = registry_size
        super().__init__(
            f"Class index {class_id} is outside the class registry "
            f"(size {registry_size}); the model and class list do not match"
        )


class InferenceError(DetectionError, RuntimeError):
    """The inference engine failed or returned unexpected tensors."""
