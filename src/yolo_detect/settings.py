"""Runtime settings for the detection pipeline.

Environment-based settings (prefix ``YOLO_DETECT_``, optional ``.env``
file). Uses pydantic-settings for validation and type coercion.
"""

from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import get_contract_value
from .logger import LOG_LEVELS

if TYPE_CHECKING:
    from .pipeline import DetectorConfig


class Settings(BaseSettings):
    """Detection pipeline settings.

    Attributes:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        MODELS_DIR: Directory searched when no model path is given
        MODEL_PATH: Detector model file or directory
        NMS_MODEL_PATH: NMS model file
        CLASSES_PATH: Class list file
        TOP_K: Detections kept per class (contract default when unset)
        IOU_THRESHOLD: NMS overlap threshold (contract default when unset)
        CONFIDENCE_THRESHOLD: NMS score threshold (contract default when unset)
        INTRA_OP_THREADS: ONNX Runtime intra-op threads
        INTER_OP_THREADS: ONNX Runtime inter-op threads
        PROVIDERS: ONNX Runtime execution providers
    """

    LOG_LEVEL: str = "INFO"
    MODELS_DIR: str = "models"
    MODEL_PATH: Optional[str] = None
    NMS_MODEL_PATH: Optional[str] = None
    CLASSES_PATH: Optional[str] = None
    TOP_K: Optional[int] = Field(default=None, ge=1)
    IOU_THRESHOLD: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    CONFIDENCE_THRESHOLD: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    INTRA_OP_THREADS: int = Field(default=2, ge=1)
    INTER_OP_THREADS: int = Field(default=1, ge=1)
    PROVIDERS: list[str] = ["CPUExecutionProvider"]

    model_config = SettingsConfigDict(
        env_prefix="YOLO_DETECT_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(LOG_LEVELS)}, got {value!r}")
        return level

    def detector_config(self) -> "DetectorConfig":
        """Build a DetectorConfig, filling unset values from the model contract."""
        from .pipeline import DetectorConfig

        return DetectorConfig(
            top_k=self.TOP_K if self.TOP_K is not None else get_contract_value("nms", "top_k"),
            iou_threshold=(
                self.IOU_THRESHOLD
                if self.IOU_THRESHOLD is not None
                else get_contract_value("nms", "iou_threshold")
            ),
            confidence_threshold=(
                self.CONFIDENCE_THRESHOLD
                if self.CONFIDENCE_THRESHOLD is not None
                else get_contract_value("nms", "confidence_threshold")
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern).

    Returns:
        Validated Settings instance
    """
    return Settings()
