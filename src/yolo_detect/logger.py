"""Structured JSON logging for the detection pipeline.

Every record is one JSON object. Beyond the standard fields, records carry
the pipeline's own vocabulary:

- detection_id: the detect() call the record belongs to
- state / previous_state: lifecycle transitions (UNLOADED, LOADING, READY,
  FAILED), emitted through log_transition()
- metrics: detection count, source image shape and latency

Logs metadata only (paths, shapes, counts, timings), never pixel or tensor
contents.
"""

import json
import logging
import sys
from contextvars import ContextVar
from enum import Enum
from typing import Any, TextIO

# Context variable for per-call detection ID tracking (asyncio-safe)
detection_id_var: ContextVar[str | None] = ContextVar("detection_id", default=None)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_METRIC_FIELDS = ("detections", "shape", "latency_ms")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class JSONFormatter(logging.Formatter):
    """JSON formatter for pipeline log records.

    Output fields:
    - timestamp, level, logger, message: always present
    - detection_id: when logged inside a detect() call
    - model_path: when the record names a model file
    - state, previous_state: when the record reports a lifecycle transition
    - metrics: {detections, shape, latency_ms}, whichever were given
    - exception: formatted traceback
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        detection_id = detection_id_var.get()
        if detection_id:
            log_data["detection_id"] = detection_id

        model_path = getattr(record, "model_path", None)
        if model_path is not None:
            log_data["model_path"] = str(model_path)

        state = getattr(record, "state", None)
        if state is not None:
            log_data["state"] = _plain(state)
            previous = getattr(record, "previous_state", None)
            if previous is not None:
                log_data["previous_state"] = _plain(previous)

        metrics = {key: getattr(record, key) for key in _METRIC_FIELDS if hasattr(record, key)}
        if metrics:
            log_data["metrics"] = metrics

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def log_transition(
    log: logging.Logger,
    previous: Any,
    current: Any,
    reason: str | None = None,
    **fields: Any,
) -> None:
    """Log a lifecycle transition; transitions into "failed" log at ERROR.

    Example:
        >>> log_transition(logger, PipelineState.LOADING, PipelineState.READY,
        ...                latency_ms=812.4)
        {"message": "Pipeline loading -> ready", "state": "ready",
         "previous_state": "loading", "metrics": {"latency_ms": 812.4}, ...}
    """
    previous, current = _plain(previous), _plain(current)
    level = logging.ERROR if current == "failed" else logging.INFO
    message = f"Pipeline {previous} -> {current}"
    if reason:
        message = f"{message}: {reason}"
    log.log(level, message, extra={"state": current, "previous_state": previous, **fields})


def setup_logging(log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """Install the JSON formatter on the root logger.

    Args:
        log_level: One of LOG_LEVELS (case-insensitive)
        stream: Output stream (default: sys.stdout)

    Raises:
        ValueError: If log_level is not a known level
    """
    level_name = log_level.upper()
    if level_name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {log_level!r}; expected one of {list(LOG_LEVELS)}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
