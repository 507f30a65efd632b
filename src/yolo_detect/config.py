"""
Model Contract Configuration

This module provides a Python interface to contract.yaml, the single
source of truth for the numeric contract shared by the detector and its
NMS network: input size, pad color, normalization, tensor names and
default NMS parameters.

Usage:
    from yolo_detect.config import get_contract_value, get_contract_section

    input_size = get_contract_value("preprocessing", "input_size")
    names = get_contract_section("tensors")
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml


# =============================================================================
# Constants
# =============================================================================

# contract.yaml ships inside the package next to this file
_CONFIG_PATH = Path(__file__).parent / "contract.yaml"

_REQUIRED_SECTIONS = ("preprocessing", "tensors", "nms", "models")


# =============================================================================
# Configuration Loading
# =============================================================================

@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Load and cache the model contract.

    Returns:
        Complete contract dictionary

    Raises:
        FileNotFoundError: If contract.yaml not found
        yaml.YAMLError: If YAML parsing fails

    Example:
        >>> get_config()["preprocessing"]["input_size"]
        640
    """
    if not _CONFIG_PATH.exists():
        raise FileNotFoundError(
            f"Model contract not found: {_CONFIG_PATH}\n"
            f"Expected location: {_CONFIG_PATH.absolute()}"
        )

    with open(_CONFIG_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def reload_config() -> Dict[str, Any]:
    """
    Force reload of the contract (clears cache).

    Returns:
        Freshly loaded contract dictionary
    """
    get_config.cache_clear()
    return get_config()


# =============================================================================
# Section Access
# =============================================================================

def get_contract_section(section: str) -> Dict[str, Any]:
    """
    Get all values of a contract section.

    Args:
        section: Section name (e.g., "preprocessing", "tensors")

    Returns:
        Dictionary of all values in the section

    Raises:
        KeyError: If section not found
    """
    config = get_config()

    if section not in config:
        available = list(config.keys())
        raise KeyError(
            f"Section '{section}' not found in model contract. "
            f"Available sections: {available}"
        )

    return config[section]


def get_contract_value(section: str, key: str) -> Any:
    """
    Get a single contract value by section and key.

    Args:
        section: Top-level section name
        key: Key within the section

    Returns:
        The contract value

    Raises:
        KeyError: If section or key not found

    Example:
        >>> get_contract_value("tensors", "nms_output")
        'selected'
    """
    section_data = get_contract_section(section)

    if key not in section_data:
        available = list(section_data.keys())
        raise KeyError(
            f"Key '{key}' not found in model contract section '{section}'. "
            f"Available keys: {available}"
        )

    return section_data[key]


def get_tensor_name(role: str) -> str:
    """Get the graph tensor name for a role (e.g., "detector_input")."""
    return get_contract_value("tensors", role)


# =============================================================================
# Validation
# =============================================================================

def validate_config() -> List[str]:
    """
    Validate the contract for internal consistency.

    Returns:
        List of problems found (empty if valid)
    """
    errors: List[str] = []
    config = get_config()

    for section in _REQUIRED_SECTIONS:
        if section not in config:
            errors.append(f"Missing section: {section}")

    if errors:
        return errors

    pre = config["preprocessing"]
    if not isinstance(pre.get("input_size"), int) or pre["input_size"] <= 0:
        errors.append("preprocessing.input_size must be a positive integer")

    color = pre.get("pad_color")
    if (
        not isinstance(color, list)
        or len(color) != 3
        or not all(isinstance(c, int) and 0 <= c <= 255 for c in color)
    ):
        errors.append("preprocessing.pad_color must be three integers in [0, 255]")

    if pre.get("channel_order") != "BGR":
        errors.append("preprocessing.channel_order must be 'BGR'")

    nms = config["nms"]
    if not isinstance(nms.get("top_k"), int) or nms["top_k"] < 1:
        errors.append("nms.top_k must be an integer >= 1")
    for key in ("iou_threshold", "confidence_threshold"):
        value = nms.get(key)
        if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
            errors.append(f"nms.{key} must be in [0, 1]")

    return errors
