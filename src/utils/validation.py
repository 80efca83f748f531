"""Numeric input validation utilities."""

import logging
import math
from typing import Any

logger = logging.getLogger(__name__)


def to_float(value: Any, name: str) -> float:
    """
    Coerce a raw input (number or numeric string) to a float.

    Raises:
        ValueError: If the value is missing or not numeric
    """
    if value is None:
        raise ValueError(f"{name} is required")
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got a boolean")
    if isinstance(value, str):
        value = value.strip().replace(",", "").lstrip("$")
        if not value:
            raise ValueError(f"{name} is required")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e


def require_finite(value: float, name: str) -> float:
    """Raise ValueError unless value is a finite number."""
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value}")
    return value


def require_positive(value: float, name: str) -> float:
    """Raise ValueError unless value is finite and strictly positive."""
    require_finite(value, name)
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def require_non_negative(value: float, name: str) -> float:
    """Raise ValueError unless value is finite and zero or greater."""
    require_finite(value, name)
    if value < 0:
        raise ValueError(f"{name} cannot be negative, got {value}")
    return value


def safe_ratio(numerator: float, denominator: float) -> float:
    """
    Divide, returning 0.0 when the result would not be finite.

    Used wherever a metric must stay renderable (no NaN or Infinity).
    """
    if denominator == 0:
        return 0.0
    result = numerator / denominator
    if not math.isfinite(result):
        logger.debug(f"Non-finite ratio {numerator}/{denominator} replaced with 0")
        return 0.0
    return result
