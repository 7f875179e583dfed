"""Parsing and normalization helpers for configuration values."""

import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_VALID_REASONING_EFFORTS = {"minimal", "low", "medium", "high"}
_VALID_VERBOSITY = {"low", "medium", "high"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_list(value: Any) -> List[str]:
    """Parse a comma-separated string (or list) into stripped, non-empty items."""
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = str(value).split(",")
    return [item.strip() for item in items if item.strip()]


def _parse_int(value: Any, name: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s: %r. Using %s", name, value, default)
        return default


def _normalize_choice(value: str, valid: set, name: str, default: Optional[str]) -> Optional[str]:
    normalized = str(value).strip().lower()
    if normalized not in valid:
        logger.warning(
            "Invalid %s '%s'. Falling back to '%s'. Valid options: %s",
            name,
            value,
            default,
            ", ".join(sorted(valid)),
        )
        return default
    return normalized


def _normalize_reasoning_effort(value: str) -> Optional[str]:
    return _normalize_choice(value, _VALID_REASONING_EFFORTS, "reasoning effort", "medium")


def _normalize_verbosity(value: str) -> Optional[str]:
    return _normalize_choice(value, _VALID_VERBOSITY, "text verbosity", "medium")


def _parse_float(value: Any, name: str, default: Optional[float]) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid number for %s: %r. Using %s", name, value, default)
        return default
