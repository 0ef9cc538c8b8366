"""Environment parsing helpers for consistent boolean/numeric/list handling."""
from __future__ import annotations

import os
from typing import List, Optional

from .logging import get_logger

logger = get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def clean_env_value(value: Optional[str]) -> Optional[str]:
    """
    Strip an inline ``# comment`` and surrounding whitespace from a numeric or
    boolean value. Free-text settings are never passed through here.
    """
    if not value:
        return value
    return value.split("#")[0].strip()


def get_str(name: str, default: str = "") -> str:
    raw = (os.getenv(name) or "").strip()
    return raw if raw else default


def get_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean env var with common truthy values."""
    raw = clean_env_value(os.getenv(name))
    if not raw:
        return default
    return raw.lower() in _TRUTHY


def get_int(name: str, default: int) -> int:
    raw = clean_env_value(os.getenv(name))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default


def get_float(name: str, default: float) -> float:
    raw = clean_env_value(os.getenv(name))
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value '{raw}', using default {default}")
        return default


def get_list(name: str, default: Optional[List[str]] = None) -> Optional[List[str]]:
    """Split a comma-separated env var, dropping blanks. Unset returns ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return [s.strip() for s in raw.split(",") if s.strip()]
