"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CacheIOTracker",
    "Credentials",
    "Progress",
    "RateLimiter",
    "fuzzy_score",
    "load_credentials",
    "normalize_game_name",
    "read_csv",
    "write_csv",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {
        "CacheIOTracker",
        "Credentials",
        "RateLimiter",
        "fuzzy_score",
        "load_credentials",
        "normalize_game_name",
        "read_csv",
        "write_csv",
    }:
        from . import utilities as _u

        return getattr(_u, name)

    if name == "Progress":
        from .progress import Progress

        return Progress

    raise AttributeError(name)
