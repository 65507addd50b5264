from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def as_opt_str(value: object) -> str | None:
    s = as_str(value)
    return s or None


def as_int(value: object) -> int | None:
    """
    Strict numeric conversion.

    - Accepts: int, integral float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return None


def as_float(value: object) -> float | None:
    """
    Strict numeric conversion.

    - Accepts: int, float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_int_text(value: object) -> int | None:
    """
    Parse an integer from provider text fields.

    Use this only when the provider is known to return numeric values as strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if not isinstance(value, str):
        return None
    s = value.strip()
    if s.isdigit() or (s.startswith("-") and s[1:].isdigit()):
        return int(s)
    return None


def iso_date_from_epoch_seconds(value: object) -> str | None:
    """
    Format a unix epoch timestamp (seconds) as a UTC `YYYY-MM-DD` date.

    Accepts only numeric types (int/integral float). Rejects strings.
    """
    ts = as_int(value)
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return None


def hours_from_seconds(value: object) -> int | None:
    """Round a duration in seconds to whole hours (half up); zero/absent durations are None."""
    seconds = as_float(value)
    if seconds is None or seconds <= 0:
        return None
    return int(seconds / 3600.0 + 0.5)


def hours_from_hours(value: object) -> int | None:
    """Round a duration in (fractional) hours to whole hours, half up; zero/absent is None."""
    hours = as_float(value)
    if hours is None or hours <= 0:
        return None
    return int(hours + 0.5)


def str_list(values: object) -> list[str]:
    """
    Non-empty strings from a list, in order. Duplicates are kept.

    Accepts only real lists; returns [] for anything else.
    """
    if not isinstance(values, list):
        return []
    return [s for s in (as_str(v) for v in values) if s]


def get_list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]
