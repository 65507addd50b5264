from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
import yaml
from rapidfuzz import fuzz

from ..errors import CacheCorruptError, CacheIOError

# ----------------------------
# CSV Helpers
# ----------------------------


def read_csv(path: str | Path) -> pd.DataFrame:
    """Read CSV preserving strings and avoiding problematic type inference."""
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


# ----------------------------
# Name normalization
# ----------------------------

_ROMAN_MAP = {
    " i ": " 1 ",
    " ii ": " 2 ",
    " iii ": " 3 ",
    " iv ": " 4 ",
    " v ": " 5 ",
    " vi ": " 6 ",
    " vii ": " 7 ",
    " viii ": " 8 ",
    " ix ": " 9 ",
    " x ": " 10 ",
}


def normalize_game_name(name: str) -> str:
    """
    Normalize names to improve matching between catalogs.
    - lowercase
    - remove punctuation and trademark symbols
    - collapse spaces
    - roman numerals to arabic for typical cases (I, II, III...)
    """
    s = (name or "").strip().lower()
    s = s.replace("™", "").replace("®", "").replace("©", "")
    s = re.sub(r"[\(\)\[\]\{\}]", " ", s)
    s = re.sub(r"[’'`]", "", s)
    s = re.sub(r"[:\-–—_/\\|]", " ", s)
    s = re.sub(r"[.,!?+*&%$#@~]", " ", s)

    s = f" {s} "
    for k, v in _ROMAN_MAP.items():
        s = s.replace(k, v)

    return re.sub(r"\s+", " ", s).strip()


def fuzzy_score(a: str, b: str) -> int:
    """
    Fuzzy similarity (0..100) between two titles after normalization.

    Only used for diagnostics: sources pick their result by their own rules and this score is
    logged when the pick looks doubtful.
    """
    na = normalize_game_name(a)
    nb = normalize_game_name(b)
    if not na or not nb:
        return 0
    score_sort = float(fuzz.token_sort_ratio(na, nb))
    tokens_a = set(na.split())
    tokens_b = set(nb.split())
    # Allow substring credit only when one title's tokens fully contain the other's
    # (e.g. "Hollow Knight" vs "Hollow Knight: Voidheart Edition").
    if tokens_a <= tokens_b or tokens_b <= tokens_a:
        return int(max(score_sort, float(fuzz.partial_ratio(na, nb))))
    return int(score_sort)


# ----------------------------
# JSON documents
# ----------------------------


def load_json_document(path: str | Path) -> Any:
    """
    Read a JSON file.

    Unlike a best-effort cache read, failures are reported: undecodable content raises
    CacheCorruptError and OS errors raise CacheIOError.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise CacheIOError(f"Failed to read {p}: {e}") from e
    try:
        return json.loads(text)
    except ValueError as e:
        raise CacheCorruptError(f"Failed to decode {p}: {e}") from e


def save_json_atomic(data: Any, path: str | Path) -> None:
    """Write JSON to a sibling temp file, then atomically replace the target."""
    p = Path(path)
    tmp = p.with_name(f".{p.name}.tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, p)
    except OSError as e:
        raise CacheIOError(f"Failed to write {p}: {e}") from e


@dataclass
class CacheIOTracker:
    """
    Track JSON document load/save counts and time in milliseconds.
    """

    stats: dict[str, Any]
    prefix: str = "cache"

    def __post_init__(self) -> None:
        self.stats.setdefault(f"{self.prefix}_load_count", 0)
        self.stats.setdefault(f"{self.prefix}_load_ms", 0)
        self.stats.setdefault(f"{self.prefix}_save_count", 0)
        self.stats.setdefault(f"{self.prefix}_save_ms", 0)

    def _add(self, kind: str, t0: float) -> int:
        dur_ms = int(round((time.perf_counter() - t0) * 1000.0))
        self.stats[f"{self.prefix}_{kind}_count"] = int(
            self.stats.get(f"{self.prefix}_{kind}_count", 0) or 0
        ) + 1
        self.stats[f"{self.prefix}_{kind}_ms"] = int(self.stats.get(f"{self.prefix}_{kind}_ms", 0) or 0) + dur_ms
        return dur_ms

    def load_json(self, path: str | Path) -> Any:
        t0 = time.perf_counter()
        try:
            return load_json_document(path)
        finally:
            self._add("load", t0)

    def save_json(self, data: Any, path: str | Path) -> None:
        t0 = time.perf_counter()
        save_json_atomic(data, path)
        dur_ms = self._add("save", t0)
        logging.debug(f"[CACHE] Wrote '{Path(path).name}' in {dur_ms}ms")

    @staticmethod
    def format_io(stats: dict[str, Any] | None, *, prefix: str = "cache") -> str:
        if not stats:
            return f"{prefix} loads=0 load_ms=0 saves=0 save_ms=0"
        load_count = int(stats.get(f"{prefix}_load_count", 0) or 0)
        load_ms = int(stats.get(f"{prefix}_load_ms", 0) or 0)
        save_count = int(stats.get(f"{prefix}_save_count", 0) or 0)
        save_ms = int(stats.get(f"{prefix}_save_ms", 0) or 0)
        return (
            f"{prefix} loads={load_count} "
            f"load_ms={load_ms} "
            f"saves={save_count} "
            f"save_ms={save_ms}"
        )


# ----------------------------
# Rate limiting
# ----------------------------


class RateLimiter:
    """
    Simple rate limiter: enforces minimum interval between requests.

    Shared by all worker threads using the same client, so each source keeps its own budget
    regardless of batch parallelism.
    """

    def __init__(self, min_interval_s: float = 1.0):
        self.min_interval_s = float(min_interval_s)
        self._last = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        if self.min_interval_s <= 0:
            return
        with self._lock:
            # Use monotonic time to avoid issues if the system clock changes.
            now = time.monotonic()
            delta = now - self._last
            if delta < self.min_interval_s:
                time.sleep(self.min_interval_s - delta)
            self._last = time.monotonic()


# ----------------------------
# Credentials loading
# ----------------------------


@dataclass(frozen=True)
class Credentials:
    igdb_client_id: str = ""
    igdb_client_secret: str = ""
    steamgriddb_api_key: str = ""
    steam_api_key: str = ""
    steam_id: str = ""

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> Credentials:
        """
        Build from the credentials.yaml structure:

            igdb: {client_id: ..., client_secret: ...}
            steamgriddb: {api_key: ...}
            steam: {api_key: ..., steam_id: ...}
        """
        data = data or {}

        def get(section: str, key: str) -> str:
            return str((data.get(section, {}) or {}).get(key, "") or "").strip()

        return cls(
            igdb_client_id=get("igdb", "client_id"),
            igdb_client_secret=get("igdb", "client_secret"),
            steamgriddb_api_key=get("steamgriddb", "api_key"),
            steam_api_key=get("steam", "api_key"),
            steam_id=get("steam", "steam_id"),
        )


def load_credentials(credentials_path: str | Path) -> dict[str, Any]:
    """
    Load credentials from a YAML file.

    Returns:
        Dictionary with credentials (e.g., {'igdb': {...}, 'steam': {...}})
    """
    credentials_path = Path(credentials_path)
    if not credentials_path.exists():
        raise FileNotFoundError(
            f"Credentials file not found: {credentials_path}\n"
            "Please create credentials.yaml with your API keys."
        )

    with open(credentials_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
