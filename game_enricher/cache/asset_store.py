from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ..errors import CacheIOError
from ..models import ALL_ASSET_KINDS, AssetKind

ASSET_EXTENSIONS: tuple[str, ...] = ("jpg", "jpeg", "png", "webp", "gif")

_UNSAFE_CHARS = set('/\\:*?"<>|')


def sanitize_game_id(game_id: str) -> str:
    """
    Make a game id safe to use as a single directory name.

    Path separators, characters reserved on Windows and control characters become `_`.
    Names consisting only of dots are replaced as well so they can never point outside the
    assets root.
    """
    out = "".join("_" if (c in _UNSAFE_CHARS or ord(c) < 32 or ord(c) == 127) else c for c in game_id)
    if not out.strip("."):
        out = "_" * max(1, len(out))
    return out


class AssetStore:
    """
    Local image files under `<root>/<sanitized-id>/<kind>.<ext>`.

    At most one file exists per (game, kind): saving a new extension removes the old one.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def init(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to create assets dir {self.root}: {e}") from e

    def game_dir(self, game_id: str) -> Path:
        return self.root / sanitize_game_id(game_id)

    def existing_asset_path(self, game_id: str, kind: AssetKind) -> Path | None:
        d = self.game_dir(game_id)
        for ext in ASSET_EXTENSIONS:
            p = d / f"{kind.value}.{ext}"
            if p.is_file():
                return p
        return None

    def has_asset(self, game_id: str, kind: AssetKind) -> bool:
        return self.existing_asset_path(game_id, kind) is not None

    def missing_kinds(self, game_id: str) -> list[AssetKind]:
        return [k for k in ALL_ASSET_KINDS if not self.has_asset(game_id, k)]

    def save_asset(self, game_id: str, kind: AssetKind, data: bytes, ext: str) -> Path:
        ext = (ext or "jpg").strip().lstrip(".").lower() or "jpg"
        if ext not in ASSET_EXTENSIONS:
            raise ValueError(f"Unsupported asset extension '{ext}' (expected one of {ASSET_EXTENSIONS})")
        d = self.game_dir(game_id)
        target = d / f"{kind.value}.{ext}"
        tmp = d / f".{kind.value}.{ext}.tmp"
        try:
            d.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, target)
            for other in ASSET_EXTENSIONS:
                if other == ext:
                    continue
                stale = d / f"{kind.value}.{other}"
                if stale.exists():
                    stale.unlink()
        except OSError as e:
            raise CacheIOError(f"Failed to write asset {target}: {e}") from e
        logging.debug(f"[CACHE] Saved {kind.value} for '{game_id}' ({len(data)} bytes) -> {target.name}")
        return target

    def delete_game_assets(self, game_id: str) -> None:
        d = self.game_dir(game_id)
        if not d.exists():
            return
        try:
            shutil.rmtree(d)
        except OSError as e:
            raise CacheIOError(f"Failed to delete assets for '{game_id}': {e}") from e

    def clear(self) -> None:
        try:
            if self.root.exists():
                shutil.rmtree(self.root)
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to clear assets dir {self.root}: {e}") from e

    def usage(self) -> tuple[int, int]:
        """Return (file count, total bytes) over all per-game asset directories."""
        count = 0
        size = 0
        if not self.root.exists():
            return 0, 0
        try:
            for game_dir in self.root.iterdir():
                if not game_dir.is_dir():
                    continue
                for p in game_dir.iterdir():
                    if p.is_file() and not p.name.startswith("."):
                        count += 1
                        size += p.stat().st_size
        except OSError as e:
            raise CacheIOError(f"Failed to scan assets dir {self.root}: {e}") from e
        return count, size
