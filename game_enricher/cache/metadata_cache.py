from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path

from ..errors import CacheCorruptError, CacheError, CacheIOError
from ..models import (
    CacheStats,
    CachedMetadata,
    MetadataCacheDocument,
    parse_timestamp,
    utc_now,
)
from ..utils.utilities import CacheIOTracker
from .asset_store import AssetStore

METADATA_FILENAME = "metadata.json"
ASSETS_DIRNAME = "assets"


class MetadataCache:
    """
    Versioned JSON document of enrichment results, one record per game id.

    Every mutation is a whole-document read-modify-write serialized by one lock, so concurrent
    enrichment workers in this process never lose each other's records. The document is
    written atomically; a crash mid-write leaves the previous file in place.
    """

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)
        self.metadata_path = self.cache_dir / METADATA_FILENAME
        self.assets = AssetStore(self.cache_dir / ASSETS_DIRNAME)
        self.stats: dict[str, int] = {}
        self._cache_io = CacheIOTracker(self.stats)
        self._lock = threading.RLock()

    def init(self) -> None:
        with self._lock:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CacheIOError(f"Failed to create cache dir {self.cache_dir}: {e}") from e
            self.assets.init()
            if not self.metadata_path.exists():
                self.save(MetadataCacheDocument())

    # -------------------------------------------------
    # Whole document
    # -------------------------------------------------
    def load(self) -> MetadataCacheDocument:
        with self._lock:
            if not self.metadata_path.exists():
                return MetadataCacheDocument()
            raw = self._cache_io.load_json(self.metadata_path)
            try:
                return MetadataCacheDocument.from_dict(raw)
            except ValueError as e:
                raise CacheCorruptError(f"Invalid cache document {self.metadata_path}: {e}") from e

    def save(self, document: MetadataCacheDocument) -> None:
        with self._lock:
            self._cache_io.save_json(document.to_dict(), self.metadata_path)

    # -------------------------------------------------
    # Per game
    # -------------------------------------------------
    def get_game(self, game_id: str) -> CachedMetadata | None:
        return self.load().games.get(game_id)

    def save_game(self, record: CachedMetadata) -> None:
        with self._lock:
            doc = self.load()
            doc.games[record.game_id] = record
            self.save(doc)

    def remove_game(self, game_id: str) -> None:
        with self._lock:
            doc = self.load()
            if doc.games.pop(game_id, None) is None:
                return
            self.save(doc)

    def is_stale(self, game_id: str, max_age_days: int, *, now: datetime | None = None) -> bool:
        """
        True when the record is missing or older than `max_age_days`.

        Exactly `max_age_days` old is still fresh. A cache that cannot be read counts as stale.
        """
        try:
            record = self.get_game(game_id)
        except CacheError as e:
            logging.warning(f"[CACHE] Treating '{game_id}' as stale, cache unreadable: {e}")
            return True
        if record is None:
            return True
        return self.record_is_stale(record, max_age_days, now=now)

    @staticmethod
    def record_is_stale(
        record: CachedMetadata, max_age_days: int, *, now: datetime | None = None
    ) -> bool:
        # Naive `now` is UTC, like stored timestamps.
        current = utc_now() if now is None else parse_timestamp(now)
        age = current - record.last_updated
        return age > timedelta(days=max_age_days)

    # -------------------------------------------------
    # Maintenance
    # -------------------------------------------------
    def clear(self) -> None:
        with self._lock:
            self.save(MetadataCacheDocument())

    def cache_stats(self) -> CacheStats:
        with self._lock:
            games_count = len(self.load().games)
        assets_count, assets_size = self.assets.usage()
        return CacheStats(
            games_count=games_count,
            total_assets_count=assets_count,
            total_assets_size=assets_size,
            cache_dir=str(self.cache_dir),
        )

    def format_io(self) -> str:
        return CacheIOTracker.format_io(self.stats)
