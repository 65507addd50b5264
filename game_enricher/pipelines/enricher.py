from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..cache import AssetStore, MetadataCache
from ..clients.hltb_client import HLTBDurations
from ..clients.igdb_client import IGDBGameMetadata
from ..clients.protondb_client import ProtonCompatibility
from ..clients.steam_client import GameAchievements
from ..clients.steamgriddb_client import SGDBAssets, SGDBImage
from ..config import CLI, ENRICHER, STEAMGRIDDB, EnricherConfig
from ..errors import CacheError, ProviderError
from ..models import (
    ALL_ASSET_KINDS,
    AssetKind,
    BaseGame,
    CachedMetadata,
    CacheStats,
    EnrichedGame,
    utc_now,
)
from ..utils.progress import Progress
from ..utils.utilities import Credentials
from .provider_clients import EnrichmentSources, build_provider_clients

T = TypeVar("T")


@dataclass
class _FetchOutcome:
    attempted: int = 0
    failed: int = 0

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and self.failed == self.attempted


def steam_app_id_from_store(game: BaseGame) -> int | None:
    if game.store.strip().casefold() != "steam":
        return None
    s = game.store_id.strip()
    return int(s) if s.isdigit() else None


class GameEnricher:
    """
    Enrich library entries from the configured sources, backed by the on-disk cache.

    Per game: a fresh cached record is served as is; otherwise metadata is fetched first (it
    yields the Steam app id), then durations, compatibility, achievements and assets. A source
    that raises only leaves its own fields unset. The new record is merged over the previous
    one so a failing source never erases data it supplied earlier.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        config: EnricherConfig = ENRICHER,
        sources: EnrichmentSources | None = None,
    ):
        self.config = config
        self.cache = MetadataCache(cache_dir)
        self.sources = sources or EnrichmentSources()
        self.stats: dict[str, int] = {
            "cache_hit": 0,
            "fetched": 0,
            "persisted": 0,
            "all_sources_failed": 0,
            "minimal": 0,
        }
        self._stats_lock = threading.Lock()

    @classmethod
    def from_credentials(
        cls,
        cache_dir: str | Path,
        credentials: Credentials,
        *,
        config: EnricherConfig = ENRICHER,
    ) -> GameEnricher:
        return cls(
            cache_dir,
            config=config,
            sources=build_provider_clients(credentials=credentials, config=config),
        )

    @property
    def assets(self) -> AssetStore:
        return self.cache.assets

    def init(self) -> None:
        self.cache.init()

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] = int(self.stats.get(key, 0) or 0) + 1

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------
    def enrich_game(self, game: BaseGame) -> EnrichedGame:
        try:
            return self._enrich(game)
        except CacheError as e:
            self._bump("minimal")
            logging.error(f"[ENRICH] Cache unavailable for '{game.title}' ({game.id}): {e}")
            return EnrichedGame.minimal(game)

    def enrich_games(self, games: list[BaseGame]) -> list[EnrichedGame]:
        """
        Enrich a batch. The result has the same length and order as `games`; a game that fails
        unexpectedly is returned with its base fields only.
        """
        games = list(games)
        progress = Progress("ENRICH", total=len(games) or None, every_n=CLI.progress_every_n)

        def _one(game: BaseGame) -> EnrichedGame:
            try:
                return self.enrich_game(game)
            except Exception:
                self._bump("minimal")
                logging.exception(f"[ENRICH] Unexpected error enriching '{game.title}' ({game.id})")
                return EnrichedGame.minimal(game)
            finally:
                progress.advance()

        workers = max(1, int(self.config.max_workers))
        if workers == 1 or len(games) <= 1:
            return [_one(g) for g in games]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(_one, games))

    def clear_game_cache(self, game_id: str) -> None:
        self.cache.remove_game(game_id)
        self.assets.delete_game_assets(game_id)
        logging.info(f"[CACHE] Cleared cache for '{game_id}'")

    def clear_all_cache(self) -> None:
        self.cache.clear()
        self.assets.clear()
        logging.info(f"[CACHE] Cleared all cached metadata and assets in {self.cache.cache_dir}")

    def get_cache_stats(self) -> CacheStats:
        return self.cache.cache_stats()

    def format_stats(self) -> list[str]:
        s = self.stats
        lines = [
            f"[ENRICH] cache_hit={s['cache_hit']} fetched={s['fetched']} "
            f"persisted={s['persisted']} all_failed={s['all_sources_failed']} "
            f"minimal={s['minimal']}",
            f"[CACHE] {self.cache.format_io()}",
        ]
        return lines + self.sources.format_stats()

    # -------------------------------------------------
    # Pipeline
    # -------------------------------------------------
    def _enrich(self, game: BaseGame) -> EnrichedGame:
        previous = self.cache.get_game(game.id)
        if previous is not None and not MetadataCache.record_is_stale(
            previous, self.config.cache_max_age_days
        ):
            self._bump("cache_hit")
            logging.debug(f"[ENRICH] Cache hit for '{game.title}'")
            return EnrichedGame.build(game, previous)

        self._bump("fetched")
        record, outcome = self._fetch(game, previous)
        if outcome.all_failed:
            self._bump("all_sources_failed")
            logging.warning(
                f"[ENRICH] All {outcome.attempted} sources failed for '{game.title}'; "
                "keeping previous cache entry"
            )
            return EnrichedGame.build(game, previous)

        record = record.merged_over(previous)
        self.cache.save_game(record)
        self._bump("persisted")
        return EnrichedGame.build(game, record)

    def _call(
        self, label: str, outcome: _FetchOutcome, title: str, fn: Callable[..., T], *args: Any
    ) -> T | None:
        outcome.attempted += 1
        try:
            return fn(*args)
        except ProviderError as e:
            outcome.failed += 1
            logging.warning(f"[{label}] fetch failed for '{title}': {e}")
        except Exception:
            outcome.failed += 1
            logging.exception(f"[{label}] fetch failed for '{title}'")
        return None

    def _fetch(
        self, game: BaseGame, previous: CachedMetadata | None
    ) -> tuple[CachedMetadata, _FetchOutcome]:
        record = CachedMetadata.new(game.id, now=utc_now())
        outcome = _FetchOutcome()
        title = game.title
        src = self.sources

        if src.metadata is not None:
            meta = self._call("IGDB", outcome, title, src.metadata.fetch_metadata, title)
            if meta is not None:
                apply_metadata(record, meta)

        steam_app_id = record.steam_app_id or steam_app_id_from_store(game)
        if steam_app_id is None and previous is not None:
            steam_app_id = previous.steam_app_id
        if record.steam_app_id is None:
            record.steam_app_id = steam_app_id

        if self.config.fetch_hltb and src.duration is not None:
            durations = self._call("HLTB", outcome, title, src.duration.fetch_duration, title)
            if durations is not None:
                apply_durations(record, durations)

        if steam_app_id is not None:
            if self.config.fetch_protondb and src.compatibility is not None:
                compat = self._call(
                    "PROTONDB", outcome, title, src.compatibility.fetch_compatibility, steam_app_id
                )
                if compat is not None:
                    apply_compatibility(record, compat)

            if self.config.fetch_achievements and src.achievements is not None:
                achievements = self._call(
                    "STEAM", outcome, title, src.achievements.fetch_achievements, steam_app_id
                )
                if achievements is not None:
                    apply_achievements(record, achievements)

        if self.config.fetch_assets:
            self._fetch_assets(game, record, outcome, steam_app_id)

        return record, outcome

    def _fetch_assets(
        self,
        game: BaseGame,
        record: CachedMetadata,
        outcome: _FetchOutcome,
        steam_app_id: int | None,
    ) -> None:
        missing = self.assets.missing_kinds(game.id)
        for kind in ALL_ASSET_KINDS:
            existing = self.assets.existing_asset_path(game.id, kind)
            if existing is not None:
                record.set_asset_path(kind, str(existing))

        source = self.sources.assets
        if not missing or source is None:
            return

        result = self._call(
            "SGDB",
            outcome,
            game.title,
            lambda: source.fetch_assets(game.title, missing, steam_app_id=steam_app_id),
        )
        if result is None:
            return

        picks = _chosen_images(result, missing)
        if not picks:
            return

        def _download(kind: AssetKind, image: SGDBImage) -> tuple[AssetKind, Path | None]:
            try:
                data, ext = source.download_image(image.url)
            except ProviderError as e:
                logging.warning(f"[SGDB] {kind.value} download failed for '{game.title}': {e}")
                return kind, None
            except Exception:
                logging.exception(f"[SGDB] {kind.value} download failed for '{game.title}'")
                return kind, None
            return kind, self.assets.save_asset(game.id, kind, data, ext)

        with ThreadPoolExecutor(max_workers=min(STEAMGRIDDB.max_parallel_kinds, len(picks))) as pool:
            futures = [pool.submit(_download, kind, image) for kind, image in picks]
            for fut in futures:
                kind, path = fut.result()
                if path is not None:
                    record.set_asset_path(kind, str(path))


def _chosen_images(result: SGDBAssets, kinds: list[AssetKind]) -> list[tuple[AssetKind, SGDBImage]]:
    out: list[tuple[AssetKind, SGDBImage]] = []
    for kind in kinds:
        image = result.images.get(kind)
        if image is not None:
            out.append((kind, image))
    return out


# ----------------------------
# Applying source results to a record
# ----------------------------


def apply_metadata(record: CachedMetadata, meta: IGDBGameMetadata) -> None:
    record.igdb_id = meta.igdb_id
    record.description = meta.description
    record.summary = meta.summary
    record.rating = meta.rating
    record.aggregated_rating = meta.aggregated_rating
    record.developer = meta.developer
    record.publisher = meta.publisher
    record.genres = list(meta.genres)
    record.release_date = meta.release_date
    record.cover_url = meta.cover_url
    record.steam_app_id = meta.steam_app_id


def apply_durations(record: CachedMetadata, durations: HLTBDurations) -> None:
    record.hltb_id = durations.hltb_id
    record.hltb_main = durations.main
    record.hltb_main_extra = durations.main_extra
    record.hltb_complete = durations.completionist
    record.hltb_speedrun = durations.speedrun


def apply_compatibility(record: CachedMetadata, compat: ProtonCompatibility) -> None:
    record.proton_tier = compat.tier
    record.proton_confidence = compat.confidence
    record.proton_trending_tier = compat.trending_tier


def apply_achievements(record: CachedMetadata, achievements: GameAchievements) -> None:
    record.achievements_total = achievements.total
    record.achievements_unlocked = achievements.unlocked
