from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _record(game_id: str, *, last_updated: datetime | None = None):
    from game_enricher.models import CachedMetadata

    ts = last_updated or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    return CachedMetadata(
        game_id=game_id,
        fetched_at=ts - timedelta(days=3),
        last_updated=ts,
        igdb_id=14593,
        description="Forge your own path in Hollow Knight!",
        summary="A 2D action adventure.",
        rating=91.25,
        aggregated_rating=87.0,
        developer="Team Cherry",
        publisher="Team Cherry",
        genres=["Platform", "Adventure", "Platform"],
        release_date="2017-02-24",
        hltb_id=26286,
        hltb_main=27,
        hltb_main_extra=42,
        hltb_complete=63,
        steam_app_id=367520,
        proton_tier="platinum",
        proton_confidence="strong",
        proton_trending_tier="gold",
        achievements_total=63,
        achievements_unlocked=37,
        hero_path="/tmp/cache/assets/hk/hero.png",
    )


def test_save_then_load_returns_equal_record(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path / "cache")
    cache.init()
    rec = _record("steam_367520")
    cache.save_game(rec)

    loaded = MetadataCache(tmp_path / "cache").get_game("steam_367520")
    assert loaded == rec
    # Genre order and duplicates survive.
    assert loaded.genres == ["Platform", "Adventure", "Platform"]


def test_document_layout_is_versioned(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path)
    cache.init()
    cache.save_game(_record("a"))

    raw = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert set(raw["games"].keys()) == {"a"}
    assert raw["games"]["a"]["last_updated"].startswith("2024-05-01T12:00:00")
    assert (tmp_path / "assets").is_dir()
    # Atomic write leaves no temp file behind.
    assert not list(tmp_path.glob(".*.tmp"))


def test_missing_file_loads_empty_document(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    doc = MetadataCache(tmp_path / "nope").load()
    assert doc.version == 1
    assert doc.games == {}


def test_corrupt_file_raises_instead_of_resetting(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache
    from game_enricher.errors import CacheCorruptError

    (tmp_path / "metadata.json").write_text("{not json", encoding="utf-8")
    cache = MetadataCache(tmp_path)
    with pytest.raises(CacheCorruptError):
        cache.load()
    with pytest.raises(CacheCorruptError):
        cache.save_game(_record("a"))
    assert (tmp_path / "metadata.json").read_text(encoding="utf-8") == "{not json"


def test_wrong_shape_is_corrupt(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache
    from game_enricher.errors import CacheCorruptError

    (tmp_path / "metadata.json").write_text(json.dumps({"games": []}), encoding="utf-8")
    with pytest.raises(CacheCorruptError):
        MetadataCache(tmp_path).load()


def test_staleness_boundary_is_exclusive(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    cache = MetadataCache(tmp_path)
    cache.save_game(_record("exact", last_updated=now - timedelta(days=30)))
    cache.save_game(_record("older", last_updated=now - timedelta(days=30, seconds=1)))

    assert cache.is_stale("exact", 30, now=now) is False
    assert cache.is_stale("older", 30, now=now) is True
    assert cache.is_stale("missing", 30, now=now) is True


def test_unreadable_cache_counts_as_stale(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    (tmp_path / "metadata.json").write_text("[]", encoding="utf-8")
    assert MetadataCache(tmp_path).is_stale("a", 30) is True


def test_remove_game_only_touches_that_record(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path)
    cache.save_game(_record("a"))
    cache.save_game(_record("b"))
    cache.remove_game("a")
    cache.remove_game("never-there")

    assert cache.get_game("a") is None
    assert cache.get_game("b") == _record("b")


def test_stats_walk_asset_tree(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache
    from game_enricher.models import AssetKind

    cache = MetadataCache(tmp_path)
    cache.init()
    cache.save_game(_record("a"))
    cache.save_game(_record("b"))
    cache.assets.save_asset("a", AssetKind.HERO, b"12345", "png")
    cache.assets.save_asset("a", AssetKind.ICON, b"123", "jpg")
    cache.assets.save_asset("b", AssetKind.GRID, b"1", "webp")

    stats = cache.cache_stats()
    assert stats.games_count == 2
    assert stats.total_assets_count == 3
    assert stats.total_assets_size == 9
    assert stats.cache_dir == str(tmp_path)


def test_clear_resets_document(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path)
    cache.save_game(_record("a"))
    cache.clear()
    assert cache.load().games == {}
    assert cache.stats["cache_save_count"] == 2


def test_naive_now_is_treated_as_utc(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path)
    cache.save_game(_record("g1", last_updated=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)))

    assert cache.is_stale("g1", 30, now=datetime(2024, 5, 31, 12, 0, 0)) is False
    assert cache.is_stale("g1", 30, now=datetime(2024, 6, 1, 12, 0, 0)) is True


def test_blank_genres_survive_round_trip(tmp_path: Path) -> None:
    from game_enricher.cache import MetadataCache

    cache = MetadataCache(tmp_path)
    rec = _record("g1")
    rec.genres = ["", "RPG"]
    cache.save_game(rec)

    loaded = MetadataCache(tmp_path).get_game("g1")
    assert loaded.genres == ["", "RPG"]
    assert loaded == rec
