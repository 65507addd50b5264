from __future__ import annotations

from pathlib import Path


def test_sanitize_game_id_replaces_unsafe_characters() -> None:
    from game_enricher.cache import sanitize_game_id

    assert sanitize_game_id("epic:Fortnite/Save?") == "epic_Fortnite_Save_"
    assert sanitize_game_id('a\\b*c"d<e>f|g') == "a_b_c_d_e_f_g"
    assert sanitize_game_id("tab\there") == "tab_here"
    assert sanitize_game_id("steam_367520") == "steam_367520"


def test_sanitize_game_id_never_escapes_root() -> None:
    from game_enricher.cache import sanitize_game_id

    assert sanitize_game_id("..") == "__"
    assert sanitize_game_id(".") == "_"
    assert sanitize_game_id("") == "_"
    assert "/" not in sanitize_game_id("../../etc")


def test_save_asset_keeps_one_file_per_kind(tmp_path: Path) -> None:
    from game_enricher.cache import AssetStore
    from game_enricher.models import AssetKind

    store = AssetStore(tmp_path / "assets")
    first = store.save_asset("g1", AssetKind.HERO, b"jpeg-bytes", "jpg")
    assert first.name == "hero.jpg"

    second = store.save_asset("g1", AssetKind.HERO, b"png-bytes", "png")
    assert second.name == "hero.png"
    assert not first.exists()
    assert sorted(p.name for p in (tmp_path / "assets" / "g1").iterdir()) == ["hero.png"]
    assert store.existing_asset_path("g1", AssetKind.HERO) == second
    assert second.read_bytes() == b"png-bytes"


def test_missing_kinds_and_delete(tmp_path: Path) -> None:
    from game_enricher.cache import AssetStore
    from game_enricher.models import AssetKind

    store = AssetStore(tmp_path)
    store.save_asset("g1", AssetKind.LOGO, b"x", "webp")
    store.save_asset("g2", AssetKind.LOGO, b"y", "png")

    assert store.has_asset("g1", AssetKind.LOGO)
    assert not store.has_asset("g1", AssetKind.HERO)
    assert store.missing_kinds("g1") == [AssetKind.HERO, AssetKind.GRID, AssetKind.ICON]

    store.delete_game_assets("g1")
    store.delete_game_assets("unknown")
    assert not (tmp_path / "g1").exists()
    assert store.has_asset("g2", AssetKind.LOGO)

    store.clear()
    assert tmp_path.is_dir()
    assert list(tmp_path.iterdir()) == []


def test_save_asset_rejects_unknown_extensions(tmp_path: Path) -> None:
    import pytest

    from game_enricher.cache import AssetStore
    from game_enricher.models import AssetKind

    store = AssetStore(tmp_path)
    with pytest.raises(ValueError, match="bmp"):
        store.save_asset("g1", AssetKind.HERO, b"BM", "bmp")
    assert not (tmp_path / "g1" / "hero.bmp").exists()

    saved = store.save_asset("g1", AssetKind.HERO, b"x", ".JPEG")
    assert saved.name == "hero.jpeg"
    assert store.existing_asset_path("g1", AssetKind.HERO) == saved
