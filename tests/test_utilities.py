from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd
import pytest


def test_normalize_game_name_strips_symbols_and_roman_numerals() -> None:
    from game_enricher.utils.utilities import normalize_game_name

    assert normalize_game_name("Final Fantasy VII™") == "final fantasy 7"
    assert normalize_game_name("  Hollow Knight: Voidheart Edition ") == "hollow knight voidheart edition"
    assert normalize_game_name("Baldur's Gate II") == "baldurs gate 2"
    assert normalize_game_name("") == ""


def test_fuzzy_score_allows_edition_expansion() -> None:
    from game_enricher.utils.utilities import fuzzy_score

    assert fuzzy_score("Doom", "Doom (2016)") == 100
    assert fuzzy_score("Borderlands", "Borderlands Game of the Year Enhanced") == 100
    assert fuzzy_score("Hollow Knight", "hollow knight") == 100


def test_fuzzy_score_flags_unrelated_titles() -> None:
    from game_enricher.utils.utilities import fuzzy_score

    assert fuzzy_score("Hollow Knight", "Celeste") < 50
    assert fuzzy_score("", "Celeste") == 0


def test_credentials_from_yaml(tmp_path: Path) -> None:
    from game_enricher.utils.utilities import Credentials, load_credentials

    path = tmp_path / "credentials.yaml"
    path.write_text(
        "igdb:\n  client_id: abc\n  client_secret: ' s3cret '\n"
        "steamgriddb:\n  api_key: grid-key\n"
        "steam:\n  api_key: steam-key\n  steam_id: 76561197960287930\n",
        encoding="utf-8",
    )
    creds = Credentials.from_mapping(load_credentials(path))
    assert creds.igdb_client_id == "abc"
    assert creds.igdb_client_secret == "s3cret"
    assert creds.steamgriddb_api_key == "grid-key"
    assert creds.steam_api_key == "steam-key"
    assert creds.steam_id == "76561197960287930"


def test_credentials_missing_sections_are_empty(tmp_path: Path) -> None:
    from game_enricher.utils.utilities import Credentials, load_credentials

    assert Credentials.from_mapping(None) == Credentials()
    assert Credentials.from_mapping({"steam": None}).steam_api_key == ""

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_credentials(empty) == {}

    with pytest.raises(FileNotFoundError):
        load_credentials(tmp_path / "missing.yaml")


def test_write_csv_does_not_emit_nan_tokens(tmp_path: Path) -> None:
    from game_enricher.utils.utilities import write_csv

    df = pd.DataFrame(
        [
            {"id": "g1", "title": "Doom", "A": float("nan"), "B": pd.NA},
            {"id": "g2", "title": "Quake", "A": None, "B": ""},
        ]
    )
    out = tmp_path / "nested" / "out.csv"
    write_csv(df, out)

    with out.open("r", encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))

    for row in rows:
        for cell in row:
            assert cell.strip().casefold() != "nan"


def test_json_documents_are_written_atomically(tmp_path: Path) -> None:
    from game_enricher.errors import CacheCorruptError
    from game_enricher.utils.utilities import load_json_document, save_json_atomic

    path = tmp_path / "doc.json"
    save_json_atomic({"version": 1, "games": {"g1": {"title": "Señor"}}}, path)
    assert load_json_document(path) == {"version": 1, "games": {"g1": {"title": "Señor"}}}
    assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    path.write_text("{", encoding="utf-8")
    with pytest.raises(CacheCorruptError):
        load_json_document(path)


def test_rate_limiter_spaces_calls(monkeypatch) -> None:
    from types import SimpleNamespace

    from game_enricher.utils import utilities

    clock = {"now": 100.0}
    sleeps: list[float] = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock["now"] += seconds

    fake_time = SimpleNamespace(monotonic=lambda: clock["now"], sleep=fake_sleep)
    monkeypatch.setattr(utilities, "time", fake_time)

    limiter = utilities.RateLimiter(min_interval_s=0.5)
    limiter.wait()
    limiter.wait()
    assert sleeps == [pytest.approx(0.5)]

    unlimited = utilities.RateLimiter(min_interval_s=0)
    unlimited.wait()
    unlimited.wait()
    assert sleeps == [pytest.approx(0.5)]
