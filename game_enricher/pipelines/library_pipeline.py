from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from ..models import BaseGame, EnrichedGame
from ..utils.utilities import read_csv, write_csv
from .enricher import GameEnricher

REQUIRED_COLUMNS = ("id", "title")


def load_library(input_csv: str | Path) -> list[BaseGame]:
    """
    Read a library CSV (one row per game, columns named like BaseGame's fields).

    Rows without an id are skipped with a warning.
    """
    df = read_csv(input_csv)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{input_csv}: missing required column(s): {', '.join(missing)}")

    games: list[BaseGame] = []
    for idx, row in df.iterrows():
        if not str(row.get("id", "") or "").strip():
            logging.warning(f"[ENRICH] Skipping row {idx}: empty id")
            continue
        games.append(BaseGame.from_row(row.to_dict()))
    return games


def enriched_frame(games: list[EnrichedGame]) -> pd.DataFrame:
    return pd.DataFrame([g.to_row() for g in games])


def run_enrich_library(
    enricher: GameEnricher, *, input_csv: str | Path, output_csv: str | Path
) -> list[EnrichedGame]:
    games = load_library(input_csv)
    logging.info(f"[ENRICH] Loaded {len(games)} games from {input_csv}")

    enricher.init()
    enriched = enricher.enrich_games(games)
    write_csv(enriched_frame(enriched), output_csv)

    for line in enricher.format_stats():
        logging.info(line)
    logging.info(f"✔ Enriched library written: {output_csv}")
    return enriched
