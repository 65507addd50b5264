"""Command-line interface for game enricher."""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from .config import ENRICHER, EnricherConfig
from .pipelines.enricher import GameEnricher
from .pipelines.library_pipeline import run_enrich_library
from .utils.utilities import Credentials, load_credentials

DEFAULT_DATA_DIR = Path("data")


def setup_logging(log_file: Path | None) -> None:
    """Configure logging to console and, when given, to a file."""
    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    if log_file is not None:
        logging.info(f"Logging to file: {log_file}")


def _default_log_file(*, command_name: str, logs_dir: Path) -> Path:
    now = datetime.now()
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    return logs_dir / f"log-{stamp}-{command_name}.log"


def _setup_logging_from_args(args: argparse.Namespace, *, command_name: str) -> None:
    log_file = args.log_file
    if log_file is None and args.logs_dir is not None:
        log_file = _default_log_file(command_name=command_name, logs_dir=args.logs_dir)
    setup_logging(log_file)
    if args.debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")


def _cache_dir(args: argparse.Namespace) -> Path:
    return args.cache or (DEFAULT_DATA_DIR / "cache")


def _enricher_config(args: argparse.Namespace) -> EnricherConfig:
    config = ENRICHER
    if args.max_age_days is not None:
        if args.max_age_days < 0:
            raise SystemExit("--max-age-days must be >= 0")
        config = replace(config, cache_max_age_days=int(args.max_age_days))
    if args.workers is not None:
        if args.workers < 1:
            raise SystemExit("--workers must be >= 1")
        config = replace(config, max_workers=int(args.workers))
    return replace(
        config,
        fetch_assets=bool(args.assets),
        fetch_hltb=bool(args.hltb),
        fetch_protondb=bool(args.protondb),
        fetch_achievements=bool(args.achievements),
    )


def _load_credentials_or_empty(path: Path | None) -> Credentials:
    credentials_path = path or (DEFAULT_DATA_DIR / "credentials.yaml")
    if not credentials_path.exists():
        if path is not None:
            raise SystemExit(f"Credentials file not found: {credentials_path}")
        logging.warning(
            f"No credentials file at {credentials_path}; only keyless sources will be used"
        )
        return Credentials()
    return Credentials.from_mapping(load_credentials(credentials_path))


def _command_enrich(args: argparse.Namespace) -> None:
    _setup_logging_from_args(args, command_name="enrich")
    logging.info("Starting game library enrichment")

    input_csv = args.input
    if not input_csv.exists():
        raise SystemExit(f"Input file not found: {input_csv}")
    output_csv = args.output or input_csv.with_name(f"{input_csv.stem}_enriched.csv")

    enricher = GameEnricher.from_credentials(
        _cache_dir(args),
        _load_credentials_or_empty(args.credentials),
        config=_enricher_config(args),
    )
    run_enrich_library(enricher, input_csv=input_csv, output_csv=output_csv)


def _command_stats(args: argparse.Namespace) -> None:
    _setup_logging_from_args(args, command_name="stats")
    enricher = GameEnricher(_cache_dir(args))
    stats = enricher.get_cache_stats()
    print(json.dumps(stats.to_dict(), indent=2))


def _command_clear(args: argparse.Namespace) -> None:
    _setup_logging_from_args(args, command_name="clear")
    enricher = GameEnricher(_cache_dir(args))
    if args.game_id:
        enricher.clear_game_cache(args.game_id)
    else:
        enricher.clear_all_cache()


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        raise SystemExit(
            "Missing command. Use one of: enrich, stats, clear. "
            "Run `game-enricher --help` for usage."
        )

    parser = argparse.ArgumentParser(
        description="Enrich a game library with metadata, playtimes, compatibility and art"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_common = argparse.ArgumentParser(add_help=False)
    p_common.add_argument("--cache", type=Path, help="Cache directory (default: data/cache)")
    p_common.add_argument(
        "--log-file",
        type=Path,
        help="Log file path (default: console only, or <logs-dir>/log-<timestamp>-<command>.log)",
    )
    p_common.add_argument("--logs-dir", type=Path, help="Directory for timestamped log files")
    p_common.add_argument(
        "--debug", action="store_true", help="Enable DEBUG logging (default: INFO)"
    )

    p_enrich = sub.add_parser(
        "enrich",
        help="Enrich every game of a library CSV and write the enriched CSV",
        parents=[p_common],
    )
    p_enrich.add_argument("input", type=Path, help="Library CSV (columns: id, title, store, ...)")
    p_enrich.add_argument(
        "--output", type=Path, help="Output CSV (default: <input>_enriched.csv next to input)"
    )
    p_enrich.add_argument(
        "--credentials", type=Path, help="Credentials YAML (default: data/credentials.yaml)"
    )
    p_enrich.add_argument(
        "--max-age-days",
        type=int,
        default=None,
        help=f"Re-fetch cached games older than N days (default: {ENRICHER.cache_max_age_days})",
    )
    p_enrich.add_argument(
        "--workers",
        type=int,
        default=None,
        help=f"Games enriched in parallel (default: {ENRICHER.max_workers})",
    )
    p_enrich.add_argument(
        "--assets",
        action=argparse.BooleanOptionalAction,
        default=ENRICHER.fetch_assets,
        help="Download SteamGridDB artwork (default: true)",
    )
    p_enrich.add_argument(
        "--hltb",
        action=argparse.BooleanOptionalAction,
        default=ENRICHER.fetch_hltb,
        help="Fetch HowLongToBeat durations (default: true)",
    )
    p_enrich.add_argument(
        "--protondb",
        action=argparse.BooleanOptionalAction,
        default=ENRICHER.fetch_protondb,
        help="Fetch ProtonDB compatibility (default: true)",
    )
    p_enrich.add_argument(
        "--achievements",
        action=argparse.BooleanOptionalAction,
        default=ENRICHER.fetch_achievements,
        help="Fetch Steam achievements (default: true)",
    )
    p_enrich.set_defaults(_fn=_command_enrich)

    p_stats = sub.add_parser("stats", help="Print cache statistics as JSON", parents=[p_common])
    p_stats.set_defaults(_fn=_command_stats)

    p_clear = sub.add_parser(
        "clear", help="Delete cached metadata and assets", parents=[p_common]
    )
    p_clear.add_argument("--game-id", type=str, help="Only clear this game (default: everything)")
    p_clear.set_defaults(_fn=_command_clear)

    ns = parser.parse_args(argv)
    ns._fn(ns)
    return


if __name__ == "__main__":
    main()
