from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestConfig:
    igdb_timeout_s: int = 30
    protondb_timeout_s: int = 15
    steam_timeout_s: int = 30
    steamgriddb_timeout_s: int = 30


@dataclass(frozen=True)
class MatchingConfig:
    # Log a "close match" warning when the chosen result scores below this.
    suspicious_score: int = 90


@dataclass(frozen=True)
class IGDBConfig:
    # IGDB allows 4 requests per second per client.
    min_interval_s: float = 0.25


@dataclass(frozen=True)
class HLTBConfig:
    min_interval_s: float = 0.5


@dataclass(frozen=True)
class ProtonDBConfig:
    min_interval_s: float = 0.2


@dataclass(frozen=True)
class SteamConfig:
    min_interval_s: float = 0.2


@dataclass(frozen=True)
class SteamGridDBConfig:
    min_interval_s: float = 0.1
    # Number of asset kinds fetched in parallel for one game.
    max_parallel_kinds: int = 4


@dataclass(frozen=True)
class EnricherConfig:
    cache_max_age_days: int = 30
    fetch_assets: bool = True
    fetch_hltb: bool = True
    fetch_protondb: bool = True
    fetch_achievements: bool = True
    # 1 keeps batch enrichment sequential.
    max_workers: int = 1


@dataclass(frozen=True)
class CLIConfig:
    progress_every_n: int = 10
    progress_min_interval_s: float = 30.0


REQUEST = RequestConfig()
MATCHING = MatchingConfig()
IGDB = IGDBConfig()
HLTB = HLTBConfig()
PROTONDB = ProtonDBConfig()
STEAM = SteamConfig()
STEAMGRIDDB = SteamGridDBConfig()
ENRICHER = EnricherConfig()
CLI = CLIConfig()
