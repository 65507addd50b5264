from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clients import (
    HLTBClient,
    IGDBClient,
    ProtonDBClient,
    SteamAchievementsClient,
    SteamGridDBClient,
)
from ..clients.protocols import (
    AchievementSource,
    AssetSource,
    CompatibilitySource,
    DurationSource,
    MetadataSource,
)
from ..config import ENRICHER, EnricherConfig
from ..utils.utilities import Credentials


@dataclass
class EnrichmentSources:
    """The five sources; None means the source is not configured for this process."""

    metadata: MetadataSource | None = None
    duration: DurationSource | None = None
    compatibility: CompatibilitySource | None = None
    achievements: AchievementSource | None = None
    assets: AssetSource | None = None

    def format_stats(self) -> list[str]:
        lines: list[str] = []
        for label, source in (
            ("IGDB", self.metadata),
            ("HLTB", self.duration),
            ("PROTONDB", self.compatibility),
            ("STEAM", self.achievements),
            ("SGDB", self.assets),
        ):
            fmt = getattr(source, "format_cache_stats", None)
            if callable(fmt):
                lines.append(f"[{label}] {fmt()}")
        return lines


def build_provider_clients(
    *, credentials: Credentials, config: EnricherConfig = ENRICHER
) -> EnrichmentSources:
    """
    Instantiate source clients from credentials and enable toggles.

    A source whose credentials are missing is left as None and reported once here.
    """
    sources = EnrichmentSources()

    if credentials.igdb_client_id and credentials.igdb_client_secret:
        sources.metadata = IGDBClient(
            client_id=credentials.igdb_client_id,
            client_secret=credentials.igdb_client_secret,
        )
    else:
        logging.warning("[IGDB] No client id/secret configured; metadata enrichment disabled")

    if config.fetch_hltb:
        sources.duration = HLTBClient()

    if config.fetch_protondb:
        sources.compatibility = ProtonDBClient()

    if config.fetch_achievements:
        if credentials.steam_api_key and credentials.steam_id:
            sources.achievements = SteamAchievementsClient(
                api_key=credentials.steam_api_key,
                steam_id=credentials.steam_id,
            )
        else:
            logging.warning("[STEAM] No API key/SteamID configured; achievements disabled")

    if config.fetch_assets:
        if credentials.steamgriddb_api_key:
            sources.assets = SteamGridDBClient(api_key=credentials.steamgriddb_api_key)
        else:
            logging.warning("[SGDB] No API key configured; asset downloads disabled")

    return sources
