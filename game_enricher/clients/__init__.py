"""API clients for game data sources."""

from .hltb_client import HLTBClient
from .igdb_client import IGDBClient
from .protondb_client import ProtonDBClient, ProtonTier
from .steam_client import SteamAchievementsClient
from .steamgriddb_client import SteamGridDBClient

__all__ = [
    "HLTBClient",
    "IGDBClient",
    "ProtonDBClient",
    "ProtonTier",
    "SteamAchievementsClient",
    "SteamGridDBClient",
]
