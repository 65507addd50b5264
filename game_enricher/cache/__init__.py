"""On-disk metadata and asset cache."""

from .asset_store import AssetStore, sanitize_game_id
from .metadata_cache import MetadataCache

__all__ = ["AssetStore", "MetadataCache", "sanitize_game_id"]
