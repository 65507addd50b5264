"""
Capability interfaces the orchestrator depends on.

Real clients satisfy these structurally; tests pass small fakes instead.
"""

from __future__ import annotations

from typing import Protocol

from ..models import AssetKind
from .hltb_client import HLTBDurations
from .igdb_client import IGDBGameMetadata
from .protondb_client import ProtonCompatibility
from .steam_client import GameAchievements
from .steamgriddb_client import SGDBAssets


class MetadataSource(Protocol):
    def fetch_metadata(self, title: str) -> IGDBGameMetadata | None: ...


class DurationSource(Protocol):
    def fetch_duration(self, title: str) -> HLTBDurations | None: ...


class CompatibilitySource(Protocol):
    def fetch_compatibility(self, steam_app_id: int) -> ProtonCompatibility | None: ...


class AchievementSource(Protocol):
    def fetch_achievements(self, app_id: int) -> GameAchievements | None: ...


class AssetSource(Protocol):
    def fetch_assets(
        self,
        title: str,
        kinds: list[AssetKind],
        *,
        steam_app_id: int | None = None,
    ) -> SGDBAssets: ...

    def download_image(self, url: str) -> tuple[bytes, str]: ...
