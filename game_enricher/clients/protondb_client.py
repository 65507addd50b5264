from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import requests

from ..config import PROTONDB, REQUEST
from ..errors import ProtocolError
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import as_float, as_int, as_opt_str, as_str

PROTONDB_SUMMARIES_URL = "https://www.protondb.com/api/v1/reports/summaries"
PROTONDB_USER_AGENT = "game-enricher/1.0"

_NOT_FOUND = object()


class ProtonTier(str, Enum):
    NATIVE = "native"
    PLATINUM = "platinum"
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    PENDING = "pending"
    BORKED = "borked"

    @classmethod
    def from_str(cls, value: str | None) -> ProtonTier | None:
        """Case-insensitive parse; unknown tiers are None."""
        s = as_str(value).casefold()
        for tier in cls:
            if tier.value == s:
                return tier
        return None

    @property
    def score(self) -> int:
        return _TIER_SCORES[self]

    @property
    def is_playable(self) -> bool:
        return self in _PLAYABLE


_TIER_SCORES = {
    ProtonTier.NATIVE: 100,
    ProtonTier.PLATINUM: 90,
    ProtonTier.GOLD: 75,
    ProtonTier.SILVER: 50,
    ProtonTier.BRONZE: 25,
    ProtonTier.PENDING: 10,
    ProtonTier.BORKED: 0,
}
_PLAYABLE = {ProtonTier.NATIVE, ProtonTier.PLATINUM, ProtonTier.GOLD, ProtonTier.SILVER}


@dataclass(frozen=True)
class ProtonCompatibility:
    steam_app_id: int
    tier: str
    tier_score: int | None
    confidence: str | None
    trending_tier: str | None
    best_reported_tier: str | None
    total_reports: int | None
    score: float | None
    provisional: bool | None
    is_playable: bool


class ProtonDBClient:
    def __init__(
        self,
        *,
        timeout_s: float = REQUEST.protondb_timeout_s,
        min_interval_s: float = PROTONDB.min_interval_s,
    ):
        self._session = requests.Session()
        self.stats: dict[str, int] = {
            "found": 0,
            "not_found": 0,
            "http_get": 0,
        }
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, source="PROTONDB", stats=self.stats),
            HTTPRequestDefaults(
                timeout_s=float(timeout_s),
                ratelimiter=self.ratelimiter,
                headers={"User-Agent": PROTONDB_USER_AGENT},
                status_handlers={404: _NOT_FOUND},
                counter_key="http_get",
                context_prefix="ProtonDB GET",
            ),
        )

    def fetch_compatibility(self, steam_app_id: int) -> ProtonCompatibility | None:
        """
        Community compatibility summary for a Steam app, or None when ProtonDB has no reports.
        """
        data = self._http.get_json(
            f"{PROTONDB_SUMMARIES_URL}/{int(steam_app_id)}.json",
            context=f"app {steam_app_id}",
        )
        if data is _NOT_FOUND:
            self.stats["not_found"] += 1
            logging.debug(f"[PROTONDB] No reports for app {steam_app_id}")
            return None
        if not isinstance(data, dict):
            raise ProtocolError("PROTONDB", f"summary for app {steam_app_id} is not an object")
        tier_text = as_str(data.get("tier"))
        if not tier_text:
            raise ProtocolError("PROTONDB", f"summary for app {steam_app_id} has no tier")

        self.stats["found"] += 1
        tier = ProtonTier.from_str(tier_text)
        provisional = data.get("provisional")
        return ProtonCompatibility(
            steam_app_id=int(steam_app_id),
            tier=tier.value if tier is not None else tier_text,
            tier_score=tier.score if tier is not None else None,
            confidence=as_opt_str(data.get("confidence")),
            trending_tier=as_opt_str(data.get("trendingTier")),
            best_reported_tier=as_opt_str(data.get("bestReportedTier")),
            total_reports=as_int(data.get("total")),
            score=as_float(data.get("score")),
            provisional=provisional if isinstance(provisional, bool) else None,
            is_playable=tier.is_playable if tier is not None else False,
        )

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"found={s['found']} not_found={s['not_found']} "
            f"{HTTPJSONClient.format_timing(s, key='http_get')}"
        )
