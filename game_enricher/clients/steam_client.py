from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import requests

from ..config import REQUEST, STEAM
from ..errors import ProtocolError
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import as_int, as_opt_str, as_str, get_list_of_dicts

STEAM_API_BASE = "https://api.steampowered.com"
SCHEMA_URL = f"{STEAM_API_BASE}/ISteamUserStats/GetSchemaForGame/v2/"
PLAYER_ACHIEVEMENTS_URL = f"{STEAM_API_BASE}/ISteamUserStats/GetPlayerAchievements/v1/"

# Steam answers 400/403 for private profiles and apps without stats.
_NO_PLAYER_STATS = object()


@dataclass(frozen=True)
class Achievement:
    api_name: str
    name: str
    description: str | None
    achieved: bool
    unlock_time: int | None
    icon_url: str | None
    icon_gray_url: str | None
    hidden: bool = False


@dataclass(frozen=True)
class GameAchievements:
    total: int
    unlocked: int
    achievements: list[Achievement] = field(default_factory=list)

    @property
    def completion_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return self.unlocked / self.total * 100.0


def join_achievements(
    schema: list[dict[str, Any]], player: list[dict[str, Any]]
) -> GameAchievements:
    """
    Combine schema definitions with the player's unlock list by internal name.

    Achievements missing from the player list count as locked.
    """
    by_name: dict[str, dict[str, Any]] = {}
    for p in player:
        api_name = as_str(p.get("apiname"))
        if api_name:
            by_name[api_name] = p

    achievements: list[Achievement] = []
    unlocked = 0
    for s in schema:
        api_name = as_str(s.get("name"))
        p = by_name.get(api_name)
        achieved = p is not None and as_int(p.get("achieved")) == 1
        if achieved:
            unlocked += 1
        unlock_time = as_int(p.get("unlocktime")) if p is not None else None
        achievements.append(
            Achievement(
                api_name=api_name,
                name=as_str(s.get("displayName")) or api_name,
                description=as_opt_str(s.get("description")),
                achieved=achieved,
                unlock_time=unlock_time or None,
                icon_url=as_opt_str(s.get("icon")),
                icon_gray_url=as_opt_str(s.get("icongray")),
                hidden=as_int(s.get("hidden")) == 1,
            )
        )
    return GameAchievements(total=len(schema), unlocked=unlocked, achievements=achievements)


class SteamAchievementsClient:
    def __init__(
        self,
        api_key: str,
        steam_id: str,
        *,
        timeout_s: float = REQUEST.steam_timeout_s,
        min_interval_s: float = STEAM.min_interval_s,
    ):
        self._session = requests.Session()
        self.api_key = (api_key or "").strip()
        self.steam_id = (steam_id or "").strip()
        self.stats: dict[str, int] = {
            "found": 0,
            "no_achievements": 0,
            "private_or_missing_stats": 0,
            "http_get": 0,
        }
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, source="STEAM", stats=self.stats),
            HTTPRequestDefaults(
                timeout_s=float(timeout_s),
                ratelimiter=self.ratelimiter,
                counter_key="http_get",
                context_prefix="Steam GET",
            ),
        )

    def can_fetch(self) -> bool:
        return bool(self.api_key) and bool(self.steam_id)

    def _schema(self, app_id: int) -> list[dict[str, Any]]:
        data = self._http.get_json(
            SCHEMA_URL,
            params={"appid": int(app_id), "key": self.api_key},
            context=f"GetSchemaForGame appid={app_id}",
        )
        if not isinstance(data, dict):
            raise ProtocolError("STEAM", f"schema for appid={app_id} is not an object")
        game = data.get("game")
        stats = game.get("availableGameStats") if isinstance(game, dict) else None
        if not isinstance(stats, dict):
            return []
        return get_list_of_dicts(stats.get("achievements"))

    def _player(self, app_id: int) -> list[dict[str, Any]]:
        data = self._http.get_json(
            PLAYER_ACHIEVEMENTS_URL,
            params={"appid": int(app_id), "key": self.api_key, "steamid": self.steam_id},
            status_handlers={400: _NO_PLAYER_STATS, 403: _NO_PLAYER_STATS},
            context=f"GetPlayerAchievements appid={app_id}",
        )
        if data is _NO_PLAYER_STATS:
            self.stats["private_or_missing_stats"] += 1
            logging.debug(f"[STEAM] No player stats for appid={app_id} (profile private or no stats)")
            return []
        if not isinstance(data, dict):
            raise ProtocolError("STEAM", f"player achievements for appid={app_id} is not an object")
        stats = data.get("playerstats")
        if not isinstance(stats, dict):
            return []
        error = as_str(stats.get("error"))
        if error:
            self.stats["private_or_missing_stats"] += 1
            logging.debug(f"[STEAM] Player achievements error for appid={app_id}: {error}")
            return []
        return get_list_of_dicts(stats.get("achievements"))

    def fetch_achievements(self, app_id: int) -> GameAchievements | None:
        """
        Achievement totals for the configured user, or None when the game defines none (or
        credentials are missing).
        """
        if not self.can_fetch():
            return None

        with ThreadPoolExecutor(max_workers=2) as pool:
            schema_future = pool.submit(self._schema, app_id)
            player_future = pool.submit(self._player, app_id)
            schema = schema_future.result()
            player = player_future.result()

        if not schema:
            self.stats["no_achievements"] += 1
            return None
        self.stats["found"] += 1
        return join_achievements(schema, player)

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"found={s['found']} none={s['no_achievements']} "
            f"private={s['private_or_missing_stats']} "
            f"{HTTPJSONClient.format_timing(s, key='http_get')}"
        )
