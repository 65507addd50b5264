from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from ..config import MATCHING, REQUEST, STEAMGRIDDB
from ..errors import AssetGameNotFoundError, ProtocolError, ProviderError
from ..models import ALL_ASSET_KINDS, AssetKind
from ..utils.utilities import RateLimiter, fuzzy_score
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import as_int, as_str, get_list_of_dicts

STEAMGRIDDB_API_BASE = "https://www.steamgriddb.com/api/v2"

_NOT_FOUND = object()

_CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class SGDBGame:
    id: int
    name: str
    verified: bool = False


@dataclass(frozen=True)
class SGDBImage:
    id: int
    score: int
    url: str
    thumb: str = ""
    style: str = ""
    width: int | None = None
    height: int | None = None
    mime: str = ""
    nsfw: bool = False
    humor: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SGDBImage | None:
        image_id = as_int(data.get("id"))
        url = as_str(data.get("url"))
        if image_id is None or not url:
            return None
        return cls(
            id=image_id,
            score=as_int(data.get("score")) or 0,
            url=url,
            thumb=as_str(data.get("thumb")),
            style=as_str(data.get("style")),
            width=as_int(data.get("width")),
            height=as_int(data.get("height")),
            mime=as_str(data.get("mime")),
            nsfw=data.get("nsfw") is True,
            humor=data.get("humor") is True,
        )


@dataclass
class SGDBAssets:
    game_id: int
    game_name: str
    images: dict[AssetKind, SGDBImage | None] = field(default_factory=dict)


def select_best_image(images: list[SGDBImage]) -> SGDBImage | None:
    """Highest-scored image that is flagged neither nsfw nor humor."""
    safe = [img for img in images if not img.nsfw and not img.humor]
    if not safe:
        return None
    return max(safe, key=lambda img: img.score)


def extension_for_content_type(content_type: str) -> str:
    mime = as_str(content_type).split(";", 1)[0].strip().lower()
    return _CONTENT_TYPE_EXTENSIONS.get(mime, "jpg")


def pick_search_result(games: list[SGDBGame]) -> SGDBGame | None:
    """Prefer verified entries, then the shortest name (closest to the bare title)."""
    if not games:
        return None
    return max(games, key=lambda g: (g.verified, -len(g.name)))


class SteamGridDBClient:
    def __init__(
        self,
        api_key: str,
        *,
        timeout_s: float = REQUEST.steamgriddb_timeout_s,
        min_interval_s: float = STEAMGRIDDB.min_interval_s,
        max_parallel_kinds: int = STEAMGRIDDB.max_parallel_kinds,
    ):
        self._session = requests.Session()
        self.api_key = api_key
        self.max_parallel_kinds = max(1, int(max_parallel_kinds))
        self.stats: dict[str, int] = {
            "found": 0,
            "not_found": 0,
            "kind_failures": 0,
            "http_get": 0,
            "http_download": 0,
        }
        base_http = HTTPJSONClient(self._session, source="SGDB", stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._api = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(
                timeout_s=float(timeout_s),
                ratelimiter=self.ratelimiter,
                headers={"Authorization": f"Bearer {api_key}"},
                counter_key="http_get",
                context_prefix="SteamGridDB GET",
            ),
        )
        # Image CDN downloads are not authenticated and not rate limited by the API budget.
        self._cdn = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(timeout_s=float(timeout_s), context_prefix="SteamGridDB download"),
        )

    @staticmethod
    def _unwrap(resp: Any, context: str) -> Any:
        """Return `data` from the `{success, data, errors}` envelope."""
        if not isinstance(resp, dict):
            raise ProtocolError("SGDB", f"{context}: response is not an object")
        if resp.get("success") is not True:
            errors = [as_str(e) for e in (resp.get("errors") or []) if as_str(e)]
            if errors:
                raise ProviderError("SGDB", f"{context}: {', '.join(errors)}")
            return None
        return resp.get("data")

    # -------------------------------------------------
    # Game lookup
    # -------------------------------------------------
    def search_game(self, title: str) -> SGDBGame | None:
        resp = self._api.get_json(
            f"{STEAMGRIDDB_API_BASE}/search/autocomplete/{quote(str(title or ''), safe='')}",
            status_handlers={404: _NOT_FOUND},
            context="/search/autocomplete",
        )
        if resp is _NOT_FOUND:
            return None
        data = self._unwrap(resp, "/search/autocomplete")
        games: list[SGDBGame] = []
        for g in get_list_of_dicts(data):
            gid = as_int(g.get("id"))
            if gid is None:
                continue
            games.append(SGDBGame(id=gid, name=as_str(g.get("name")), verified=g.get("verified") is True))
        return pick_search_result(games)

    def game_by_steam_id(self, steam_app_id: int) -> SGDBGame | None:
        resp = self._api.get_json(
            f"{STEAMGRIDDB_API_BASE}/games/steam/{int(steam_app_id)}",
            status_handlers={404: _NOT_FOUND},
            context="/games/steam",
        )
        if resp is _NOT_FOUND:
            return None
        data = self._unwrap(resp, "/games/steam")
        if not isinstance(data, dict) or as_int(data.get("id")) is None:
            return None
        return SGDBGame(
            id=int(data["id"]), name=as_str(data.get("name")), verified=data.get("verified") is True
        )

    # -------------------------------------------------
    # Images
    # -------------------------------------------------
    def get_images(self, kind: AssetKind, game_id: int) -> list[SGDBImage]:
        resp = self._api.get_json(
            f"{STEAMGRIDDB_API_BASE}/{kind.endpoint}/game/{int(game_id)}",
            params={"nsfw": "false", "humor": "false"},
            status_handlers={404: _NOT_FOUND},
            context=f"/{kind.endpoint}",
        )
        if resp is _NOT_FOUND:
            return []
        data = self._unwrap(resp, f"/{kind.endpoint}")
        images = [SGDBImage.from_dict(d) for d in get_list_of_dicts(data)]
        return [img for img in images if img is not None]

    def best_image(self, kind: AssetKind, game_id: int) -> SGDBImage | None:
        return select_best_image(self.get_images(kind, game_id))

    def download_image(self, url: str) -> tuple[bytes, str]:
        """Download an image. Returns (bytes, file extension derived from Content-Type)."""
        content, content_type = self._cdn.get_bytes(url, context=url)
        return content, extension_for_content_type(content_type)

    def fetch_assets(
        self,
        title: str,
        kinds: list[AssetKind] | tuple[AssetKind, ...] = ALL_ASSET_KINDS,
        *,
        steam_app_id: int | None = None,
    ) -> SGDBAssets:
        """
        Resolve the game and pick the best image for each requested kind.

        Raises AssetGameNotFoundError when the title cannot be resolved. A kind whose lookup
        fails is logged and left as None so the others still succeed.
        """
        game: SGDBGame | None = None
        if steam_app_id is not None:
            game = self.game_by_steam_id(steam_app_id)
        if game is None:
            game = self.search_game(title)
        if game is None:
            self.stats["not_found"] += 1
            raise AssetGameNotFoundError("SGDB", title)
        self.stats["found"] += 1
        logging.debug(f"[SGDB] Found '{game.name}' (id: {game.id}) for '{title}'")
        score = fuzzy_score(title, game.name)
        if game.name and score < MATCHING.suspicious_score:
            logging.warning(f"Close match for '{title}': Selected '{game.name}' (score: {score}%)")

        assets = SGDBAssets(game_id=game.id, game_name=game.name)
        kinds = list(kinds)
        if not kinds:
            return assets
        with ThreadPoolExecutor(max_workers=min(self.max_parallel_kinds, len(kinds))) as pool:
            futures = {kind: pool.submit(self.best_image, kind, game.id) for kind in kinds}
            for kind, fut in futures.items():
                try:
                    assets.images[kind] = fut.result()
                except ProviderError as e:
                    self.stats["kind_failures"] += 1
                    logging.warning(f"[SGDB] {kind.value} lookup failed for '{title}': {e}")
                    assets.images[kind] = None
        return assets

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"found={s['found']} not_found={s['not_found']} kind_failures={s['kind_failures']} "
            f"{HTTPJSONClient.format_timing(s, key='http_get')} "
            f"{HTTPJSONClient.format_timing(s, key='http_download')}"
        )
