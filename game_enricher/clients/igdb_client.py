from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any

import requests

from ..config import IGDB, MATCHING, REQUEST
from ..errors import ProtocolError, ProviderHTTPError, ProviderNetworkError
from ..utils.utilities import RateLimiter, fuzzy_score
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import (
    as_float,
    as_int,
    as_opt_str,
    as_str,
    get_list_of_dicts,
    iso_date_from_epoch_seconds,
    parse_int_text,
    str_list,
)

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
IGDB_API_URL = "https://api.igdb.com/v4"
IGDB_COVER_URL = "https://images.igdb.com/igdb/image/upload/t_cover_big/{image_id}.jpg"

# IGDB external_games categories (a.k.a. external_game_source).
EXTERNAL_STEAM = 1
EXTERNAL_GOG = 5
EXTERNAL_AMAZON = 20
EXTERNAL_EPIC = 26

SEARCH_FIELDS = (
    "name, summary, storyline, rating, aggregated_rating, first_release_date, genres.name, "
    "involved_companies.company.name, involved_companies.developer, "
    "involved_companies.publisher, external_games.category, external_games.uid, "
    "cover.image_id"
)

_UNAUTHORIZED = object()


@dataclass
class IGDBGameMetadata:
    igdb_id: int
    name: str
    summary: str | None = None
    storyline: str | None = None
    rating: float | None = None
    aggregated_rating: float | None = None
    release_date: str | None = None
    genres: list[str] = field(default_factory=list)
    developer: str | None = None
    publisher: str | None = None
    steam_app_id: int | None = None
    gog_id: str | None = None
    epic_id: str | None = None
    amazon_id: str | None = None
    cover_url: str | None = None

    @property
    def description(self) -> str | None:
        return self.storyline or self.summary


def escape_search_text(title: str) -> str:
    """Quote-safe text for an IGDB `search "...";` clause."""
    s = re.sub(r"[\r\n\t]+", " ", str(title or "")).strip()
    return s.replace("\\", "\\\\").replace('"', '\\"')


def build_search_query(title: str) -> str:
    return f'search "{escape_search_text(title)}"; fields {SEARCH_FIELDS}; limit 1;'


def parse_metadata(game: dict[str, Any]) -> IGDBGameMetadata | None:
    """
    Extract the fields we keep from a raw IGDB `games` payload.

    Developer/publisher are the first involved companies flagged as such; genres keep IGDB's
    order.
    """
    igdb_id = as_int(game.get("id"))
    if igdb_id is None:
        return None

    developer: str | None = None
    publisher: str | None = None
    for ic in get_list_of_dicts(game.get("involved_companies")):
        company = ic.get("company")
        name = as_str(company.get("name")) if isinstance(company, dict) else ""
        if not name:
            continue
        if developer is None and ic.get("developer") is True:
            developer = name
        if publisher is None and ic.get("publisher") is True:
            publisher = name

    genres = str_list([g.get("name") for g in get_list_of_dicts(game.get("genres"))])

    meta = IGDBGameMetadata(
        igdb_id=igdb_id,
        name=as_str(game.get("name")),
        summary=as_opt_str(game.get("summary")),
        storyline=as_opt_str(game.get("storyline")),
        rating=as_float(game.get("rating")),
        aggregated_rating=as_float(game.get("aggregated_rating")),
        release_date=iso_date_from_epoch_seconds(game.get("first_release_date")),
        genres=genres,
        developer=developer,
        publisher=publisher,
    )

    for ext in get_list_of_dicts(game.get("external_games")):
        # Newer payloads expose `external_game_source`; older ones `category`.
        category = as_int(ext.get("external_game_source"))
        if category is None:
            category = as_int(ext.get("category"))
        uid = as_str(ext.get("uid"))
        if category is None or not uid:
            continue
        if category == EXTERNAL_STEAM and meta.steam_app_id is None:
            meta.steam_app_id = parse_int_text(uid)
        elif category == EXTERNAL_GOG and meta.gog_id is None:
            meta.gog_id = uid
        elif category == EXTERNAL_EPIC and meta.epic_id is None:
            meta.epic_id = uid
        elif category == EXTERNAL_AMAZON and meta.amazon_id is None:
            meta.amazon_id = uid

    cover = game.get("cover")
    if isinstance(cover, dict):
        image_id = as_str(cover.get("image_id"))
        if image_id:
            meta.cover_url = IGDB_COVER_URL.format(image_id=image_id)

    return meta


class IGDBClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        timeout_s: float = REQUEST.igdb_timeout_s,
        min_interval_s: float = IGDB.min_interval_s,
    ):
        self._session = requests.Session()
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout_s = float(timeout_s)
        self.stats: dict[str, int] = {
            "found": 0,
            "not_found": 0,
            # HTTP request counters.
            "http_oauth_token": 0,
            "http_post": 0,
            "reauth": 0,
        }
        base_http = HTTPJSONClient(self._session, source="IGDB", stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._post_http = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(
                timeout_s=self.timeout_s,
                ratelimiter=self.ratelimiter,
                counter_key="http_post",
                context_prefix="IGDB POST",
            ),
        )

        # Token is acquired lazily on the first API request and shared by all worker threads.
        self._token: str | None = None
        self._token_lock = threading.Lock()

    # -------------------------------------------------
    # OAuth
    # -------------------------------------------------
    def _ensure_token(self) -> str:
        with self._token_lock:
            if self._token:
                return self._token

            # Use form-encoded body (not URL params) to avoid leaking secrets in tracebacks/logs.
            self.stats["http_oauth_token"] += 1
            try:
                r = self._session.post(
                    TWITCH_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                    },
                    timeout=self.timeout_s,
                )
            except requests.RequestException as e:
                raise ProviderNetworkError("IGDB", f"token request failed: {e}") from e
            if not (200 <= int(r.status_code) < 300):
                raise ProviderHTTPError("IGDB", int(r.status_code), "token request")
            try:
                token = as_str(r.json().get("access_token"))
            except (ValueError, AttributeError) as e:
                raise ProtocolError("IGDB", f"invalid token response: {e}") from e
            if not token:
                raise ProtocolError("IGDB", "token response has no access_token")
            self._token = token
            return token

    def _invalidate_token(self, stale: str) -> None:
        with self._token_lock:
            if self._token == stale:
                self._token = None

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    # -------------------------------------------------
    # Helpers IGDB
    # -------------------------------------------------
    def _post(self, endpoint: str, query: str) -> Any:
        """
        POST an APICalypse query. An expired token (401) is refreshed once and the request
        replayed; a second 401 is an error.
        """
        for attempt in (1, 2):
            token = self._ensure_token()
            resp = self._post_http.post_json(
                f"{IGDB_API_URL}/{endpoint}",
                headers=self._headers(token),
                data=query,
                status_handlers={401: _UNAUTHORIZED},
                context=f"/{endpoint}",
            )
            if resp is not _UNAUTHORIZED:
                return resp
            if attempt == 2:
                raise ProviderHTTPError("IGDB", 401, f"/{endpoint} (after re-authentication)")
            logging.info("[IGDB] Access token rejected; re-authenticating")
            self.stats["reauth"] += 1
            self._invalidate_token(token)
        return None

    # -------------------------------------------------
    # Main search
    # -------------------------------------------------
    def fetch_metadata(self, title: str) -> IGDBGameMetadata | None:
        """
        Search IGDB for a title and return the top result's metadata, or None when IGDB has
        no match.
        """
        data = self._post("games", build_search_query(title))
        if not isinstance(data, list):
            raise ProtocolError("IGDB", f"unexpected /games response type: {type(data).__name__}")
        items = get_list_of_dicts(data)
        if not items:
            self.stats["not_found"] += 1
            logging.warning(f"Not found in IGDB: '{title}'. No results from API.")
            return None

        meta = parse_metadata(items[0])
        if meta is None:
            raise ProtocolError("IGDB", f"result for '{title}' has no id")
        self.stats["found"] += 1

        score = fuzzy_score(title, meta.name)
        if score < MATCHING.suspicious_score:
            logging.warning(f"Close match for '{title}': Selected '{meta.name}' (score: {score}%)")
        return meta

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"found={s['found']} not_found={s['not_found']}, "
            f"http oauth={s['http_oauth_token']} reauth={s['reauth']} "
            f"{HTTPJSONClient.format_timing(s, key='http_post')}"
        )
