from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from howlongtobeatpy import HowLongToBeat

from ..config import HLTB, MATCHING
from ..errors import ProviderNetworkError
from ..utils.utilities import RateLimiter, fuzzy_score
from .parse import as_int, as_str, hours_from_hours, hours_from_seconds


@dataclass(frozen=True)
class HLTBDurations:
    hltb_id: int | None
    name: str
    main: int | None = None
    main_extra: int | None = None
    completionist: int | None = None
    # Search results carry no speedrun time; kept for completeness of the record.
    speedrun: int | None = None


def entry_to_raw(entry: Any) -> dict[str, Any]:
    """
    Flatten a howlongtobeatpy result into the fields we use.

    `json_content` is the site's own payload (durations in seconds) when the library exposes it.
    """
    raw: dict[str, Any] = {
        "game_id": getattr(entry, "game_id", None),
        "game_name": as_str(getattr(entry, "game_name", "")),
        "main_story": getattr(entry, "main_story", None),
        "main_extra": getattr(entry, "main_extra", None),
        "completionist": getattr(entry, "completionist", None),
    }
    content = getattr(entry, "json_content", None)
    raw["json_content"] = content if isinstance(content, dict) else {}
    return raw


def _hours(raw: dict[str, Any], seconds_key: str, hours_key: str) -> int | None:
    seconds = raw["json_content"].get(seconds_key)
    if seconds is not None:
        return hours_from_seconds(seconds)
    return hours_from_hours(raw.get(hours_key))


def select_match(title: str, results: list[dict[str, Any]]) -> dict[str, Any] | None:
    """
    Pick the result for `title`: an exact case-insensitive name match wins, otherwise the first
    result whose name contains the query (or is contained in it). Anything else is no match.
    """
    query = str(title or "").strip().casefold()
    if not query:
        return None
    named = [(as_str(r.get("game_name")).casefold(), r) for r in results]
    named = [(n, r) for n, r in named if n]
    for name, r in named:
        if name == query:
            return r
    for name, r in named:
        if query in name or name in query:
            return r
    return None


class HLTBClient:
    def __init__(self, *, min_interval_s: float = HLTB.min_interval_s):
        self.stats: dict[str, int] = {
            "found": 0,
            "not_found": 0,
            "search": 0,
        }
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self.client = HowLongToBeat()

    def search(self, title: str) -> list[dict[str, Any]]:
        """Candidates for a title, flattened with `entry_to_raw`."""
        if not str(title or "").strip():
            return []
        self.ratelimiter.wait()
        self.stats["search"] += 1
        try:
            entries = self.client.search(str(title or "").strip())
        except Exception as e:
            raise ProviderNetworkError("HLTB", f"search '{title}': {type(e).__name__}: {e}") from e
        # howlongtobeatpy returns None when the request itself failed and [] for no results.
        if entries is None:
            raise ProviderNetworkError("HLTB", f"search '{title}': request failed")
        return [entry_to_raw(e) for e in entries]

    def fetch_duration(self, title: str) -> HLTBDurations | None:
        results = self.search(title)
        best = select_match(title, results)
        if best is None:
            self.stats["not_found"] += 1
            if results:
                top = ", ".join(f"'{r['game_name']}'" for r in results[:5])
                logging.warning(f"Not found in HLTB: '{title}'. Closest matches: {top}")
            else:
                logging.warning(f"Not found in HLTB: '{title}'. No results from API.")
            return None

        self.stats["found"] += 1
        name = best["game_name"]
        score = fuzzy_score(title, name)
        if score < MATCHING.suspicious_score:
            logging.warning(f"Close match for '{title}': Selected '{name}' (score: {score}%)")
        return HLTBDurations(
            hltb_id=as_int(best.get("game_id")),
            name=name,
            main=_hours(best, "comp_main", "main_story"),
            main_extra=_hours(best, "comp_plus", "main_extra"),
            completionist=_hours(best, "comp_100", "completionist"),
        )

    def format_cache_stats(self) -> str:
        s = self.stats
        return f"found={s['found']} not_found={s['not_found']} search={s['search']}"
