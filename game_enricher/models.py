from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

CACHE_SCHEMA_VERSION = 1


class AssetKind(str, Enum):
    HERO = "hero"
    GRID = "grid"
    LOGO = "logo"
    ICON = "icon"

    @property
    def endpoint(self) -> str:
        """SteamGridDB API collection name for this kind."""
        return f"{self.value}es" if self is AssetKind.HERO else f"{self.value}s"

    @property
    def path_field(self) -> str:
        """Name of the CachedMetadata attribute holding the local file path."""
        return f"{self.value}_path"


ALL_ASSET_KINDS: tuple[AssetKind, ...] = (
    AssetKind.HERO,
    AssetKind.GRID,
    AssetKind.LOGO,
    AssetKind.ICON,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: object) -> datetime:
    """
    Parse an ISO-8601 timestamp as written by `format_timestamp`.

    Naive values are interpreted as UTC. Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


_TRUTHY = {"1", "true", "yes", "y", "t"}


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    s = str(value).strip()
    if s.lstrip("-").isdigit():
        return int(s)
    return None


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


# ----------------------------
# Base game (read-only input)
# ----------------------------


@dataclass(frozen=True)
class BaseGame:
    """A library entry as supplied by the storefront/library layer."""

    id: str
    title: str
    store: str = ""
    store_id: str = ""
    installed: bool = False
    install_path: str | None = None
    developer: str | None = None
    publisher: str | None = None
    description: str | None = None
    release_date: str | None = None
    cover_url: str | None = None
    background_url: str | None = None
    play_time_minutes: int = 0
    last_played: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> BaseGame:
        """
        Build a BaseGame from a CSV row / mapping.

        Unknown keys are ignored; empty strings become None for optional fields.
        """
        game_id = str(row.get("id", "") or "").strip()
        title = str(row.get("title", "") or "").strip()
        if not game_id:
            raise ValueError(f"Missing game id in row: {row!r}")
        installed_raw = row.get("installed", False)
        if isinstance(installed_raw, bool):
            installed = installed_raw
        else:
            installed = str(installed_raw or "").strip().casefold() in _TRUTHY
        return cls(
            id=game_id,
            title=title,
            store=str(row.get("store", "") or "").strip(),
            store_id=str(row.get("store_id", "") or "").strip(),
            installed=installed,
            install_path=_opt_str(row.get("install_path")),
            developer=_opt_str(row.get("developer")),
            publisher=_opt_str(row.get("publisher")),
            description=_opt_str(row.get("description")),
            release_date=_opt_str(row.get("release_date")),
            cover_url=_opt_str(row.get("cover_url")),
            background_url=_opt_str(row.get("background_url")),
            play_time_minutes=_opt_int(row.get("play_time_minutes")) or 0,
            last_played=_opt_str(row.get("last_played")),
            created_at=_opt_str(row.get("created_at")),
            updated_at=_opt_str(row.get("updated_at")),
        )


# ----------------------------
# Cached metadata (persisted)
# ----------------------------


@dataclass
class CachedMetadata:
    game_id: str
    fetched_at: datetime
    last_updated: datetime
    igdb_id: int | None = None
    description: str | None = None
    summary: str | None = None
    rating: float | None = None
    aggregated_rating: float | None = None
    developer: str | None = None
    publisher: str | None = None
    genres: list[str] = field(default_factory=list)
    release_date: str | None = None
    cover_url: str | None = None
    hltb_id: int | None = None
    hltb_main: int | None = None
    hltb_main_extra: int | None = None
    hltb_complete: int | None = None
    hltb_speedrun: int | None = None
    steam_app_id: int | None = None
    proton_tier: str | None = None
    proton_confidence: str | None = None
    proton_trending_tier: str | None = None
    achievements_total: int | None = None
    achievements_unlocked: int | None = None
    hero_path: str | None = None
    grid_path: str | None = None
    logo_path: str | None = None
    icon_path: str | None = None

    _INT_FIELDS = (
        "igdb_id",
        "hltb_id",
        "hltb_main",
        "hltb_main_extra",
        "hltb_complete",
        "hltb_speedrun",
        "steam_app_id",
        "achievements_total",
        "achievements_unlocked",
    )
    _FLOAT_FIELDS = ("rating", "aggregated_rating")

    @classmethod
    def new(cls, game_id: str, *, now: datetime | None = None) -> CachedMetadata:
        ts = now or utc_now()
        return cls(game_id=game_id, fetched_at=ts, last_updated=ts)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif isinstance(value, list):
                value = list(value)
            out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedMetadata:
        """
        Inverse of `to_dict`. Unknown keys are ignored.

        Raises ValueError when required keys are missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"metadata record must be an object, got {type(data).__name__}")
        game_id = data.get("game_id")
        if not isinstance(game_id, str) or not game_id:
            raise ValueError("metadata record is missing 'game_id'")
        kwargs: dict[str, Any] = {
            "game_id": game_id,
            "fetched_at": parse_timestamp(data.get("fetched_at")),
            "last_updated": parse_timestamp(data.get("last_updated")),
        }
        for f in fields(cls):
            name = f.name
            if name in kwargs or name not in data:
                continue
            value = data[name]
            if name == "genres":
                kwargs[name] = [str(g) for g in (value or [])]
            elif name in cls._INT_FIELDS:
                kwargs[name] = _opt_int(value)
            elif name in cls._FLOAT_FIELDS:
                kwargs[name] = _opt_float(value)
            else:
                kwargs[name] = None if value is None else str(value)
        return cls(**kwargs)

    def asset_path(self, kind: AssetKind) -> str | None:
        return getattr(self, kind.path_field)

    def set_asset_path(self, kind: AssetKind, path: str | None) -> None:
        setattr(self, kind.path_field, path)

    def merged_over(self, previous: CachedMetadata | None) -> CachedMetadata:
        """
        Fill fields this record left unset from `previous`.

        `fetched_at` is taken from `previous` (set once, never changes); `last_updated` is
        kept from this record.
        """
        if previous is None:
            return self
        for f in fields(self):
            name = f.name
            if name in {"game_id", "fetched_at", "last_updated"}:
                continue
            current = getattr(self, name)
            if current is None or (name == "genres" and not current):
                prev_value = getattr(previous, name)
                setattr(self, name, list(prev_value) if isinstance(prev_value, list) else prev_value)
        self.fetched_at = previous.fetched_at
        return self


@dataclass
class MetadataCacheDocument:
    version: int = CACHE_SCHEMA_VERSION
    games: dict[str, CachedMetadata] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": int(self.version),
            "games": {gid: m.to_dict() for gid, m in self.games.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> MetadataCacheDocument:
        if not isinstance(data, dict):
            raise ValueError("cache document must be a JSON object")
        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError(f"cache document has invalid version: {version!r}")
        raw_games = data.get("games", {})
        if not isinstance(raw_games, dict):
            raise ValueError("cache document 'games' must be an object")
        games: dict[str, CachedMetadata] = {}
        for gid, raw in raw_games.items():
            record = CachedMetadata.from_dict(raw)
            games[str(gid)] = record
        return cls(version=version, games=games)


# ----------------------------
# Derived views
# ----------------------------


@dataclass(frozen=True)
class EnrichedGame:
    id: str
    title: str
    store: str
    store_id: str
    installed: bool
    install_path: str | None
    developer: str | None
    publisher: str | None
    description: str | None
    release_date: str | None
    cover_url: str | None
    background_url: str | None
    play_time_minutes: int
    last_played: str | None
    igdb_id: int | None = None
    summary: str | None = None
    igdb_rating: float | None = None
    metacritic_score: float | None = None
    genres: tuple[str, ...] = ()
    hltb_main: int | None = None
    hltb_main_extra: int | None = None
    hltb_complete: int | None = None
    hltb_speedrun: int | None = None
    steam_app_id: int | None = None
    proton_tier: str | None = None
    proton_confidence: str | None = None
    proton_trending_tier: str | None = None
    achievements_total: int | None = None
    achievements_unlocked: int | None = None
    hero_path: str | None = None
    grid_path: str | None = None
    logo_path: str | None = None
    icon_path: str | None = None
    enriched_at: datetime | None = None

    @classmethod
    def minimal(cls, game: BaseGame) -> EnrichedGame:
        """BaseGame-only view, used when the cache layer cannot be consulted."""
        return cls(
            id=game.id,
            title=game.title,
            store=game.store,
            store_id=game.store_id,
            installed=game.installed,
            install_path=game.install_path,
            developer=game.developer,
            publisher=game.publisher,
            description=game.description,
            release_date=game.release_date,
            cover_url=game.cover_url,
            background_url=game.background_url,
            play_time_minutes=game.play_time_minutes,
            last_played=game.last_played,
        )

    @classmethod
    def build(cls, game: BaseGame, metadata: CachedMetadata | None) -> EnrichedGame:
        """
        Combine a base game with its cached record.

        Cached developer/publisher/release date/description win when present; otherwise the
        base game's own values are used. The cover is the reverse: the library's own cover wins
        and the IGDB cover is only a fallback.
        """
        if metadata is None:
            return cls.minimal(game)
        return cls(
            id=game.id,
            title=game.title,
            store=game.store,
            store_id=game.store_id,
            installed=game.installed,
            install_path=game.install_path,
            developer=metadata.developer or game.developer,
            publisher=metadata.publisher or game.publisher,
            description=metadata.description or metadata.summary or game.description,
            release_date=metadata.release_date or game.release_date,
            cover_url=game.cover_url or metadata.cover_url,
            background_url=game.background_url,
            play_time_minutes=game.play_time_minutes,
            last_played=game.last_played,
            igdb_id=metadata.igdb_id,
            summary=metadata.summary,
            igdb_rating=metadata.rating,
            metacritic_score=metadata.aggregated_rating,
            genres=tuple(metadata.genres),
            hltb_main=metadata.hltb_main,
            hltb_main_extra=metadata.hltb_main_extra,
            hltb_complete=metadata.hltb_complete,
            hltb_speedrun=metadata.hltb_speedrun,
            steam_app_id=metadata.steam_app_id,
            proton_tier=metadata.proton_tier,
            proton_confidence=metadata.proton_confidence,
            proton_trending_tier=metadata.proton_trending_tier,
            achievements_total=metadata.achievements_total,
            achievements_unlocked=metadata.achievements_unlocked,
            hero_path=metadata.hero_path,
            grid_path=metadata.grid_path,
            logo_path=metadata.logo_path,
            icon_path=metadata.icon_path,
            enriched_at=metadata.last_updated,
        )

    def to_row(self) -> dict[str, Any]:
        """Flatten into a CSV-friendly dict (lists joined, None as empty string)."""
        row: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                row[f.name] = ""
            elif isinstance(value, tuple):
                row[f.name] = ", ".join(value)
            elif isinstance(value, datetime):
                row[f.name] = format_timestamp(value)
            elif isinstance(value, bool):
                row[f.name] = "true" if value else "false"
            else:
                row[f.name] = str(value)
        return row


@dataclass(frozen=True)
class CacheStats:
    games_count: int
    total_assets_count: int
    total_assets_size: int
    cache_dir: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "games_count": self.games_count,
            "total_assets_count": self.total_assets_count,
            "total_assets_size": self.total_assets_size,
            "cache_dir": self.cache_dir,
        }
