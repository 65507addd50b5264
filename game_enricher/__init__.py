"""Game Enricher - Augment a game library with metadata, playtimes, compatibility and art."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("game-enricher")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"
