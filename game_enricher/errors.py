from __future__ import annotations


class EnricherError(Exception):
    """Base class for all enrichment errors."""


# ----------------------------
# Provider errors
# ----------------------------


class ProviderError(EnricherError):
    """
    A single source call failed.

    The orchestrator treats any ProviderError as "no data from this source" for the current
    game; it never aborts the game or the batch.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class RateLimitedError(ProviderError):
    def __init__(self, source: str, context: str = ""):
        super().__init__(source, f"rate limited (HTTP 429){': ' + context if context else ''}")


class ProviderHTTPError(ProviderError):
    def __init__(self, source: str, status: int, context: str = ""):
        super().__init__(source, f"HTTP {status}{': ' + context if context else ''}")
        self.status = int(status)


class ProviderNetworkError(ProviderError):
    pass


class ProtocolError(ProviderError):
    """Response body could not be decoded or had an unexpected shape."""


class AssetGameNotFoundError(ProviderError):
    def __init__(self, source: str, title: str):
        super().__init__(source, f"game not found: '{title}'")
        self.title = title


# ----------------------------
# Cache errors
# ----------------------------


class CacheError(EnricherError):
    pass


class CacheIOError(CacheError):
    pass


class CacheCorruptError(CacheIOError):
    """metadata.json exists but cannot be decoded. It is never silently reset."""
