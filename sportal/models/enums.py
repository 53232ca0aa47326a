from enum import Enum


class FetchStatus(str, Enum):
    """Outcome of fetching one team's fixtures."""

    OK = "ok"  # At least one fixture inside the date window
    EMPTY = "empty"  # Fetched fine, nothing inside the date window
    FAILED = "failed"  # Upstream failure, treated as zero fixtures


class CacheSource(str, Enum):
    CACHE = "cache"
    FRESH_FETCH = "fresh-fetch"
