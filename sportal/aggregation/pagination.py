from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

# A page fetcher takes the cursor of the page to load (None for the first page)
PageFetcher = Callable[[Optional[str]], Awaitable[Dict[str, Any]]]


async def paginate(fetch_page: PageFetcher, label: str = "resource") -> List[Dict[str, Any]]:
    """Drains a cursor-paginated resource into a single list.

    Each page looks like ``{"data": [...], "metadata": {"hasMore": bool,
    "nextCursor": str}}``. The walk ends when ``hasMore`` is false, when
    ``nextCursor`` is missing, or when the upstream hands back a cursor it
    already returned.
    """
    items: List[Dict[str, Any]] = []
    seen_cursors = set()
    cursor: Optional[str] = None
    pages = 0

    while True:
        page = await fetch_page(cursor) or {}
        pages += 1
        items.extend(page.get("data") or [])

        metadata = page.get("metadata") or {}
        if not metadata.get("hasMore"):
            break

        next_cursor = metadata.get("nextCursor")
        if not next_cursor:
            logger.warning(
                f"{label}: page {pages} reports hasMore without a nextCursor, stopping."
            )
            break
        if next_cursor in seen_cursors:
            logger.warning(f"{label}: cursor {next_cursor} repeated, stopping.")
            break

        seen_cursors.add(next_cursor)
        cursor = next_cursor

    logger.debug(f"{label}: fetched {len(items)} items across {pages} page(s)")
    return items
