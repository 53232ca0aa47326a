import sys
import asyncio

# --- Settings/Logging ---
from sportal.logging.setup import setup_logging
from sportal.config.settings import settings

setup_logging()

from loguru import logger

from sportal.cache.cache_manager import CacheManager, is_cache_fresh
from sportal.clients.base_client import UpstreamError
from sportal.storage.supabase_client import (
    OrganizationStore,
    PersistenceFailure,
    initialize_supabase,
)

from rich import print
from rich.panel import Panel


async def warm_cache(email: str) -> int:
    """Rebuilds and stores the aggregate for one organization."""
    store = OrganizationStore(await initialize_supabase(settings))
    manager = CacheManager(store)

    org = await store.get_org_by_email(email)
    if org is None:
        logger.error(f"No organization registered for {email}")
        return 1

    was_fresh = is_cache_fresh(org.cache_updated_at, settings.cache_max_age_hours)
    logger.info(
        f"Warming cache for {org.org_name or org.org_id} "
        f"(previous cache {'fresh' if was_fresh else 'stale or missing'})"
    )

    result, updated_at = await manager.refresh(org)

    print(
        Panel(
            f"[bold]{org.org_name or org.org_id}[/bold]\n"
            f"Seasons:  {result.total_seasons}\n"
            f"Teams:    {result.total_teams}\n"
            f"Fixtures: {result.total_fixtures}\n"
            f"Window:   {result.date_range.from_date} -> {result.date_range.to_date}\n"
            f"Cached:   {updated_at.isoformat()}",
            title="PlayHQ cache warmed",
        )
    )
    return 0


async def main() -> int:
    """Main entry point: ``python main.py <user-email>``."""
    if len(sys.argv) != 2:
        print("[red]usage: python main.py <user-email>[/red]")
        return 2

    try:
        return await warm_cache(sys.argv[1])
    except PersistenceFailure as e:
        logger.error(f"Organization store unavailable: {e}")
    except UpstreamError as e:
        logger.error(f"PlayHQ aggregation failed: {e}")
    return 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)
