import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Sequence, TypeVar

from loguru import logger

from sportal.clients.base_client import UpstreamError
from sportal.models.enums import FetchStatus
from sportal.models.team_fixtures import TeamFixtureResult

T = TypeVar("T")

FixtureFetcher = Callable[[str], Awaitable[List[Dict[str, Any]]]]
FixturePredicate = Callable[[Dict[str, Any]], bool]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yields consecutive slices of ``items`` holding at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def _fetch_team(
    team: Dict[str, Any],
    fetch_fixtures: FixtureFetcher,
    in_window: FixturePredicate,
) -> TeamFixtureResult:
    team_id = team.get("id")
    try:
        fixtures = await fetch_fixtures(team_id)
    except UpstreamError as e:
        logger.warning(f"Could not fetch fixtures for team {team_id}: {e}")
        return TeamFixtureResult(team=team, status=FetchStatus.FAILED, error=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error processing team {team_id}: {e}")
        return TeamFixtureResult(team=team, status=FetchStatus.FAILED, error=str(e))

    kept = [fixture for fixture in fixtures if in_window(fixture)]
    return TeamFixtureResult(
        team=team,
        status=FetchStatus.OK if kept else FetchStatus.EMPTY,
        fixtures=kept,
        fetched_count=len(fixtures),
    )


async def fetch_team_fixtures_in_batches(
    teams: Sequence[Dict[str, Any]],
    fetch_fixtures: FixtureFetcher,
    batch_size: int,
    in_window: FixturePredicate,
) -> List[TeamFixtureResult]:
    """Fetches fixtures for ``teams`` in sequential batches of concurrent requests.

    Fetching every team at once gets rejected with 429 Too Many Requests, so
    only ``batch_size`` requests are in flight at a time and batch N+1 starts
    after every request of batch N has settled. One result is returned per
    team, in input order; a failing team yields a ``FAILED`` result instead
    of aborting its batch.
    """
    results: List[TeamFixtureResult] = []
    total_batches = -(-len(teams) // batch_size) if teams else 0

    for index, batch in enumerate(chunked(teams, batch_size), start=1):
        logger.info(
            f"Processing batch {index} of {total_batches} ({len(batch)} teams)"
        )
        batch_results = await asyncio.gather(
            *(_fetch_team(team, fetch_fixtures, in_window) for team in batch)
        )
        results.extend(batch_results)

    failed = sum(1 for r in results if r.failed)
    if failed:
        logger.warning(f"{failed} of {len(results)} team fixture fetches failed")
    return results
