import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from sportal.aggregation.assembler import fetch_complete_org_data
from sportal.config.settings import settings
from sportal.models.aggregate import AggregateResult
from sportal.models.enums import CacheSource
from sportal.models.organization import Organization

Aggregate = Callable[[Organization], Awaitable[AggregateResult]]


class OrganizationNotFound(Exception):
    """Exception raised when no organization matches the requested email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Organization not found for {email}")


class OrganizationRepository(Protocol):
    async def get_org_by_email(self, email: str) -> Optional[Organization]: ...

    async def update_org_cache(
        self, org_id: str, data: Dict[str, Any], updated_at: datetime
    ) -> bool: ...


class OrgDataResponse(BaseModel):
    data: AggregateResult
    source: CacheSource
    is_stale: bool = False
    last_updated: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: Union[datetime, str]) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def is_cache_fresh(
    timestamp: Union[datetime, str, None],
    max_age_hours: float = 6,
    now: Optional[datetime] = None,
) -> bool:
    """True iff ``timestamp`` is less than ``max_age_hours`` old."""
    if not timestamp:
        return False
    try:
        written = _as_aware(timestamp)
    except ValueError:
        logger.warning(f"Unparseable cache timestamp: {timestamp!r}")
        return False
    age = _as_aware(now or _utcnow()) - written
    return age < timedelta(hours=max_age_hours)


async def aggregate_organization(org: Organization) -> AggregateResult:
    return await fetch_complete_org_data(
        org.playhq_org_id, org.playhq_api_key, org.playhq_tenant
    )


class CacheManager:
    """Stale-while-revalidate cache over the organization's ``cache_json`` blob.

    Fresh blobs are returned as-is. Stale blobs are returned immediately while
    a background task rebuilds them. Missing blobs are rebuilt before
    returning. At most one aggregation runs per organization at a time;
    concurrent callers share the running one.
    """

    def __init__(
        self,
        store: OrganizationRepository,
        aggregate: Aggregate = aggregate_organization,
        max_age_hours: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.aggregate = aggregate
        self.max_age_hours = max_age_hours or settings.cache_max_age_hours
        self.clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    async def get_org_data(self, email: str) -> OrgDataResponse:
        org = await self.store.get_org_by_email(email)
        if org is None:
            raise OrganizationNotFound(email)

        cached = self._load_cached(org)
        if cached is None:
            logger.info(f"No usable cache for org {org.org_id}, fetching from PlayHQ")
            result, updated_at = await self.refresh(org)
            return OrgDataResponse(
                data=result, source=CacheSource.FRESH_FETCH, last_updated=updated_at
            )

        if is_cache_fresh(org.cache_updated_at, self.max_age_hours, self.clock()):
            logger.info(f"Serving fresh cache for org {org.org_id}")
            return OrgDataResponse(
                data=cached, source=CacheSource.CACHE, last_updated=org.cache_updated_at
            )

        logger.info(f"Serving stale cache for org {org.org_id}, refreshing in background")
        self.schedule_refresh(org)
        return OrgDataResponse(
            data=cached,
            source=CacheSource.CACHE,
            is_stale=True,
            last_updated=org.cache_updated_at,
        )

    def _load_cached(self, org: Organization) -> Optional[AggregateResult]:
        if not org.has_cache:
            return None
        try:
            return AggregateResult.model_validate(org.cache_json)
        except ValidationError as e:
            # Blobs written by older releases use a different layout
            logger.warning(f"Discarding unreadable cache for org {org.org_id}: {e}")
            return None

    def _ensure_task(self, org: Organization) -> tuple[asyncio.Task, bool]:
        task = self._in_flight.get(org.org_id)
        if task is not None:
            return task, False
        task = asyncio.create_task(self._aggregate_and_store(org))
        self._in_flight[org.org_id] = task
        task.add_done_callback(lambda _: self._in_flight.pop(org.org_id, None))
        return task, True

    async def refresh(self, org: Organization) -> tuple[AggregateResult, datetime]:
        """Aggregates and persists, joining a run already in flight for ``org``."""
        task, started = self._ensure_task(org)
        if not started:
            logger.info(f"Joining in-flight aggregation for org {org.org_id}")
        return await asyncio.shield(task)

    async def _aggregate_and_store(
        self, org: Organization
    ) -> tuple[AggregateResult, datetime]:
        result = await self.aggregate(org)
        updated_at = self.clock()
        stored = await self.store.update_org_cache(
            org.org_id, result.model_dump(mode="json"), updated_at
        )
        if not stored:
            logger.warning(f"Cache for org {org.org_id} was not persisted")
        return result, updated_at

    def schedule_refresh(self, org: Organization) -> Optional[asyncio.Task]:
        """Starts a background refresh unless one is already running for ``org``."""
        task, started = self._ensure_task(org)
        if not started:
            logger.debug(f"Refresh already in flight for org {org.org_id}")
            return None
        watcher = asyncio.create_task(self._watch_refresh(org, task))
        self._background.add(watcher)
        watcher.add_done_callback(self._background.discard)
        return watcher

    async def _watch_refresh(self, org: Organization, task: asyncio.Task) -> None:
        try:
            await task
            logger.success(f"Background refresh completed for org {org.org_id}")
        except Exception as e:
            # Nobody is waiting on this task; the caller already got stale data
            logger.error(f"Background refresh failed for org {org.org_id}: {e}")

    async def wait_for_background_tasks(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
