# sportal/api/app.py

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from sportal.cache.cache_manager import CacheManager, OrganizationNotFound
from sportal.clients.base_client import UpstreamError, UpstreamRequestFailed
from sportal.clients.playhq_client import PlayHQClient
from sportal.logging.setup import setup_logging
from sportal.models.organization import Organization
from sportal.storage.supabase_client import (
    OrganizationStore,
    PersistenceFailure,
    initialize_supabase,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    store = OrganizationStore(await initialize_supabase())
    app.state.store = store
    app.state.cache_manager = CacheManager(store)
    yield
    await app.state.cache_manager.wait_for_background_tasks()


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(title="sportal", lifespan=lifespan if use_lifespan else None)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"])

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/api/org-data")
    async def org_data(request: Request, userEmail: Optional[str] = Query(None)):
        if not userEmail:
            raise HTTPException(status_code=400, detail="userEmail is required")

        t0 = time.time()
        manager: CacheManager = request.app.state.cache_manager
        try:
            response = await manager.get_org_data(userEmail)
        except OrganizationNotFound:
            raise HTTPException(status_code=404, detail="Organization not found")
        except (PersistenceFailure, UpstreamError) as e:
            logger.error(f"[org-data] failed for {userEmail}: {e}")
            raise HTTPException(
                status_code=500, detail=f"Failed to fetch organization data: {e}"
            )

        dt_ms = int((time.time() - t0) * 1000)
        logger.info(
            f"[org-data] source={response.source.value} stale={response.is_stale} "
            f"teams={response.data.total_teams} ms={dt_ms}"
        )
        return {**response.model_dump(mode="json"), "timing_ms": dt_ms}

    @app.get("/api/seasons/{season_id}/grades")
    async def season_grades(
        request: Request, season_id: str, userEmail: Optional[str] = Query(None)
    ):
        org = await _require_org(request, userEmail)
        async with _client_for(request, org) as client:
            return await _upstream(client.fetch_grades(season_id))

    @app.get("/api/grades/{grade_id}/ladder")
    async def grade_ladder(
        request: Request, grade_id: str, userEmail: Optional[str] = Query(None)
    ):
        org = await _require_org(request, userEmail)
        async with _client_for(request, org) as client:
            return await _upstream(client.fetch_ladder(grade_id))

    @app.get("/api/fixtures/{fixture_id}/summary")
    async def fixture_summary(
        request: Request, fixture_id: str, userEmail: Optional[str] = Query(None)
    ):
        org = await _require_org(request, userEmail)
        async with _client_for(request, org) as client:
            summary = await client.fetch_fixture_summary(fixture_id)
        if summary is None:
            raise HTTPException(status_code=404, detail="Fixture summary not available")
        return {"data": summary}

    return app


async def _require_org(request: Request, email: Optional[str]) -> Organization:
    if not email:
        raise HTTPException(status_code=400, detail="userEmail is required")
    store: OrganizationStore = request.app.state.store
    try:
        org = await store.get_org_by_email(email)
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _client_for(request: Request, org: Organization) -> PlayHQClient:
    # A shared httpx client may be installed on app.state (tests, pooling)
    http_client = getattr(request.app.state, "http_client", None)
    return PlayHQClient(org.playhq_api_key, org.playhq_tenant, client=http_client)


async def _upstream(call) -> Dict[str, Any]:
    try:
        return await call
    except UpstreamRequestFailed as e:
        raise HTTPException(
            status_code=502, detail=f"PlayHQ API error: {e.status_code}"
        )
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sportal.api.app:app", host="0.0.0.0", port=8000)
