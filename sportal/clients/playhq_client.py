# sportal/clients/playhq_client.py

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from sportal.aggregation.pagination import paginate
from sportal.config.settings import settings
from .base_client import BaseApiClient, UpstreamError


class PlayHQClient(BaseApiClient):
    """Client for the PlayHQ public API, scoped to one organization's credentials."""

    name: str = "PlayHQ"

    def __init__(
        self,
        api_key: str,
        tenant: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(
            base_url or settings.playhq_base_url,
            headers={
                "x-api-key": api_key,
                "x-phq-tenant": tenant or settings.playhq_default_tenant,
            },
            client=client,
        )

    # --- Seasons ---

    async def fetch_seasons_page(
        self, organisation_id: str, cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        logger.info(f"Fetching seasons for organisation: {organisation_id}")
        return await self._make_request(
            f"/v1/organisations/{organisation_id}/seasons", {"cursor": cursor}
        )

    async def fetch_all_seasons(self, organisation_id: str) -> List[Dict[str, Any]]:
        return await paginate(
            lambda cursor: self.fetch_seasons_page(organisation_id, cursor),
            label=f"seasons[{organisation_id}]",
        )

    # --- Teams ---

    async def fetch_teams_page(
        self, season_id: str, cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        logger.debug(
            f"Fetching teams for season: {season_id}"
            + (f" (cursor: {cursor})" if cursor else "")
        )
        return await self._make_request(
            f"/v1/seasons/{season_id}/teams", {"cursor": cursor}
        )

    async def fetch_all_teams(self, season_id: str) -> List[Dict[str, Any]]:
        """Fetches every team in a season, across all pages."""
        teams = await paginate(
            lambda cursor: self.fetch_teams_page(season_id, cursor),
            label=f"teams[{season_id}]",
        )
        logger.info(f"Fetched {len(teams)} total teams for season {season_id}")
        return teams

    # --- Fixtures ---

    async def fetch_fixtures_page(
        self, team_id: str, cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        logger.debug(
            f"Fetching fixtures for team: {team_id}"
            + (f" (cursor: {cursor})" if cursor else "")
        )
        return await self._make_request(f"/v1/teams/{team_id}/fixture", {"cursor": cursor})

    async def fetch_all_fixtures(self, team_id: str) -> List[Dict[str, Any]]:
        fixtures = await paginate(
            lambda cursor: self.fetch_fixtures_page(team_id, cursor),
            label=f"fixtures[{team_id}]",
        )
        logger.debug(f"Fetched {len(fixtures)} fixtures for team {team_id}")
        return fixtures

    async def fetch_fixture_summary(self, fixture_id: str) -> Optional[Dict[str, Any]]:
        """Detailed game info (lineups, scores). Returns None when unavailable."""
        logger.info(f"Fetching fixture summary: {fixture_id}")
        try:
            response = await self._make_request(f"/v2/games/{fixture_id}/summary")
        except UpstreamError as e:
            logger.warning(f"Could not fetch fixture summary for {fixture_id}: {e}")
            return None
        return (response or {}).get("data")

    # --- Grades & ladders ---

    async def fetch_grades(self, season_id: str) -> Dict[str, Any]:
        logger.info(f"Fetching grades for season: {season_id}")
        return await self._make_request(f"/v1/seasons/{season_id}/grades")

    async def fetch_ladder(self, grade_id: str) -> Dict[str, Any]:
        logger.info(f"Fetching ladder for grade: {grade_id}")
        return await self._make_request(f"/v2/grades/{grade_id}/ladder")
