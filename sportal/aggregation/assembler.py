from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger

from sportal.aggregation.batch_fetcher import fetch_team_fixtures_in_batches
from sportal.aggregation.date_window import (
    date_window_bounds,
    is_in_date_window,
    local_now,
)
from sportal.clients.playhq_client import PlayHQClient
from sportal.config.settings import settings
from sportal.models.aggregate import (
    AggregateResult,
    DateRange,
    FixtureView,
    SeasonView,
    TeamView,
)
from sportal.models.team_fixtures import TeamFixtureResult
from sportal.utils.misc_utils import (
    NO_LOGO,
    format_venue_address,
    largest_logo,
    str_or_none,
)

LogoLookup = Dict[str, Optional[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_logo_lookup(teams: List[Dict[str, Any]]) -> LogoLookup:
    """Maps team id -> club logo for every team in a season roster."""
    return {
        str(team["id"]): largest_logo((team.get("club") or {}).get("logo"))
        for team in teams
        if team.get("id") is not None
    }


def _find_competitor(fixture: Dict[str, Any], is_home: bool) -> Dict[str, Any]:
    for competitor in fixture.get("competitors") or []:
        if competitor.get("isHomeTeam") is is_home:
            return competitor
    return {}


def build_fixture_view(fixture: Dict[str, Any], logos: LogoLookup) -> FixtureView:
    """Flattens an upstream fixture and attaches both sides' logos."""
    home = _find_competitor(fixture, True)
    away = _find_competitor(fixture, False)
    round_info = fixture.get("round") or {}
    grade = fixture.get("grade") or {}
    schedule = fixture.get("schedule") or {}
    venue = fixture.get("venue") or {}

    def logo_for(competitor: Dict[str, Any]) -> Optional[str]:
        competitor_id = str_or_none(competitor.get("id"))
        if competitor_id is None:
            return NO_LOGO
        return logos.get(competitor_id, NO_LOGO)

    return FixtureView(
        fixture_id=str_or_none(fixture.get("id")),
        status=fixture.get("status"),
        url=fixture.get("url"),
        round_name=round_info.get("name"),
        round_abbr=round_info.get("abbreviatedName"),
        is_final_round=bool(round_info.get("isFinalRound")),
        grade_name=grade.get("name"),
        grade_url=grade.get("url"),
        date=schedule.get("date"),
        time=schedule.get("time"),
        timezone=schedule.get("timezone"),
        home_team=home.get("name"),
        home_team_id=str_or_none(home.get("id")),
        home_team_score=str_or_none(home.get("scoreTotal")),
        home_team_outcome=home.get("outcome"),
        home_team_logo=logo_for(home),
        away_team=away.get("name"),
        away_team_id=str_or_none(away.get("id")),
        away_team_score=str_or_none(away.get("scoreTotal")),
        away_team_outcome=away.get("outcome"),
        away_team_logo=logo_for(away),
        venue_name=venue.get("name"),
        venue_surface=venue.get("surfaceName"),
        venue_address=format_venue_address(venue.get("address")),
    )


def build_team_view(result: TeamFixtureResult, logos: LogoLookup) -> TeamView:
    team = result.team
    grade = team.get("grade") or {}
    club = team.get("club") or {}
    return TeamView(
        team_id=str_or_none(team.get("id")),
        team_name=grade.get("name") or team.get("name") or "Unknown Team",
        grade_name=grade.get("name"),
        grade_id=str_or_none(grade.get("id")),
        grade_url=grade.get("url"),
        club_name=club.get("name"),
        club_logo=largest_logo(club.get("logo")),
        fixtures=[build_fixture_view(f, logos) for f in result.fixtures],
    )


def build_season_view(season: Dict[str, Any], teams: List[TeamView]) -> SeasonView:
    competition = season.get("competition") or {}
    association = season.get("association") or {}
    return SeasonView(
        season_id=str_or_none(season.get("id")),
        season_name=season.get("name"),
        competition_name=competition.get("name"),
        competition_id=str_or_none(competition.get("id")),
        association_name=association.get("name"),
        association_id=str_or_none(association.get("id")),
        association_logo=largest_logo(association.get("logo")),
        teams=teams,
    )


class OrgDataAggregator:
    """Builds the season -> team -> fixture tree for one organization.

    Seasons are processed one at a time in upstream order. A failure fetching
    seasons or a season roster aborts the run; a failure fetching one team's
    fixtures only drops that team.
    """

    def __init__(
        self,
        client: PlayHQClient,
        window_days: Optional[int] = None,
        batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.window_days = (
            settings.fixture_window_days if window_days is None else window_days
        )
        self.batch_size = batch_size or settings.team_batch_size
        self.clock = clock

    async def run(self, organisation_id: str) -> AggregateResult:
        now = self.clock()
        logger.info(f"Fetching complete organisation data for {organisation_id}")

        try:
            seasons = await self.client.fetch_all_seasons(organisation_id)
        except Exception:
            logger.error(f"Failed to fetch seasons for organisation {organisation_id}")
            raise
        logger.info(f"Found {len(seasons)} seasons")

        def in_window(fixture: Dict[str, Any]) -> bool:
            schedule = fixture.get("schedule") or {}
            # Fixture dates are local to the venue, so "today" is too
            today = local_now(now, schedule.get("timezone"))
            return is_in_date_window(schedule.get("date"), today, self.window_days)

        processed: List[SeasonView] = []
        for season in seasons:
            season_view = await self._process_season(
                season, organisation_id, in_window
            )
            if season_view is not None:
                processed.append(season_view)

        start, end = date_window_bounds(now, self.window_days)
        result = AggregateResult(
            seasons=processed,
            date_range=DateRange(from_date=start, to_date=end),
            generated_at=now,
        )
        logger.success(
            f"Organisation {organisation_id}: {result.total_seasons} seasons, "
            f"{result.total_teams} teams, {result.total_fixtures} fixtures "
            f"between {start} and {end}"
        )
        return result

    async def _process_season(
        self,
        season: Dict[str, Any],
        organisation_id: str,
        in_window: Callable[[Dict[str, Any]], bool],
    ) -> Optional[SeasonView]:
        season_id = season.get("id")
        logger.info(f"Processing season: {season.get('name')} ({season_id})")

        try:
            roster = await self.client.fetch_all_teams(season_id)
        except Exception:
            logger.error(f"Failed to fetch teams for season {season_id}")
            raise

        # Opponents are never org teams, so logos come from the whole roster
        logos = build_logo_lookup(roster)
        org_teams = [
            team
            for team in roster
            if str_or_none((team.get("club") or {}).get("id")) == organisation_id
        ]
        logger.info(
            f"{len(org_teams)} of {len(roster)} teams belong to club {organisation_id}"
        )

        results = await fetch_team_fixtures_in_batches(
            org_teams,
            self.client.fetch_all_fixtures,
            self.batch_size,
            in_window,
        )
        teams = [build_team_view(r, logos) for r in results if r.fixtures]

        if not teams:
            logger.info(
                f"Skipping season {season_id} (no teams with fixtures in date range)"
            )
            return None
        return build_season_view(season, teams)


async def fetch_complete_org_data(
    organisation_id: str,
    api_key: str,
    tenant: Optional[str] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    window_days: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> AggregateResult:
    """Runs one aggregation with a client scoped to the given credentials."""
    async with PlayHQClient(api_key, tenant, client=http_client) as client:
        aggregator = OrgDataAggregator(
            client, window_days=window_days, batch_size=batch_size
        )
        return await aggregator.run(str(organisation_id))
