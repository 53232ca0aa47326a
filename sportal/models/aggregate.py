from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class FixtureView(BaseModel):
    """A single match as shown on gameday and results cards."""

    fixture_id: Optional[str] = None
    status: Optional[str] = None  # UPCOMING, COMPLETED, ...
    url: Optional[str] = None

    # Round
    round_name: Optional[str] = None
    round_abbr: Optional[str] = None
    is_final_round: bool = False

    # Grade
    grade_name: Optional[str] = None
    grade_url: Optional[str] = None

    # Schedule
    date: Optional[str] = None
    time: Optional[str] = None
    timezone: Optional[str] = None

    # Competitors
    home_team: Optional[str] = None
    home_team_id: Optional[str] = None
    home_team_score: Optional[str] = None
    home_team_outcome: Optional[str] = None
    home_team_logo: Optional[str] = None

    away_team: Optional[str] = None
    away_team_id: Optional[str] = None
    away_team_score: Optional[str] = None
    away_team_outcome: Optional[str] = None
    away_team_logo: Optional[str] = None

    # Venue
    venue_name: Optional[str] = None
    venue_surface: Optional[str] = None
    venue_address: Optional[str] = None


class TeamView(BaseModel):
    team_id: Optional[str] = None
    team_name: str
    grade_name: Optional[str] = None
    grade_id: Optional[str] = None
    grade_url: Optional[str] = None
    club_name: Optional[str] = None
    club_logo: Optional[str] = None
    fixtures: List[FixtureView] = []


class SeasonView(BaseModel):
    season_id: Optional[str] = None
    season_name: Optional[str] = None
    competition_name: Optional[str] = None
    competition_id: Optional[str] = None
    association_name: Optional[str] = None
    association_id: Optional[str] = None
    association_logo: Optional[str] = None
    teams: List[TeamView] = []


class DateRange(BaseModel):
    """Window around the UTC day of the run. Each fixture is matched against
    the same radius around its own local day.
    """

    from_date: date
    to_date: date


class AggregateResult(BaseModel):
    """Season -> team -> fixture tree for one organization.

    Totals are derived from the tree so they can never drift from it.
    """

    seasons: List[SeasonView] = []
    date_range: DateRange
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[misc]
    @property
    def total_seasons(self) -> int:
        return len(self.seasons)

    @computed_field  # type: ignore[misc]
    @property
    def total_teams(self) -> int:
        return sum(len(season.teams) for season in self.seasons)

    @computed_field  # type: ignore[misc]
    @property
    def total_fixtures(self) -> int:
        return sum(
            len(team.fixtures) for season in self.seasons for team in season.teams
        )
