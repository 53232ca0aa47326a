from datetime import datetime, timezone

import httpx
import pytest

from sportal.aggregation.assembler import (
    OrgDataAggregator,
    build_fixture_view,
    build_logo_lookup,
    build_season_view,
    fetch_complete_org_data,
)
from sportal.clients.base_client import UpstreamRequestFailed
from sportal.utils.misc_utils import NO_LOGO

from factories import CLUB_ID, NOW, make_fixture, make_season, make_team, page

IN_WINDOW = "2026-10-25"
OUT_OF_WINDOW = "2026-05-02"


class FakePlayHQ:
    def __init__(self, seasons, rosters, fixtures, failing=None, roster_error=None):
        self.seasons = seasons
        self.rosters = rosters
        self.fixtures = fixtures
        self.failing = failing or {}
        self.roster_error = roster_error
        self.fixture_calls = []

    async def fetch_all_seasons(self, organisation_id):
        return self.seasons

    async def fetch_all_teams(self, season_id):
        if self.roster_error:
            raise self.roster_error
        return self.rosters[season_id]

    async def fetch_all_fixtures(self, team_id):
        self.fixture_calls.append(team_id)
        if team_id in self.failing:
            raise self.failing[team_id]
        return self.fixtures.get(team_id, [])


def aggregator(client, window_days=21):
    return OrgDataAggregator(client, window_days=window_days, batch_size=2, clock=lambda: NOW)


def three_team_roster():
    return [
        make_team("team-a", logo_url="https://img.test/a.png"),
        make_team("team-b", logo_url="https://img.test/b.png"),
        make_team("rival-c", club_id="club-other", logo_url="https://img.test/c.png"),
    ]


@pytest.mark.asyncio
async def test_org_teams_with_in_window_fixtures_only():
    client = FakePlayHQ(
        seasons=[make_season()],
        rosters={"season-1": three_team_roster()},
        fixtures={
            "team-a": [
                make_fixture("fx-1", IN_WINDOW, "team-a", "rival-c"),
                make_fixture("fx-2", OUT_OF_WINDOW, "rival-c", "team-a"),
            ],
            "team-b": [make_fixture("fx-3", OUT_OF_WINDOW, "team-b", "rival-c")],
        },
    )

    result = await aggregator(client).run(CLUB_ID)

    assert sorted(client.fixture_calls) == ["team-a", "team-b"]
    assert result.total_seasons == 1
    assert result.total_teams == 1
    assert result.total_fixtures == 1

    season = result.seasons[0]
    assert season.association_logo == "https://img.test/assoc.png"
    team = season.teams[0]
    assert team.team_id == "team-a"
    assert team.club_logo == "https://img.test/a.png"

    fixture = team.fixtures[0]
    assert fixture.fixture_id == "fx-1"
    assert fixture.home_team_logo == "https://img.test/a.png"
    # Opponent logo comes from the full season roster
    assert fixture.away_team_logo == "https://img.test/c.png"
    assert fixture.venue_address == "1 Main St, Ashburton, VIC 3147"
    assert result.date_range.from_date.isoformat() == "2026-09-27"
    assert result.date_range.to_date.isoformat() == "2026-11-08"


@pytest.mark.asyncio
async def test_season_without_qualifying_teams_is_dropped():
    client = FakePlayHQ(
        seasons=[make_season("season-1"), make_season("season-2", "Summer 2025")],
        rosters={
            "season-1": [make_team("team-a")],
            "season-2": [make_team("team-old")],
        },
        fixtures={
            "team-a": [make_fixture("fx-1", IN_WINDOW, "team-a", "x"), make_fixture("fx-2", IN_WINDOW, "y", "team-a")],
            "team-old": [make_fixture("fx-9", OUT_OF_WINDOW, "team-old", "x")],
        },
    )

    result = await aggregator(client).run(CLUB_ID)

    assert [s.season_id for s in result.seasons] == ["season-1"]
    assert result.total_fixtures == sum(
        len(t.fixtures) for s in result.seasons for t in s.teams
    ) == 2


@pytest.mark.asyncio
async def test_one_team_failing_keeps_the_rest():
    client = FakePlayHQ(
        seasons=[make_season()],
        rosters={"season-1": [make_team("team-a"), make_team("team-b")]},
        fixtures={"team-b": [make_fixture("fx-1", IN_WINDOW, "team-b", "x")]},
        failing={"team-a": UpstreamRequestFailed(500, "server error")},
    )

    result = await aggregator(client).run(CLUB_ID)

    assert [t.team_id for t in result.seasons[0].teams] == ["team-b"]


@pytest.mark.asyncio
async def test_roster_failure_aborts_the_run():
    client = FakePlayHQ(
        seasons=[make_season()],
        rosters={},
        fixtures={},
        roster_error=UpstreamRequestFailed(503, "unavailable"),
    )

    with pytest.raises(UpstreamRequestFailed):
        await aggregator(client).run(CLUB_ID)


@pytest.mark.asyncio
async def test_no_seasons():
    result = await aggregator(FakePlayHQ([], {}, {})).run(CLUB_ID)

    assert result.seasons == []
    assert (result.total_seasons, result.total_teams, result.total_fixtures) == (0, 0, 0)


def test_unknown_competitor_logo_resolves_to_marker():
    logos = build_logo_lookup([make_team("team-a", logo_url="https://img.test/a.png"), make_team("team-b")])
    fixture = make_fixture("fx-1", IN_WINDOW, "team-a", "stranger")
    fixture["competitors"].append({"name": "TBC", "isHomeTeam": None})

    view = build_fixture_view(fixture, logos)

    assert view.home_team_logo == "https://img.test/a.png"
    assert view.away_team_logo is NO_LOGO
    assert logos["team-b"] is NO_LOGO


def test_fixture_without_competitors():
    view = build_fixture_view({"id": 42, "schedule": {}}, {})

    assert view.fixture_id == "42"
    assert view.home_team is None
    assert view.home_team_logo is NO_LOGO
    assert view.venue_address is None



def test_missing_ids_stay_null():
    fixture = build_fixture_view({"schedule": {}}, {})
    season = build_season_view({"name": "Winter 2026"}, [])

    assert fixture.fixture_id is None
    assert season.season_id is None
    assert season.model_dump(mode="json")["season_id"] is None


@pytest.mark.asyncio
async def test_window_follows_each_fixture_local_day():
    melbourne_morning = datetime(2026, 10, 18, 14, 0, tzinfo=timezone.utc)
    local = make_fixture("fx-local", "2026-10-19", "team-a", "x")
    undated_zone = make_fixture("fx-utc", "2026-10-19", "team-a", "x")
    undated_zone["schedule"]["timezone"] = None
    client = FakePlayHQ(
        seasons=[make_season()],
        rosters={"season-1": [make_team("team-a")]},
        fixtures={"team-a": [local, undated_zone]},
    )

    result = await OrgDataAggregator(
        client, window_days=0, batch_size=2, clock=lambda: melbourne_morning
    ).run(CLUB_ID)

    fixtures = result.seasons[0].teams[0].fixtures
    assert [f.fixture_id for f in fixtures] == ["fx-local"]
    assert result.date_range.from_date.isoformat() == "2026-10-18"


@pytest.mark.asyncio
async def test_fetch_complete_org_data_over_http():
    roster = three_team_roster()
    fixtures = [make_fixture("fx-1", datetime.now(timezone.utc).date().isoformat(), "rival-c", "team-a")]

    def handler(request):
        path = request.url.path
        if path == f"/v1/organisations/{CLUB_ID}/seasons":
            return httpx.Response(200, json={"data": [make_season()]})
        if path == "/v1/seasons/season-1/teams":
            if request.url.params.get("cursor") == "p2":
                return httpx.Response(200, json=page(roster[2:]))
            return httpx.Response(200, json=page(roster[:2], next_cursor="p2"))
        if path == "/v1/teams/team-a/fixture":
            return httpx.Response(200, json=page(fixtures))
        return httpx.Response(404, text="no fixtures")

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    result = await fetch_complete_org_data(CLUB_ID, "key", "ca", http_client=http, window_days=21)
    await http.aclose()

    assert result.total_teams == 1
    fixture = result.seasons[0].teams[0].fixtures[0]
    assert fixture.home_team_logo == "https://img.test/c.png"
    assert fixture.away_team_logo == "https://img.test/a.png"
