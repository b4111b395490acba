"""
Unit tests for league lookup and season/team discovery.

Run: pytest backend/tests/test_discovery.py -v
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from capture.correlator import CaptureTimeout
from crawler.discovery import (
    SEASONS_PATTERN,
    STANDINGS_PATTERN,
    build_catalog,
    discover_season_and_teams,
    extract_teams_from_standings,
    season_from_captured,
    season_from_listing,
    tournament_url,
)
from crawler.errors import ScopeFailure
from crawler.leagues import LEAGUES, find_league, league_names
from shared.models.domain import SeasonInfo, TeamInfo

PREMIER_LEAGUE = LEAGUES[0]

SEASONS_PAYLOAD = {
    "uniqueTournamentSeasons": [
        {"uniqueTournament": {"id": 17}, "seasons": [{"id": 61627, "name": "Premier League 24/25", "year": "24/25"}]}
    ]
}

STANDINGS_PAYLOAD = {
    "standings": [
        {
            "rows": [
                {"team": {"id": 42, "slug": "arsenal", "name": "Arsenal"}},
                {"team": {"id": 17, "name": "Manchester City"}},
                {"team": {"shortName": "Nameless"}},
            ]
        },
        {"rows": [{"team": {"id": 7, "shortName": "Spurs"}}]},
    ]
}


def fake_session(captured=None, fetched=None) -> MagicMock:
    session = MagicMock()
    if isinstance(captured, Exception):
        session.navigate_and_capture_all = AsyncMock(side_effect=captured)
    else:
        session.navigate_and_capture_all = AsyncMock(return_value=captured or {})
    session.fetch_json = AsyncMock(side_effect=lambda url: (fetched or {}).get(url))
    return session


# ── League lookup ───────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "query, expected_slug",
    [
        ("Premier League", "premier-league"),
        ("premier league", "premier-league"),
        ("laliga", "laliga"),
        ("UEFA Champions League", "uefa-champions-league"),
        ("Champions League", "uefa-champions-league"),
    ],
)
def test_find_league(query: str, expected_slug: str) -> None:
    league = find_league(query)
    assert league is not None and league.slug == expected_slug


def test_find_league_unknown() -> None:
    assert find_league("Eredivisie") is None


def test_league_names_in_crawl_order() -> None:
    assert league_names()[0] == "Premier League"
    assert len(league_names()) == 6


def test_tournament_url() -> None:
    assert tournament_url(PREMIER_LEAGUE) == (
        "https://www.sofascore.com/football/tournament/premier-league/17"
    )


# ── Payload helpers ─────────────────────────────────────────────────────

def test_season_from_captured() -> None:
    assert season_from_captured(SEASONS_PAYLOAD) == SeasonInfo(
        season_id=61627, season_name="Premier League 24/25"
    )


@pytest.mark.parametrize("payload", [None, [], {}, {"uniqueTournamentSeasons": []}, {"uniqueTournamentSeasons": [{"seasons": []}]}])
def test_season_from_captured_missing(payload) -> None:
    assert season_from_captured(payload) is None


def test_season_from_listing_falls_back_to_year() -> None:
    assert season_from_listing({"seasons": [{"id": 5, "year": "2025"}, {"id": 4}]}) == SeasonInfo(
        season_id=5, season_name="2025"
    )
    assert season_from_listing({"seasons": [{"name": "no id"}]}) is None


def test_extract_teams_from_standings() -> None:
    teams = extract_teams_from_standings(STANDINGS_PAYLOAD)

    assert teams == [
        TeamInfo(team_id=42, slug="arsenal", name="Arsenal"),
        TeamInfo(team_id=17, slug="manchester-city", name="Manchester City"),
        TeamInfo(team_id=7, slug="spurs", name="Spurs"),
    ]


def test_extract_teams_from_non_dict() -> None:
    assert extract_teams_from_standings(None) == []
    assert extract_teams_from_standings({"standings": None}) == []


def test_build_catalog_keys_by_name() -> None:
    catalog = build_catalog(extract_teams_from_standings(STANDINGS_PAYLOAD))
    assert list(catalog) == ["Arsenal", "Manchester City", "Spurs"]
    assert catalog["Spurs"].id == 7


# ── discover_season_and_teams ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_discovery_uses_captured_payloads() -> None:
    session = fake_session(captured={SEASONS_PATTERN: SEASONS_PAYLOAD, STANDINGS_PATTERN: STANDINGS_PAYLOAD})

    season, teams = await discover_season_and_teams(session, PREMIER_LEAGUE)

    assert season.season_id == 61627
    assert [t.team_id for t in teams] == [42, 17, 7]
    session.fetch_json.assert_not_awaited()
    args, kwargs = session.navigate_and_capture_all.await_args
    assert args[0] == tournament_url(PREMIER_LEAGUE)
    assert args[1] == [SEASONS_PATTERN, STANDINGS_PATTERN]
    assert kwargs["wait_until"] == "load"


@pytest.mark.asyncio
async def test_discovery_falls_back_to_fetch_after_capture_timeout() -> None:
    api = "https://www.sofascore.com/api/v1/unique-tournament/17"
    session = fake_session(
        captured=CaptureTimeout([SEASONS_PATTERN, STANDINGS_PATTERN]),
        fetched={
            f"{api}/seasons": {"seasons": [{"id": 99, "name": "24/25"}]},
            f"{api}/season/99/standings/total": STANDINGS_PAYLOAD,
        },
    )

    season, teams = await discover_season_and_teams(session, PREMIER_LEAGUE)

    assert season == SeasonInfo(season_id=99, season_name="24/25")
    assert len(teams) == 3
    assert session.fetch_json.await_count == 2


@pytest.mark.asyncio
async def test_discovery_fetches_only_missing_standings() -> None:
    api = "https://www.sofascore.com/api/v1/unique-tournament/17"
    session = fake_session(
        captured={SEASONS_PATTERN: SEASONS_PAYLOAD},
        fetched={f"{api}/season/61627/standings/total": STANDINGS_PAYLOAD},
    )

    season, teams = await discover_season_and_teams(session, PREMIER_LEAGUE)

    assert season.season_id == 61627
    assert len(teams) == 3
    session.fetch_json.assert_awaited_once_with(f"{api}/season/61627/standings/total")


@pytest.mark.asyncio
async def test_discovery_without_season_abandons_league() -> None:
    session = fake_session(captured=CaptureTimeout([SEASONS_PATTERN]))

    with pytest.raises(ScopeFailure) as exc_info:
        await discover_season_and_teams(session, PREMIER_LEAGUE)

    assert exc_info.value.league == "Premier League"
    assert "season" in exc_info.value.reason


@pytest.mark.asyncio
async def test_discovery_without_teams_abandons_league() -> None:
    session = fake_session(captured={SEASONS_PATTERN: SEASONS_PAYLOAD})

    with pytest.raises(ScopeFailure, match="no teams"):
        await discover_season_and_teams(session, PREMIER_LEAGUE)


@pytest.mark.asyncio
async def test_discovery_navigation_error_abandons_league() -> None:
    session = fake_session(captured=PlaywrightError("page.goto: Timeout 30000ms exceeded"))

    with pytest.raises(ScopeFailure) as exc_info:
        await discover_season_and_teams(session, PREMIER_LEAGUE)

    assert exc_info.value.league == "Premier League"
    assert "Timeout 30000ms" in exc_info.value.reason
    assert isinstance(exc_info.value.__cause__, PlaywrightError)
    session.fetch_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_discovery_fetch_error_abandons_league() -> None:
    session = fake_session(captured=CaptureTimeout([SEASONS_PATTERN, STANDINGS_PATTERN]))
    session.fetch_json = AsyncMock(side_effect=PlaywrightError("Execution context was destroyed"))

    with pytest.raises(ScopeFailure, match="discovery failed"):
        await discover_season_and_teams(session, PREMIER_LEAGUE)
