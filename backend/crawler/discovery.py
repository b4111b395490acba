"""
Season and team discovery for a league.

The tournament page fires the seasons and standings APIs on load; those are
captured first. Whatever the capture missed is fetched from inside the page.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from playwright.async_api import Error as PlaywrightError

from shared.config import get_settings
from shared.models.domain import CatalogEntry, LeagueConfig, SeasonInfo, TeamInfo
from shared.utils.logging import get_logger

from capture.correlator import CaptureTimeout
from capture.session import BrowserSession
from crawler.errors import ScopeFailure, TransientFetchError
from matching.matcher import TeamCatalog

logger = get_logger(__name__)

SEASONS_PATTERN = "standings/seasons"
STANDINGS_PATTERN = "standings/total"

_SPACES = re.compile(r"\s+")


def tournament_url(league: LeagueConfig) -> str:
    base = get_settings().site_base_url.rstrip("/")
    return f"{base}/football/tournament/{league.slug}/{league.unique_tournament_id}"


def _season(raw: Any) -> Optional[SeasonInfo]:
    if not isinstance(raw, dict) or raw.get("id") is None:
        return None
    name = raw.get("name") or str(raw.get("year", ""))
    return SeasonInfo(season_id=raw["id"], season_name=name)


def season_from_captured(payload: Any) -> Optional[SeasonInfo]:
    """Current season from the tournament page's ``standings/seasons`` payload."""
    if not isinstance(payload, dict):
        return None
    groups = payload.get("uniqueTournamentSeasons") or []
    if not groups or not isinstance(groups[0], dict):
        return None
    seasons = groups[0].get("seasons") or []
    return _season(seasons[0]) if seasons else None


def season_from_listing(payload: Any) -> Optional[SeasonInfo]:
    """Current season from ``/unique-tournament/{id}/seasons`` (newest first)."""
    if not isinstance(payload, dict):
        return None
    seasons = payload.get("seasons") or []
    return _season(seasons[0]) if seasons else None


def extract_teams_from_standings(payload: Any) -> list[TeamInfo]:
    """Teams of every standings group, in table order."""
    teams: list[TeamInfo] = []
    if not isinstance(payload, dict):
        return teams
    for group in payload.get("standings") or []:
        for row in (group or {}).get("rows") or []:
            team = (row or {}).get("team")
            if not isinstance(team, dict) or team.get("id") is None:
                continue
            name = team.get("name") or team.get("shortName") or ""
            slug = team.get("slug") or _SPACES.sub("-", name.lower())
            teams.append(TeamInfo(team_id=team["id"], slug=slug, name=name))
    return teams


def build_catalog(teams: Iterable[TeamInfo]) -> TeamCatalog:
    return TeamCatalog(CatalogEntry(id=t.team_id, slug=t.slug, name=t.name) for t in teams)


async def discover_season_and_teams(
    session: BrowserSession,
    league: LeagueConfig,
) -> tuple[SeasonInfo, list[TeamInfo]]:
    """
    Resolve the current season and its teams.

    Raises:
        ScopeFailure: No season, or no teams for it, could be determined,
            or the page failed while loading or fetching them.
    """
    logger.info("discovery_started", league=league.name)
    try:
        return await _discover(session, league)
    except (PlaywrightError, TransientFetchError) as exc:
        raise ScopeFailure(league.name, f"discovery failed: {exc}") from exc


async def _discover(
    session: BrowserSession,
    league: LeagueConfig,
) -> tuple[SeasonInfo, list[TeamInfo]]:
    settings = get_settings()
    api = settings.api_base_url

    try:
        captured = await session.navigate_and_capture_all(
            tournament_url(league),
            [SEASONS_PATTERN, STANDINGS_PATTERN],
            timeout_s=settings.discovery_capture_timeout_s,
            wait_until="load",
        )
    except CaptureTimeout:
        logger.warning("discovery_capture_empty", league=league.name)
        captured = {}

    season = season_from_captured(captured.get(SEASONS_PATTERN))
    if season is None:
        listing = await session.fetch_json(f"{api}/unique-tournament/{league.unique_tournament_id}/seasons")
        season = season_from_listing(listing)
    if season is None:
        raise ScopeFailure(league.name, "could not discover season")
    logger.info("season_discovered", league=league.name, season=season.season_name, season_id=season.season_id)

    teams = extract_teams_from_standings(captured.get(STANDINGS_PATTERN))
    if not teams:
        standings = await session.fetch_json(
            f"{api}/unique-tournament/{league.unique_tournament_id}"
            f"/season/{season.season_id}/standings/total"
        )
        teams = extract_teams_from_standings(standings)
    if not teams:
        raise ScopeFailure(league.name, f"no teams in standings for season {season.season_id}")

    logger.info("teams_discovered", league=league.name, count=len(teams))
    return season, teams
