"""Site and API URLs for crawled entities."""
from __future__ import annotations

from shared.config import get_settings
from shared.models.domain import LeagueConfig, PlayerBasicInfo, SeasonInfo, TeamInfo


def _site() -> str:
    return get_settings().site_base_url.rstrip("/")


def team_page_url(team: TeamInfo) -> str:
    return f"{_site()}/football/team/{team.slug}/{team.team_id}"


def player_path(player: PlayerBasicInfo) -> str:
    return f"/football/player/{player.slug}/{player.player_id}"


def player_page_url(player: PlayerBasicInfo) -> str:
    return f"{_site()}{player_path(player)}"


def team_statistics_path(team_id: int, tournament_id: int, season_id: int) -> str:
    return f"/team/{team_id}/unique-tournament/{tournament_id}/season/{season_id}/statistics/overall"


def team_statistics_api_url(team_id: int, tournament_id: int, season_id: int) -> str:
    return get_settings().api_base_url + team_statistics_path(team_id, tournament_id, season_id)


def player_statistics_api_url(player: PlayerBasicInfo, league: LeagueConfig, season: SeasonInfo) -> str:
    return (
        f"{get_settings().api_base_url}/player/{player.player_id}"
        f"/unique-tournament/{league.unique_tournament_id}"
        f"/season/{season.season_id}/statistics/overall"
    )


def team_squad_api_url(team_id: int) -> str:
    return f"{get_settings().api_base_url}/team/{team_id}/players"
