"""Team season statistics, captured from the team page's Statistics tab."""
from __future__ import annotations

from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.domain import LeagueConfig, SeasonInfo, TeamInfo, TeamSeasonStatistics
from shared.utils.logging import get_logger

from capture.session import BrowserSession, TabNotFound
from crawler.errors import TransientFetchError
from crawler.retry import run_with_retry
from crawler.urls import team_page_url, team_statistics_path
from crawler.writer import RowWriter

logger = get_logger(__name__)

STATISTICS_TAB = "Statistics"


def project_team_statistics(payload: Any) -> Optional[TeamSeasonStatistics]:
    if not isinstance(payload, dict):
        return None
    return TeamSeasonStatistics.from_payload(payload.get("statistics"))


async def collect_team_statistics(
    session: BrowserSession,
    writer: RowWriter,
    team: TeamInfo,
    league: LeagueConfig,
    season: SeasonInfo,
    settings: Settings | None = None,
) -> bool:
    """Returns False when the page carried no statistics object."""
    settings = settings or get_settings()
    pattern = team_statistics_path(team.team_id, league.unique_tournament_id, season.season_id)

    async def attempt() -> bool:
        await session.goto(team_page_url(team))
        await session.pause(settings.tab_delay_s)
        try:
            payload = await session.click_and_capture(STATISTICS_TAB, pattern, settings.capture_timeout_s)
        except TabNotFound as exc:
            raise TransientFetchError(f"Could not find Statistics tab for {team.name}") from exc

        statistics = project_team_statistics(payload)
        if statistics is None:
            logger.warning("team_statistics_missing", team=team.name, league=league.name)
            return False
        await writer.upsert_team_statistics(team, league, season, statistics, payload)
        return True

    return await run_with_retry(
        attempt,
        f"Team stats: {team.name}",
        settings.max_retries,
        settings.retry_delay_s,
    )
