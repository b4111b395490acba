"""Squad harvesting from the team page's Players tab."""
from __future__ import annotations

from shared.config import Settings, get_settings
from shared.models.domain import PlayerBasicInfo, TeamInfo
from shared.utils.logging import get_logger

from capture.session import BrowserSession
from crawler.retry import run_with_retry
from crawler.urls import player_path, team_page_url
from crawler.writer import RowWriter

logger = get_logger(__name__)

PLAYERS_TAB = "Players"


async def collect_team_players(
    session: BrowserSession,
    writer: RowWriter,
    team: TeamInfo,
    settings: Settings | None = None,
) -> list[PlayerBasicInfo]:
    settings = settings or get_settings()

    async def attempt() -> list[PlayerBasicInfo]:
        await session.goto(team_page_url(team), wait_until="load")
        await session.pause(settings.tab_delay_s)
        # Best effort: the overview page links most of the squad too
        await session.click_tab(PLAYERS_TAB)
        await session.pause(settings.page_delay_s)

        players = await session.player_links()
        for player in players:
            await writer.upsert_team_player(player, team, href=player_path(player))
        logger.info("team_players_found", team=team.name, count=len(players))
        return players

    return await run_with_retry(
        attempt,
        f"Team players: {team.name}",
        settings.max_retries,
        settings.retry_delay_s,
    )
