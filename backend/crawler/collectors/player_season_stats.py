"""Player season statistics, fetched from inside the page."""
from __future__ import annotations

from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.domain import LeagueConfig, PlayerBasicInfo, PlayerSeasonStatistics, SeasonInfo
from shared.utils.logging import get_logger

from capture.session import BrowserSession
from crawler.retry import run_with_retry
from crawler.urls import player_statistics_api_url
from crawler.writer import RowWriter

logger = get_logger(__name__)

# Fetch errors are retried at most once; a lower max_retries still wins
SEASON_STATS_MAX_RETRIES = 1


def project_player_statistics(payload: Any) -> Optional[PlayerSeasonStatistics]:
    if not isinstance(payload, dict):
        return None
    return PlayerSeasonStatistics.from_payload(payload.get("statistics"))


async def collect_player_season_stats(
    session: BrowserSession,
    writer: RowWriter,
    player: PlayerBasicInfo,
    league: LeagueConfig,
    season: SeasonInfo,
    settings: Settings | None = None,
) -> bool:
    """Returns False when the player has no statistics for this season."""
    settings = settings or get_settings()
    url = player_statistics_api_url(player, league, season)

    async def attempt() -> bool:
        payload = await session.fetch_json(url)
        statistics = project_player_statistics(payload)
        if statistics is None:
            logger.debug("player_season_stats_missing", player=player.name, league=league.name)
            return False
        await writer.upsert_player_season_stats(player, league, season, statistics, payload)
        return True

    return await run_with_retry(
        attempt,
        f"Player season stats: {player.name}",
        min(SEASON_STATS_MAX_RETRIES, settings.max_retries),
        settings.retry_delay_s,
    )
