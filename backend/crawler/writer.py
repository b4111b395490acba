"""
Row writer for collected records.

Every table is written with PostgreSQL ``INSERT ... ON CONFLICT DO UPDATE`` on
its natural key, so re-running a crawl refreshes rows instead of duplicating
them. Errors propagate to the caller's retry wrapper.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from shared.models.domain import (
    LeagueConfig,
    PlayerBasicInfo,
    PlayerProfile,
    PlayerSeasonStatistics,
    SeasonInfo,
    TeamInfo,
    TeamSeasonStatistics,
)
from shared.models.orm import (
    Base,
    MergedPlayerStatisticsORM,
    MergedTeamStatisticsORM,
    PlayerProfileORM,
    PlayerSeasonStatsORM,
    TeamPlayerORM,
    TeamStatisticsORM,
    column_names,
)
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.metrics import DB_UPSERTS

logger = get_logger(__name__)

TEAM_STATISTICS_KEY = ("team_id", "tournament_id", "season_id")
TEAM_PLAYER_KEY = ("player_id", "team_id")
PLAYER_PROFILE_KEY = ("player_id",)
PLAYER_SEASON_STATS_KEY = ("player_id", "tournament_id", "season_id")
MERGED_TEAM_STATISTICS_KEY = ("team_id", "league_name")
MERGED_PLAYER_STATISTICS_KEY = ("player_id",)


class RowWriter:
    """Upserts projected records through a connected ``DatabaseManager``."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert(
        self,
        table: type[Base],
        conflict_columns: Sequence[str],
        record: Mapping[str, Any],
    ) -> None:
        """
        Insert ``record`` or update the row sharing its conflict key.

        Keys that are not columns of ``table`` are dropped.
        """
        columns = column_names(table)
        values = {k: v for k, v in record.items() if k in columns}
        missing = [c for c in conflict_columns if values.get(c) is None]
        if missing:
            raise ValueError(f"{table.__tablename__}: missing conflict columns {missing}")

        stmt = pg_insert(table).values(**values)
        updates = {k: stmt.excluded[k] for k in values if k not in conflict_columns}
        if "updated_at" in columns:
            updates["updated_at"] = datetime.now(timezone.utc)
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=updates)

        try:
            async with self._db.write_session() as session:
                await session.execute(stmt)
        except Exception:
            DB_UPSERTS.labels(table=table.__tablename__, status="error").inc()
            raise
        DB_UPSERTS.labels(table=table.__tablename__, status="ok").inc()

    # ── Typed helpers ───────────────────────────────────────────────────

    async def upsert_team_statistics(
        self,
        team: TeamInfo,
        league: LeagueConfig,
        season: SeasonInfo,
        statistics: TeamSeasonStatistics,
        raw: dict[str, Any],
    ) -> None:
        await self.upsert(TeamStatisticsORM, TEAM_STATISTICS_KEY, {
            "team_id": team.team_id,
            "team_name": team.name,
            "tournament_id": league.unique_tournament_id,
            "tournament_name": league.name,
            "season_id": season.season_id,
            "season_name": season.season_name,
            **statistics.columns(),
            "raw_data": raw,
        })
        logger.info("team_statistics_upserted", team=team.name, league=league.name)

    async def upsert_team_player(self, player: PlayerBasicInfo, team: TeamInfo, href: str) -> None:
        await self.upsert(TeamPlayerORM, TEAM_PLAYER_KEY, {
            "player_id": player.player_id,
            "team_id": team.team_id,
            "player_name": player.name,
            "player_slug": player.slug,
            "raw_data": {"href": href, "source": "page_links"},
        })
        logger.debug("team_player_upserted", player=player.name, team=team.name)

    async def upsert_player_profile(self, profile: PlayerProfile) -> None:
        await self.upsert(PlayerProfileORM, PLAYER_PROFILE_KEY, profile.model_dump())
        logger.info("player_profile_upserted", player=profile.player_name, player_id=profile.player_id)

    async def upsert_player_season_stats(
        self,
        player: PlayerBasicInfo,
        league: LeagueConfig,
        season: SeasonInfo,
        statistics: PlayerSeasonStatistics,
        raw: dict[str, Any],
    ) -> None:
        await self.upsert(PlayerSeasonStatsORM, PLAYER_SEASON_STATS_KEY, {
            "player_id": player.player_id,
            "player_name": player.name,
            "tournament_id": league.unique_tournament_id,
            "tournament_name": league.name,
            "season_id": season.season_id,
            "season_name": season.season_name,
            **statistics.columns(),
            "raw_data": raw,
        })
        logger.debug("player_season_stats_upserted", player=player.name, league=league.name)

    async def upsert_merged_team_statistics(
        self,
        team_id: int,
        team_name: str,
        league_name: str,
        season_id: Optional[int],
        source_row: dict[str, Any],
        sofascore_data: dict[str, Any],
        collected_on: Optional[date] = None,
    ) -> None:
        await self.upsert(MergedTeamStatisticsORM, MERGED_TEAM_STATISTICS_KEY, {
            "team_id": team_id,
            "team_name": team_name,
            "league_name": league_name,
            "season": season_id,
            "supabase_original_data": source_row,
            "sofascore_data": sofascore_data,
            "data_collection_date": collected_on or datetime.now(timezone.utc).date(),
        })
        logger.info("merged_team_statistics_upserted", team=team_name, league=league_name)

    async def upsert_merged_player_statistics(
        self,
        player_id: int,
        player_name: str,
        team_name: str,
        source_row: dict[str, Any],
        sofascore_data: dict[str, Any],
        collected_on: Optional[date] = None,
    ) -> None:
        await self.upsert(MergedPlayerStatisticsORM, MERGED_PLAYER_STATISTICS_KEY, {
            "player_id": player_id,
            "player_name": player_name,
            "team_name": team_name,
            "supabase_original_data": source_row,
            "sofascore_data": sofascore_data,
            "data_collection_date": collected_on or datetime.now(timezone.utc).date(),
        })
        logger.info("merged_player_statistics_upserted", player=player_name, team=team_name)

    async def merged_team_ids(self, league_name: str) -> set[int]:
        """Team ids already merged for ``league_name``; used to resume a run."""
        async with self._db.read_session() as session:
            result = await session.execute(
                select(MergedTeamStatisticsORM.team_id).where(
                    MergedTeamStatisticsORM.league_name == league_name
                )
            )
            return set(result.scalars().all())
