"""
Merge source-side team statistics with SofaScore season statistics.

    python -m crawler.merge_team_stats --team "Arsenal" [--league NAME]
    python -m crawler.merge_team_stats --league "Premier League"
    python -m crawler.merge_team_stats --all

Rows of the source ``team_statistics`` table are matched to SofaScore teams by
name, their season statistics are fetched, and the pair is upserted into
``oddsflow_team_statistics``. Teams already merged for a league are skipped,
so an interrupted run can be resumed.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

# Ensure backend root is on path when run as python -m crawler.merge_team_stats
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from sqlalchemy import text

from shared.config import Settings, get_settings
from shared.models.domain import CatalogEntry, LeagueConfig, SeasonInfo
from shared.models.orm import row_to_dict
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, log_scope, setup_logging
from shared.utils.metrics import start_metrics_server

from capture.session import BrowserSession
from crawler.discovery import build_catalog, discover_season_and_teams
from crawler.errors import ScopeFailure, TransientFetchError
from crawler.leagues import find_league, league_names
from crawler.pipeline import PipelineStats, run_pipeline
from crawler.retry import run_with_retry
from crawler.urls import team_statistics_api_url
from crawler.writer import RowWriter
from matching.matcher import TeamCatalog, match

logger = get_logger(__name__)

# Competition names as stored in the source table
SOURCE_LEAGUES: tuple[str, ...] = (
    "Premier League",
    "La Liga",
    "Bundesliga",
    "Serie A",
    "Ligue 1",
    "UEFA Champions League",
)


@dataclass(frozen=True)
class MatchedRow:
    row: dict[str, Any]
    team: CatalogEntry

    @property
    def key(self) -> tuple[int, str]:
        return self.row["team_id"], self.row["league_name"]


class SourceTeamStatistics:
    """Read access to the source-side ``team_statistics`` table."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def for_league(self, league_name: str) -> list[dict[str, Any]]:
        rows = await self._fetch(
            "SELECT * FROM team_statistics WHERE league_name = :league ORDER BY team_name",
            league=league_name,
        )
        logger.info("source_rows_loaded", league=league_name, count=len(rows))
        return rows

    async def for_team(self, team_name: str, league_name: Optional[str] = None) -> list[dict[str, Any]]:
        sql = "SELECT * FROM team_statistics WHERE team_name ILIKE :team"
        params: dict[str, Any] = {"team": team_name}
        if league_name:
            sql += " AND league_name = :league"
            params["league"] = league_name
        return await self._fetch(sql + " ORDER BY league_name", **params)

    async def _fetch(self, sql: str, **params: Any) -> list[dict[str, Any]]:
        async with self._db.read_session() as session:
            result = await session.execute(text(sql), params)
            return [row_to_dict(row) for row in result.mappings().all()]


def match_rows(rows: list[dict[str, Any]], catalog: TeamCatalog) -> tuple[list[MatchedRow], list[dict[str, Any]]]:
    """Split source rows into matched and unmatched, logging each decision."""
    matched: list[MatchedRow] = []
    unmatched: list[dict[str, Any]] = []
    for row in rows:
        team = match(row["team_name"], catalog)
        if team is None:
            unmatched.append(row)
            logger.warning("team_no_match", team=row["team_name"], league=row.get("league_name"))
        else:
            matched.append(MatchedRow(row=row, team=team))
            logger.info("team_match", team=row["team_name"], sofascore=team.name, sofascore_id=team.id)
    logger.info("match_summary", matched=len(matched), total=len(rows))
    return matched, unmatched


class TeamStatsMerger:
    def __init__(
        self,
        session: BrowserSession,
        writer: RowWriter,
        source: SourceTeamStatistics,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._writer = writer
        self._source = source
        self._settings = settings or get_settings()

    async def merge_one(self, item: MatchedRow, league: LeagueConfig, season: SeasonInfo) -> bool:
        url = team_statistics_api_url(item.team.id, league.unique_tournament_id, season.season_id)

        async def attempt() -> bool:
            logger.debug("fetching_team_statistics", url=url)
            payload = await self._session.fetch_json(url)
            if not isinstance(payload, dict):
                raise TransientFetchError(f"No SofaScore stats for {item.row['team_name']}")
            await self._writer.upsert_merged_team_statistics(
                team_id=item.row["team_id"],
                team_name=item.row["team_name"],
                league_name=item.row["league_name"],
                season_id=season.season_id,
                source_row=item.row,
                sofascore_data=payload,
            )
            return True

        return await run_with_retry(
            attempt,
            f"Merge team stats: {item.row['team_name']}",
            self._settings.max_retries,
            self._settings.retry_delay_s,
        )

    async def merge_league(self, league_name: str) -> PipelineStats:
        """
        Merge every source row of one league.

        Raises:
            ScopeFailure: Unknown league, or its season or teams could not be
                discovered.
        """
        with log_scope(league=league_name):
            return await self._merge_league(league_name)

    async def _merge_league(self, league_name: str) -> PipelineStats:
        league = find_league(league_name)
        if league is None:
            raise ScopeFailure(league_name, f"unknown league, available: {', '.join(league_names())}")

        rows = await self._source.for_league(league_name)
        if not rows:
            logger.warning("no_source_rows", league=league_name)
            return PipelineStats(label="merge_team_stats")

        season, teams = await discover_season_and_teams(self._session, league)
        matched, unmatched = match_rows(rows, build_catalog(teams))

        existing = await self._writer.merged_team_ids(league_name)
        if existing:
            logger.info("already_merged", league=league_name, count=len(existing))
        pending = [m for m in matched if m.row["team_id"] not in existing]

        stats = await run_pipeline(
            pending,
            lambda item: self.merge_one(item, league, season),
            pacing_s=self._settings.merge_team_delay_s,
            key=lambda item: item.key,
            label="merge_team_stats",
            describe=lambda item: item.row["team_name"],
        )
        stats.skipped += len(unmatched) + (len(matched) - len(pending))
        logger.info("league_merged", league=league_name, **stats.as_dict())
        return stats

    async def merge_team(self, team_name: str, league_name: Optional[str] = None) -> PipelineStats:
        """Merge one team in every league it appears in."""
        rows = await self._source.for_team(team_name, league_name)
        if not rows:
            raise ScopeFailure(league_name or "all leagues", f"team {team_name!r} not in team_statistics")
        logger.info("team_entries_found", team=team_name, leagues=[r["league_name"] for r in rows])

        async def merge_row(row: dict[str, Any]) -> bool:
            league = find_league(row["league_name"])
            if league is None:
                logger.warning("unknown_league", league=row["league_name"])
                return False
            season, teams = await discover_season_and_teams(self._session, league)
            matched, _ = match_rows([row], build_catalog(teams))
            if not matched:
                return False
            return await self.merge_one(matched[0], league, season)

        return await run_pipeline(
            rows,
            merge_row,
            pacing_s=self._settings.merge_team_delay_s,
            key=lambda row: (row["team_id"], row["league_name"]),
            label="merge_team_stats",
            describe=lambda row: f"{row['team_name']} ({row['league_name']})",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m crawler.merge_team_stats",
        description="Merge team_statistics rows with SofaScore season statistics.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--team", help="Single team, in every league it appears in")
    mode.add_argument("--all", action="store_true", help=f"All leagues: {', '.join(SOURCE_LEAGUES)}")
    parser.add_argument("--league", help="Single league (or restrict --team to it)")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.team or args.all or args.league):
        parser.error("one of --team, --league or --all is required")
    return args


async def run(args: argparse.Namespace) -> PipelineStats:
    settings = get_settings()
    total = PipelineStats(label="merge_team_stats")

    async with DatabaseManager(settings, application_name="merge_team_stats") as db, BrowserSession(
        headless=False if args.headed else None, settings=settings
    ) as session:
        # In-page fetches need a same-origin document
        await session.goto(f"{settings.site_base_url.rstrip('/')}/football", wait_until="load")
        await session.pause(settings.tab_delay_s)

        merger = TeamStatsMerger(session, RowWriter(db), SourceTeamStatistics(db), settings)

        if args.team:
            total.merge(await merger.merge_team(args.team, args.league))
            return total

        leagues = list(SOURCE_LEAGUES) if args.all else [args.league]
        for index, league_name in enumerate(leagues):
            try:
                total.merge(await merger.merge_league(league_name))
            except ScopeFailure as exc:
                logger.error("league_abandoned", league=exc.league, reason=exc.reason)
            if index < len(leagues) - 1:
                await session.pause(settings.league_delay_s)

    return total


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging("merge_team_stats", level="DEBUG" if args.debug else None)
    start_metrics_server()

    started = time.monotonic()
    try:
        total = asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("merge_interrupted")
        return 130
    except ScopeFailure as exc:
        logger.error("merge_failed", scope=exc.league, reason=exc.reason)
        return 1
    except Exception as exc:
        logger.exception("merge_failed", error=str(exc))
        return 1

    logger.info("merge_complete", elapsed_s=round(time.monotonic() - started), **total.as_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
