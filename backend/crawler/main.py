"""
Crawler entrypoint.

    python -m crawler.main <command> [--league NAME] [--team ID] [--headed] [--debug]

Per league: discover the current season and teams, then run the requested
stages. A league whose season or teams cannot be discovered is abandoned and
the next league still runs.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

# Ensure backend root is on path when run as python -m crawler.main
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from shared.config import Settings, get_settings
from shared.models.domain import LeagueConfig, PlayerBasicInfo, SeasonInfo, TeamInfo
from shared.models.enums import CrawlCommand
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, log_scope, setup_logging
from shared.utils.metrics import start_metrics_server

from capture.session import BrowserSession
from crawler.collectors.player_profile import collect_player_profile
from crawler.collectors.player_season_stats import collect_player_season_stats
from crawler.collectors.team_players import collect_team_players
from crawler.collectors.team_statistics import collect_team_statistics
from crawler.discovery import discover_season_and_teams
from crawler.errors import ScopeFailure
from crawler.leagues import LEAGUES, find_league, league_names
from crawler.pipeline import PipelineStats, run_pipeline
from crawler.writer import RowWriter

logger = get_logger(__name__)


@dataclass
class CrawlSummary:
    teams: int = 0
    players: int = 0
    leagues_done: list[str] = field(default_factory=list)
    leagues_abandoned: list[str] = field(default_factory=list)
    stages: dict[str, PipelineStats] = field(default_factory=dict)

    def record(self, stats: PipelineStats) -> None:
        self.stages.setdefault(stats.label, PipelineStats(label=stats.label)).merge(stats)


class LeagueCrawler:
    """Runs the requested stages for one league on a shared session."""

    def __init__(
        self,
        session: BrowserSession,
        writer: RowWriter,
        command: CrawlCommand,
        summary: CrawlSummary,
        team_id: Optional[int] = None,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._writer = writer
        self._command = command
        self._summary = summary
        self._team_id = team_id
        self._settings = settings or get_settings()

    async def crawl(self, league: LeagueConfig) -> None:
        with log_scope(league=league.name):
            await self._crawl(league)

    async def _crawl(self, league: LeagueConfig) -> None:
        logger.info("league_started", league=league.name, command=self._command.value)
        season, teams = await discover_season_and_teams(self._session, league)
        await self._session.pause(self._settings.page_delay_s)

        if self._team_id is not None:
            teams = [t for t in teams if t.team_id == self._team_id]
            if not teams:
                logger.warning("team_not_in_league", team_id=self._team_id, league=league.name)
                return
        self._summary.teams += len(teams)

        if self._command.includes(CrawlCommand.TEAM_STATS):
            await self._team_stats(teams, league, season)

        if not self._command.needs_players:
            return

        players = await self._team_players(teams)
        self._summary.players += len(players)

        if self._command.includes(CrawlCommand.PLAYER_PROFILES):
            await self._player_profiles(players)
        if self._command.includes(CrawlCommand.PLAYER_STATS):
            await self._player_stats(players, league, season)

    async def _team_stats(self, teams: list[TeamInfo], league: LeagueConfig, season: SeasonInfo) -> None:
        stats = await run_pipeline(
            teams,
            lambda team: collect_team_statistics(
                self._session, self._writer, team, league, season, self._settings
            ),
            pacing_s=self._settings.page_delay_s,
            key=lambda team: team.team_id,
            label="team_stats",
            describe=lambda team: team.name,
        )
        self._summary.record(stats)

    async def _team_players(self, teams: list[TeamInfo]) -> list[PlayerBasicInfo]:
        squads: dict[int, list[PlayerBasicInfo]] = {}

        async def collect(team: TeamInfo) -> bool:
            squads[team.team_id] = await collect_team_players(
                self._session, self._writer, team, self._settings
            )
            return bool(squads[team.team_id])

        stats = await run_pipeline(
            teams,
            collect,
            pacing_s=self._settings.page_delay_s,
            key=lambda team: team.team_id,
            label="team_players",
            describe=lambda team: team.name,
        )
        self._summary.record(stats)
        # Squads in team order; duplicates across teams are left for the player stages
        return [player for team in teams for player in squads.get(team.team_id, [])]

    async def _player_profiles(self, players: list[PlayerBasicInfo]) -> None:
        stats = await run_pipeline(
            players,
            lambda player: collect_player_profile(self._session, self._writer, player, self._settings),
            pacing_s=self._settings.player_delay_s,
            key=lambda player: player.player_id,
            label="player_profiles",
            describe=lambda player: player.name,
        )
        self._summary.record(stats)

    async def _player_stats(
        self, players: list[PlayerBasicInfo], league: LeagueConfig, season: SeasonInfo
    ) -> None:
        stats = await run_pipeline(
            players,
            lambda player: collect_player_season_stats(
                self._session, self._writer, player, league, season, self._settings
            ),
            pacing_s=self._settings.player_delay_s,
            key=lambda player: player.player_id,
            label="player_stats",
            describe=lambda player: player.name,
        )
        self._summary.record(stats)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m crawler.main",
        description="Collect SofaScore team and player data into PostgreSQL.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default=CrawlCommand.ALL.value,
        choices=[c.value for c in CrawlCommand],
        help="Pipeline stage(s) to run (default: all)",
    )
    parser.add_argument("--league", help=f"Only this league ({', '.join(league_names())})")
    parser.add_argument("--team", type=int, dest="team_id", help="Only this SofaScore team id")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def select_leagues(name: Optional[str]) -> list[LeagueConfig]:
    if name is None:
        return list(LEAGUES)
    league = find_league(name)
    if league is None:
        raise SystemExit(f"League not found: {name}. Available: {', '.join(league_names())}")
    return [league]


async def run(args: argparse.Namespace) -> CrawlSummary:
    settings = get_settings()
    command = CrawlCommand(args.command)
    leagues = select_leagues(args.league)
    summary = CrawlSummary()

    async with DatabaseManager(settings, application_name="crawler") as db, BrowserSession(
        headless=False if args.headed else None, settings=settings
    ) as session:
        crawler = LeagueCrawler(session, RowWriter(db), command, summary, args.team_id, settings)
        for index, league in enumerate(leagues):
            try:
                await crawler.crawl(league)
                summary.leagues_done.append(league.name)
            except ScopeFailure as exc:
                summary.leagues_abandoned.append(league.name)
                logger.error("league_abandoned", league=exc.league, reason=exc.reason)
            if index < len(leagues) - 1:
                await session.pause(settings.league_delay_s)

    return summary


def log_summary(summary: CrawlSummary, elapsed_s: float) -> None:
    logger.info(
        "collection_complete",
        teams=summary.teams,
        players=summary.players,
        leagues_done=summary.leagues_done,
        leagues_abandoned=summary.leagues_abandoned,
        elapsed_s=round(elapsed_s),
    )
    for label, stats in summary.stages.items():
        logger.info("stage_totals", stage=label, **stats.as_dict())


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("crawler", level="DEBUG" if args.debug else None)
    start_metrics_server()

    started = time.monotonic()
    try:
        summary = asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("crawl_interrupted")
        return 130
    except Exception as exc:
        logger.exception("pipeline_failed", error=str(exc))
        return 1

    log_summary(summary, time.monotonic() - started)
    if summary.leagues_abandoned and not summary.leagues_done:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
