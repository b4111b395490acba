"""
Merge source-side player statistics with SofaScore player data.

    python -m crawler.merge_player_stats --team "Manchester United"
    python -m crawler.merge_player_stats --league "Premier League"
    python -m crawler.merge_player_stats --all

Players are read from the source ``player_stats`` table, one team at a time.
Their SofaScore ids come from ``players_oddsflow_merged`` where a mapping is
stored; the rest are matched by name against the SofaScore squad of the team.
Each resolved player's page and season statistics are collected and the pair
is upserted into ``oddsflow_player_statistics`` keyed on ``player_id``.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

# Ensure backend root is on path when run as python -m crawler.merge_player_stats
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from sqlalchemy import bindparam, text

from shared.config import Settings, get_settings
from shared.models.domain import CatalogEntry, LeagueConfig, PlayerBasicInfo, SeasonInfo, TeamInfo
from shared.models.orm import row_to_dict
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, log_scope, setup_logging
from shared.utils.metrics import start_metrics_server

from capture.session import BrowserSession
from crawler.collectors.player_profile import PlayerPage, build_profile, profile_patterns, read_player_page
from crawler.collectors.team_players import PLAYERS_TAB
from crawler.discovery import build_catalog, discover_season_and_teams
from crawler.errors import ScopeFailure
from crawler.leagues import LEAGUES, find_league, league_names
from crawler.pipeline import PipelineStats, run_pipeline
from crawler.retry import run_with_retry
from crawler.urls import player_statistics_api_url, team_page_url, team_squad_api_url
from crawler.writer import RowWriter
from matching.matcher import match, match_player
from matching.normalize import normalize_name

logger = get_logger(__name__)

LABEL = "merge_player_stats"

# Competition names as stored in player_stats
SOURCE_LEAGUES: tuple[str, ...] = (
    "Premier League",
    "La Liga",
    "Bundesliga",
    "Serie A",
    "Ligue 1",
)

# player_stats rows without a known league are crawled against this one
DEFAULT_LEAGUE = LEAGUES[0]

MAPPING_BATCH_SIZE = 50
SQUAD_TAB = "Squad"

# Translated and long-text columns are not copied into the merged row
STRIPPED_SOURCE_COLUMNS = frozenset({
    "bio",
    "bio_language",
    "player_name_language",
    "first_name_language",
    "last_name_language",
    "title_language",
    "nationality_language",
    "team_name_language",
})


def player_slug(name: str) -> str:
    """
    URL slug of a player name.

    >>> player_slug("Vinícius Júnior")
    'vinicius-junior'
    """
    return normalize_name(name).replace(" ", "-")


def clean_source_row(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if k not in STRIPPED_SOURCE_COLUMNS}


def squad_from_payload(payload: Any) -> list[PlayerBasicInfo]:
    """Distinct players of a ``/team/{id}/players`` payload, in listed order."""
    if not isinstance(payload, dict):
        return []
    players: list[PlayerBasicInfo] = []
    seen: set[int] = set()
    for item in payload.get("players") or []:
        p = (item or {}).get("player")
        if not isinstance(p, dict) or not p.get("id") or p["id"] in seen:
            continue
        seen.add(p["id"])
        name = p.get("name") or p.get("shortName") or ""
        players.append(PlayerBasicInfo(player_id=p["id"], slug=p.get("slug") or player_slug(name), name=name))
    return players


@dataclass(frozen=True)
class SofascoreMapping:
    player_id: int
    sofascore_id: int
    sofascore_name: Optional[str]

    def as_player(self) -> PlayerBasicInfo:
        name = self.sofascore_name or ""
        return PlayerBasicInfo(player_id=self.sofascore_id, slug=player_slug(name), name=name)


@dataclass(frozen=True)
class ResolvedPlayer:
    """A player_stats row and the SofaScore player it was resolved to."""
    row: dict[str, Any]
    player: PlayerBasicInfo
    via: str

    @property
    def key(self) -> int:
        return self.row["player_id"]


def resolve_players(
    rows: Iterable[dict[str, Any]],
    mappings: dict[int, SofascoreMapping],
    squad: Sequence[PlayerBasicInfo],
) -> tuple[list[ResolvedPlayer], list[dict[str, Any]]]:
    """Stored mapping first, then a name match against the squad."""
    resolved: list[ResolvedPlayer] = []
    unresolved: list[dict[str, Any]] = []
    for row in rows:
        mapping = mappings.get(row["player_id"])
        if mapping is not None:
            resolved.append(ResolvedPlayer(row=row, player=mapping.as_player(), via="mapping"))
            continue
        candidate = match_player(row["player_name"], squad) if squad else None
        if candidate is None:
            unresolved.append(row)
            logger.warning("player_no_sofascore_id", player=row["player_name"])
            continue
        logger.info(
            "player_name_matched",
            player=row["player_name"],
            sofascore=candidate.name,
            sofascore_id=candidate.player_id,
        )
        resolved.append(ResolvedPlayer(row=row, player=candidate, via="name"))
    return resolved, unresolved


def sofascore_player_data(
    player: PlayerBasicInfo,
    page: PlayerPage,
    season_payload: Any = None,
) -> dict[str, Any]:
    """The ``sofascore_data`` document of a merged row."""
    attributes_pattern, characteristics_pattern, national_pattern = profile_patterns(player.player_id)
    profile = build_profile(player, page.next_data, page.captured, page.lines)
    season_raw = season_payload if isinstance(season_payload, dict) else None
    return {
        "sofascore_id": player.player_id,
        "slug": player.slug,
        "profile": profile.model_dump(mode="json", exclude={"attributes_raw", "raw_profile"}),
        "season_statistics": season_raw.get("statistics") if season_raw else None,
        "raw_attributes": page.captured.get(attributes_pattern),
        "raw_characteristics": page.captured.get(characteristics_pattern),
        "raw_national_team": page.captured.get(national_pattern),
        "raw_season_stats": season_raw,
    }


class SourcePlayerStatistics:
    """Read access to ``player_stats`` and the stored SofaScore id mappings."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def for_team(self, team_name: str) -> list[dict[str, Any]]:
        rows = await self._fetch(
            "SELECT * FROM player_stats WHERE team_name = :team ORDER BY player_name",
            team=team_name,
        )
        logger.info("source_rows_loaded", team=team_name, count=len(rows))
        return rows

    async def teams_for_league(self, league_name: str) -> list[str]:
        rows = await self._fetch(
            "SELECT DISTINCT team_name FROM player_stats"
            " WHERE league_name = :league AND team_name IS NOT NULL ORDER BY team_name",
            league=league_name,
        )
        teams = [r["team_name"] for r in rows if r["team_name"]]
        logger.info("source_teams_loaded", league=league_name, count=len(teams))
        return teams

    async def league_for_team(self, team_name: str) -> Optional[str]:
        rows = await self._fetch(
            "SELECT league_name FROM player_stats WHERE team_name = :team LIMIT 1",
            team=team_name,
        )
        return rows[0]["league_name"] if rows else None

    async def sofascore_mappings(self, player_ids: Sequence[int]) -> dict[int, SofascoreMapping]:
        """Stored SofaScore ids by source player id; rows without an id are ignored."""
        stmt = text(
            "SELECT player_id, sofascore_id, sofascore_name FROM players_oddsflow_merged"
            " WHERE player_id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        ids = list(player_ids)
        mappings: dict[int, SofascoreMapping] = {}
        for start in range(0, len(ids), MAPPING_BATCH_SIZE):
            async with self._db.read_session() as session:
                result = await session.execute(stmt, {"ids": ids[start:start + MAPPING_BATCH_SIZE]})
                for row in result.mappings().all():
                    if row["sofascore_id"]:
                        mappings[row["player_id"]] = SofascoreMapping(
                            player_id=row["player_id"],
                            sofascore_id=row["sofascore_id"],
                            sofascore_name=row["sofascore_name"],
                        )
        logger.info("sofascore_mappings_loaded", found=len(mappings), players=len(ids))
        return mappings

    async def _fetch(self, sql: str, **params: Any) -> list[dict[str, Any]]:
        async with self._db.read_session() as session:
            result = await session.execute(text(sql), params)
            return [row_to_dict(row) for row in result.mappings().all()]


class PlayerStatsMerger:
    def __init__(
        self,
        session: BrowserSession,
        writer: RowWriter,
        source: SourcePlayerStatistics,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._writer = writer
        self._source = source
        self._settings = settings or get_settings()

    async def squad(self, team: CatalogEntry) -> list[PlayerBasicInfo]:
        """SofaScore squad of ``team``: the players API, else the team page links."""
        players = squad_from_payload(await self._session.fetch_json(team_squad_api_url(team.id)))
        if players:
            logger.info("squad_loaded", team=team.name, count=len(players), source="api")
            return players

        logger.warning("squad_api_empty", team=team.name)
        await self._session.goto(
            team_page_url(TeamInfo(team_id=team.id, slug=team.slug, name=team.name)),
            wait_until="load",
        )
        await self._session.pause(self._settings.tab_delay_s)
        if not await self._session.click_tab(SQUAD_TAB):
            await self._session.click_tab(PLAYERS_TAB)
        await self._session.pause(self._settings.page_delay_s)
        players = await self._session.player_links()
        logger.info("squad_loaded", team=team.name, count=len(players), source="page")
        return players

    async def merge_one(
        self,
        item: ResolvedPlayer,
        team_name: str,
        league: LeagueConfig,
        season: Optional[SeasonInfo],
    ) -> bool:
        async def attempt() -> bool:
            page = await read_player_page(self._session, item.player, self._settings)
            season_payload = None
            if season is not None:
                season_payload = await self._session.fetch_json(
                    player_statistics_api_url(item.player, league, season)
                )
            await self._writer.upsert_merged_player_statistics(
                player_id=item.row["player_id"],
                player_name=item.row["player_name"],
                team_name=team_name,
                source_row=clean_source_row(item.row),
                sofascore_data=sofascore_player_data(item.player, page, season_payload),
            )
            return True

        return await run_with_retry(
            attempt,
            f"Merge player stats: {item.row['player_name']}",
            self._settings.max_retries,
            self._settings.retry_delay_s,
        )

    async def merge_team(
        self,
        team_name: str,
        league: LeagueConfig,
        season: Optional[SeasonInfo],
        team: Optional[CatalogEntry],
    ) -> PipelineStats:
        """
        Merge every player_stats row of one team.

        Without a matched SofaScore ``team`` only players with a stored
        mapping can be resolved; without a ``season`` no season statistics
        are fetched.
        """
        rows = await self._source.for_team(team_name)
        if not rows:
            logger.warning("no_source_rows", team=team_name)
            return PipelineStats(label=LABEL)

        mappings = await self._source.sofascore_mappings([r["player_id"] for r in rows])
        squad: list[PlayerBasicInfo] = []
        if team is not None and any(r["player_id"] not in mappings for r in rows):
            squad = await self.squad(team)
            await self._session.pause(self._settings.tab_delay_s)

        resolved, unresolved = resolve_players(rows, mappings, squad)
        stats = await run_pipeline(
            resolved,
            lambda item: self.merge_one(item, team_name, league, season),
            pacing_s=self._settings.player_delay_s,
            key=lambda item: item.key,
            label=LABEL,
            describe=lambda item: item.row["player_name"],
        )
        stats.skipped += len(unresolved)
        logger.info("team_merged", team=team_name, **stats.as_dict())
        return stats

    async def merge_league(self, league_name: str) -> PipelineStats:
        """
        Merge every team of one league.

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

        team_names = await self._source.teams_for_league(league_name)
        if not team_names:
            logger.warning("no_source_teams", league=league_name)
            return PipelineStats(label=LABEL)

        season, teams = await discover_season_and_teams(self._session, league)
        catalog = build_catalog(teams)
        matched: dict[str, CatalogEntry] = {}
        for name in team_names:
            team = match(name, catalog)
            if team is None:
                logger.warning("team_no_match", team=name, league=league_name)
            else:
                matched[name] = team
                logger.info("team_match", team=name, sofascore=team.name, sofascore_id=team.id)
        logger.info("match_summary", matched=len(matched), total=len(team_names))

        total = PipelineStats(label=LABEL)

        async def merge_matched(team_name: str) -> bool:
            with log_scope(team=team_name):
                total.merge(await self.merge_team(team_name, league, season, matched[team_name]))
            return True

        teams_stats = await run_pipeline(
            list(matched),
            merge_matched,
            pacing_s=self._settings.merge_player_team_delay_s,
            label="merge_player_teams",
        )
        logger.info(
            "league_merged",
            league=league_name,
            teams_matched=len(matched),
            teams_total=len(team_names),
            teams_failed=teams_stats.failed,
            **total.as_dict(),
        )
        return total

    async def merge_single_team(self, team_name: str) -> PipelineStats:
        """Merge one team; discovery problems degrade to stored mappings only."""
        league_name = await self._source.league_for_team(team_name)
        league = find_league(league_name) if league_name else None
        if league is None:
            league = DEFAULT_LEAGUE
            logger.warning("team_league_unknown", team=team_name, league=league_name, fallback=league.name)

        season: Optional[SeasonInfo] = None
        team: Optional[CatalogEntry] = None
        try:
            season, teams = await discover_season_and_teams(self._session, league)
            team = match(team_name, build_catalog(teams))
        except ScopeFailure as exc:
            logger.warning("discovery_unavailable", league=exc.league, reason=exc.reason)
        if team is None:
            logger.warning("team_no_match", team=team_name, league=league.name, fallback="stored mappings")

        with log_scope(team=team_name):
            return await self.merge_team(team_name, league, season, team)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m crawler.merge_player_stats",
        description="Merge player_stats rows with SofaScore player data.",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--team", help="Single team, as named in player_stats")
    mode.add_argument("--league", help="Every team of one league")
    mode.add_argument("--all", action="store_true", help=f"All leagues: {', '.join(SOURCE_LEAGUES)}")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


async def run(args: argparse.Namespace) -> PipelineStats:
    settings = get_settings()
    total = PipelineStats(label=LABEL)

    async with DatabaseManager(settings, application_name="merge_player_stats") as db, BrowserSession(
        headless=False if args.headed else None, settings=settings
    ) as session:
        # In-page fetches need a same-origin document
        await session.goto(f"{settings.site_base_url.rstrip('/')}/football", wait_until="load")
        await session.pause(settings.tab_delay_s)

        merger = PlayerStatsMerger(session, RowWriter(db), SourcePlayerStatistics(db), settings)

        if args.team:
            total.merge(await merger.merge_single_team(args.team))
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
    setup_logging("merge_player_stats", level="DEBUG" if args.debug else None)
    start_metrics_server()

    started = time.monotonic()
    try:
        total = asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("merge_interrupted")
        return 130
    except Exception as exc:
        logger.exception("merge_failed", error=str(exc))
        return 1

    logger.info("merge_complete", elapsed_s=round(time.monotonic() - started), **total.as_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
