"""
Unit tests for the per-item collectors, the league crawler and the merge flow.
Browser and database are replaced by mocks; the profile collector runs a real
ResponseCorrelator over an in-memory traffic source.

Run: pytest backend/tests/test_collectors.py -v
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from capture.correlator import ResponseCorrelator
from capture.session import TabNotFound
from crawler.collectors.player_profile import collect_player_profile, profile_patterns
from crawler.collectors.player_season_stats import collect_player_season_stats
from crawler.collectors.team_players import collect_team_players
from crawler.collectors.team_statistics import collect_team_statistics
from crawler.errors import ScopeFailure, TransientFetchError
from crawler.main import CrawlSummary, LeagueCrawler
from crawler.merge_team_stats import MatchedRow, TeamStatsMerger, match_rows
from crawler.discovery import build_catalog
from shared.models.domain import LeagueConfig, PlayerBasicInfo, SeasonInfo, TeamInfo
from shared.models.enums import CrawlCommand

API_ROOT = "www.sofascore.com/api/v1"

PREMIER_LEAGUE = LeagueConfig(name="Premier League", slug="premier-league", unique_tournament_id=17)
SEASON = SeasonInfo(season_id=61627, season_name="Premier League 24/25")
ARSENAL = TeamInfo(team_id=42, slug="arsenal", name="Arsenal")
CHELSEA = TeamInfo(team_id=38, slug="chelsea", name="Chelsea")
SAKA = PlayerBasicInfo(player_id=934235, slug="bukayo-saka", name="Bukayo Saka")
RICE = PlayerBasicInfo(player_id=868812, slug="declan-rice", name="Declan Rice")


def fake_session() -> MagicMock:
    session = MagicMock()
    session.goto = AsyncMock()
    session.pause = AsyncMock()
    session.click_tab = AsyncMock(return_value=True)
    session.click_and_capture = AsyncMock()
    session.fetch_json = AsyncMock()
    session.player_links = AsyncMock(return_value=[])
    session.extract_next_data = AsyncMock(return_value=None)
    session.page_text_lines = AsyncMock(return_value=[])
    return session


@pytest.fixture
def session() -> MagicMock:
    return fake_session()


@pytest.fixture
def writer() -> AsyncMock:
    return AsyncMock()


# ── Team statistics ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_team_statistics_collected_and_written(session, writer, fast_settings) -> None:
    payload = {"statistics": {"goalsScored": 68}}
    session.click_and_capture.return_value = payload

    ok = await collect_team_statistics(session, writer, ARSENAL, PREMIER_LEAGUE, SEASON, fast_settings)

    assert ok is True
    tab, pattern, timeout = session.click_and_capture.await_args.args
    assert tab == "Statistics"
    assert pattern == "/team/42/unique-tournament/17/season/61627/statistics/overall"
    assert timeout == fast_settings.capture_timeout_s
    args = writer.upsert_team_statistics.await_args.args
    assert args[3].goals_scored == 68
    assert args[4] is payload


@pytest.mark.asyncio
async def test_team_statistics_without_statistics_is_soft_skip(session, writer, fast_settings) -> None:
    session.click_and_capture.return_value = {"error": "none"}

    ok = await collect_team_statistics(session, writer, ARSENAL, PREMIER_LEAGUE, SEASON, fast_settings)

    assert ok is False
    writer.upsert_team_statistics.assert_not_awaited()


@pytest.mark.asyncio
async def test_team_statistics_missing_tab_is_retried(session, writer, fast_settings) -> None:
    session.click_and_capture.side_effect = TabNotFound("Statistics")

    with pytest.raises(TransientFetchError, match="Statistics tab for Arsenal"):
        await collect_team_statistics(session, writer, ARSENAL, PREMIER_LEAGUE, SEASON, fast_settings)

    assert session.click_and_capture.await_count == fast_settings.max_retries + 1


# ── Team players ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_team_players_upserts_each_link(session, writer, fast_settings) -> None:
    session.player_links.return_value = [SAKA, RICE]

    players = await collect_team_players(session, writer, ARSENAL, fast_settings)

    assert players == [SAKA, RICE]
    session.click_tab.assert_awaited_once_with("Players")
    assert writer.upsert_team_player.await_count == 2
    _, kwargs = writer.upsert_team_player.await_args_list[0]
    assert kwargs["href"] == "/football/player/bukayo-saka/934235"


@pytest.mark.asyncio
async def test_team_players_tolerates_missing_tab(session, writer, fast_settings) -> None:
    session.click_tab.return_value = False
    session.player_links.return_value = [SAKA]

    assert await collect_team_players(session, writer, ARSENAL, fast_settings) == [SAKA]


# ── Player season stats ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_player_season_stats_written(session, writer, fast_settings) -> None:
    session.fetch_json.return_value = {"statistics": {"goals": 12}}

    assert await collect_player_season_stats(session, writer, SAKA, PREMIER_LEAGUE, SEASON, fast_settings)

    url = session.fetch_json.await_args.args[0]
    assert url.endswith("/player/934235/unique-tournament/17/season/61627/statistics/overall")
    assert writer.upsert_player_season_stats.await_args.args[3].goals == 12


@pytest.mark.asyncio
async def test_player_season_stats_missing_is_soft_skip(session, writer, fast_settings) -> None:
    session.fetch_json.return_value = None

    assert await collect_player_season_stats(session, writer, SAKA, PREMIER_LEAGUE, SEASON, fast_settings) is False
    assert session.fetch_json.await_count == 1


@pytest.mark.asyncio
async def test_player_season_stats_retries_at_most_once(session, writer, fast_settings) -> None:
    session.fetch_json.side_effect = RuntimeError("page crashed")
    settings = fast_settings.model_copy(update={"max_retries": 3})

    with pytest.raises(RuntimeError):
        await collect_player_season_stats(session, writer, SAKA, PREMIER_LEAGUE, SEASON, settings)

    assert session.fetch_json.await_count == 2


# ── Player profile (real correlator) ────────────────────────────────────

def profile_session(traffic, responses: dict[str, dict]) -> MagicMock:
    session = fake_session()
    session.correlator = ResponseCorrelator(traffic, api_root=API_ROOT)

    async def goto(url: str, wait_until: str = "domcontentloaded") -> None:
        for path, body in responses.items():
            traffic.emit(f"https://{API_ROOT}{path}", body)

    session.goto = AsyncMock(side_effect=goto)
    session.extract_next_data.return_value = {
        "props": {"pageProps": {"initialProps": {"player": {"name": "Bukayo Saka", "height": 178}}}}
    }
    session.page_text_lines.return_value = ["Strengths", "Dribbling", "Weaknesses", "Aerial duels", "RW"]
    return session


@pytest.mark.asyncio
async def test_player_profile_merges_all_sources(traffic, writer, fast_settings) -> None:
    session = profile_session(traffic, {
        "/player/934235/attribute-overviews": {"playerAttributeOverviews": [{"yearShift": 0, "attacking": 80}]},
        "/player/934235/characteristics": {"positions": ["RW"]},
        "/player/934235/national-team-statistics": {"statistics": [{"team": {"name": "England"}, "appearances": 40}]},
    })

    assert await collect_player_profile(session, writer, SAKA, fast_settings) is True

    profile = writer.upsert_player_profile.await_args.args[0]
    assert profile.height == 178
    assert profile.attacking_rating == 80
    assert profile.positions == ["RW"]
    assert profile.national_team_stats.team == "England"
    assert profile.strengths == ["Dribbling"]
    assert profile.weaknesses == ["Aerial duels"]
    assert traffic.handlers == []


@pytest.mark.asyncio
async def test_player_profile_written_with_partial_capture(traffic, writer, fast_settings) -> None:
    session = profile_session(traffic, {"/player/934235/characteristics": {"positions": ["AM"]}})

    assert await collect_player_profile(session, writer, SAKA, fast_settings) is True

    profile = writer.upsert_player_profile.await_args.args[0]
    assert profile.positions == ["AM"]
    assert profile.attacking_rating is None
    assert profile.national_team_stats is None
    assert traffic.handlers == []


@pytest.mark.asyncio
async def test_player_profile_written_with_nothing_captured(traffic, writer, fast_settings) -> None:
    session = profile_session(traffic, {})
    session.extract_next_data.return_value = None

    assert await collect_player_profile(session, writer, SAKA, fast_settings) is True
    assert writer.upsert_player_profile.await_args.args[0].player_name == "Bukayo Saka"


def test_profile_patterns() -> None:
    assert profile_patterns(7) == [
        "player/7/attribute-overviews",
        "player/7/characteristics",
        "player/7/national-team-statistics",
    ]


# ── LeagueCrawler ───────────────────────────────────────────────────────

@pytest.fixture
def crawl_mocks():
    with patch(
        "crawler.main.discover_season_and_teams",
        new=AsyncMock(return_value=(SEASON, [ARSENAL, CHELSEA])),
    ) as discover, patch(
        "crawler.main.collect_team_statistics", new=AsyncMock(return_value=True)
    ) as team_stats, patch(
        "crawler.main.collect_team_players",
        new=AsyncMock(side_effect=lambda session, writer, team, settings: [SAKA, RICE] if team is ARSENAL else [RICE]),
    ) as team_players, patch(
        "crawler.main.collect_player_profile", new=AsyncMock(return_value=True)
    ) as profiles, patch(
        "crawler.main.collect_player_season_stats", new=AsyncMock(return_value=True)
    ) as player_stats:
        yield MagicMock(
            discover=discover,
            team_stats=team_stats,
            team_players=team_players,
            profiles=profiles,
            player_stats=player_stats,
        )


@pytest.mark.asyncio
async def test_crawl_all_runs_every_stage(crawl_mocks, session, writer, fast_settings) -> None:
    summary = CrawlSummary()
    crawler = LeagueCrawler(session, writer, CrawlCommand.ALL, summary, settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    assert crawl_mocks.team_stats.await_count == 2
    assert crawl_mocks.team_players.await_count == 2
    # Rice appears in both squads and is collected once per stage
    assert crawl_mocks.profiles.await_count == 2
    assert crawl_mocks.player_stats.await_count == 2
    assert summary.teams == 2
    assert summary.stages["player_profiles"].skipped == 1
    assert set(summary.stages) == {"team_stats", "team_players", "player_profiles", "player_stats"}


@pytest.mark.asyncio
async def test_crawl_team_stats_only(crawl_mocks, session, writer, fast_settings) -> None:
    crawler = LeagueCrawler(session, writer, CrawlCommand.TEAM_STATS, CrawlSummary(), settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    assert crawl_mocks.team_stats.await_count == 2
    crawl_mocks.team_players.assert_not_awaited()
    crawl_mocks.profiles.assert_not_awaited()


@pytest.mark.asyncio
async def test_crawl_player_stats_harvests_squads_first(crawl_mocks, session, writer, fast_settings) -> None:
    crawler = LeagueCrawler(session, writer, CrawlCommand.PLAYER_STATS, CrawlSummary(), settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    crawl_mocks.team_stats.assert_not_awaited()
    assert crawl_mocks.team_players.await_count == 2
    crawl_mocks.profiles.assert_not_awaited()
    assert crawl_mocks.player_stats.await_count == 2


@pytest.mark.asyncio
async def test_crawl_single_team(crawl_mocks, session, writer, fast_settings) -> None:
    summary = CrawlSummary()
    crawler = LeagueCrawler(session, writer, CrawlCommand.TEAM_STATS, summary, team_id=38, settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    assert crawl_mocks.team_stats.await_count == 1
    assert crawl_mocks.team_stats.await_args.args[2] is CHELSEA
    assert summary.teams == 1


@pytest.mark.asyncio
async def test_crawl_team_outside_league_does_nothing(crawl_mocks, session, writer, fast_settings) -> None:
    crawler = LeagueCrawler(session, writer, CrawlCommand.ALL, CrawlSummary(), team_id=1, settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    crawl_mocks.team_stats.assert_not_awaited()
    crawl_mocks.team_players.assert_not_awaited()


@pytest.mark.asyncio
async def test_crawl_failed_team_does_not_stop_others(crawl_mocks, session, writer, fast_settings) -> None:
    crawl_mocks.team_stats.side_effect = [RuntimeError("tab missing"), True]
    summary = CrawlSummary()
    crawler = LeagueCrawler(session, writer, CrawlCommand.TEAM_STATS, summary, settings=fast_settings)

    await crawler.crawl(PREMIER_LEAGUE)

    assert summary.stages["team_stats"].failed == 1
    assert summary.stages["team_stats"].succeeded == 1


@pytest.mark.asyncio
async def test_crawl_propagates_scope_failure(crawl_mocks, session, writer, fast_settings) -> None:
    crawl_mocks.discover.side_effect = ScopeFailure("Premier League", "could not discover season")
    crawler = LeagueCrawler(session, writer, CrawlCommand.ALL, CrawlSummary(), settings=fast_settings)

    with pytest.raises(ScopeFailure):
        await crawler.crawl(PREMIER_LEAGUE)


# ── Merge ───────────────────────────────────────────────────────────────

SOURCE_ROWS = [
    {"team_id": 1, "team_name": "Arsenal FC", "league_name": "Premier League"},
    {"team_id": 2, "team_name": "Chelsea", "league_name": "Premier League"},
    {"team_id": 3, "team_name": "Gotham City", "league_name": "Premier League"},
]


def test_match_rows_splits_matched_and_unmatched() -> None:
    matched, unmatched = match_rows(SOURCE_ROWS, build_catalog([ARSENAL, CHELSEA]))

    assert [(m.row["team_id"], m.team.id) for m in matched] == [(1, 42), (2, 38)]
    assert unmatched == [SOURCE_ROWS[2]]
    assert matched[0].key == (1, "Premier League")


@pytest.mark.asyncio
async def test_merge_league_skips_unmatched_and_already_merged(session, writer, fast_settings) -> None:
    source = MagicMock()
    source.for_league = AsyncMock(return_value=SOURCE_ROWS)
    writer.merged_team_ids = AsyncMock(return_value={2})
    session.fetch_json.return_value = {"statistics": {"goalsScored": 68}}
    merger = TeamStatsMerger(session, writer, source, fast_settings.model_copy(update={"merge_team_delay_s": 0}))

    with patch(
        "crawler.merge_team_stats.discover_season_and_teams",
        new=AsyncMock(return_value=(SEASON, [ARSENAL, CHELSEA])),
    ):
        stats = await merger.merge_league("Premier League")

    assert stats.succeeded == 1
    assert stats.skipped == 2
    kwargs = writer.upsert_merged_team_statistics.await_args.kwargs
    assert kwargs["team_id"] == 1
    assert kwargs["season_id"] == SEASON.season_id
    assert kwargs["sofascore_data"] == {"statistics": {"goalsScored": 68}}
    assert session.fetch_json.await_args.args[0].endswith(
        "/team/42/unique-tournament/17/season/61627/statistics/overall"
    )


@pytest.mark.asyncio
async def test_merge_league_unknown_league(session, writer, fast_settings) -> None:
    merger = TeamStatsMerger(session, writer, MagicMock(), fast_settings)

    with pytest.raises(ScopeFailure, match="unknown league"):
        await merger.merge_league("Eredivisie")


@pytest.mark.asyncio
async def test_merge_one_without_payload_fails_after_retries(session, writer, fast_settings) -> None:
    session.fetch_json.return_value = None
    merger = TeamStatsMerger(session, writer, MagicMock(), fast_settings)
    item = MatchedRow(row=SOURCE_ROWS[0], team=build_catalog([ARSENAL])["Arsenal"])

    with pytest.raises(TransientFetchError, match="Arsenal FC"):
        await merger.merge_one(item, PREMIER_LEAGUE, SEASON)

    assert session.fetch_json.await_count == fast_settings.max_retries + 1
    writer.upsert_merged_team_statistics.assert_not_awaited()


@pytest.mark.asyncio
async def test_merge_team_requires_source_rows(session, writer, fast_settings) -> None:
    source = MagicMock()
    source.for_team = AsyncMock(return_value=[])
    merger = TeamStatsMerger(session, writer, source, fast_settings)

    with pytest.raises(ScopeFailure, match="not in team_statistics"):
        await merger.merge_team("Gotham City")
