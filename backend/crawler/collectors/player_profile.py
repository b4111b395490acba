"""
Player profile collection.

A profile merges three sources from one page load:
  - ``__NEXT_DATA__`` (server-rendered player and transfer history)
  - captured APIs: attribute-overviews, characteristics, national-team-statistics
  - rendered page text, for strengths and weaknesses (the characteristics API
    only carries type codes)

The API capture tolerates partial or empty results; a profile is written with
whatever arrived.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from playwright.async_api import Error as PlaywrightError

from shared.config import Settings, get_settings
from shared.models.domain import (
    AttributeOverview,
    NationalTeamSummary,
    PlayerBasicInfo,
    PlayerProfile,
    TransferRecord,
)
from shared.utils.logging import get_logger

from capture.session import BrowserSession
from crawler.retry import run_with_retry
from crawler.urls import player_page_url
from crawler.writer import RowWriter

logger = get_logger(__name__)

STRENGTHS_HEADER = "Strengths"
WEAKNESSES_HEADER = "Weaknesses"
SECTION_BOUNDARIES = frozenset({
    "Player positions",
    "Player value",
    "Attribute Overview",
    "Transfer history",
    "National team",
})
POSITION_CODES = frozenset({
    "GK", "CB", "LB", "RB", "LWB", "RWB",
    "DM", "MC", "ML", "MR", "AM",
    "LW", "RW", "CF", "ST", "F", "M", "D",
})
EMPTY_TRAITS = frozenset({"No outstanding strengths", "No outstanding weaknesses"})
MIN_TRAIT_LENGTH = 4


def profile_patterns(player_id: int) -> list[str]:
    return [
        f"player/{player_id}/attribute-overviews",
        f"player/{player_id}/characteristics",
        f"player/{player_id}/national-team-statistics",
    ]


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_strengths_weaknesses(lines: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Read the Strengths and Weaknesses sections out of rendered page lines.

    A section runs from its header to the next header or a known boundary
    line (another section title, a position code, the compare search box).
    """
    strengths: list[str] = []
    weaknesses: list[str] = []
    section: Optional[list[str]] = None

    for line in lines:
        if line == STRENGTHS_HEADER:
            section = strengths
            continue
        if line == WEAKNESSES_HEADER:
            section = weaknesses
            continue
        if section is None:
            continue
        if line in SECTION_BOUNDARIES or line in POSITION_CODES or line.startswith("Search to compare"):
            section = None
            continue
        if len(line) >= MIN_TRAIT_LENGTH and line not in EMPTY_TRAITS:
            section.append(line)

    return strengths, weaknesses


def current_attributes(payload: Any) -> Optional[AttributeOverview]:
    """The current-year overview (``yearShift == 0``), else the first listed."""
    overviews = _dig(payload, "playerAttributeOverviews")
    if not isinstance(overviews, list) or not overviews:
        return None
    current = next(
        (o for o in overviews if isinstance(o, dict) and o.get("yearShift") == 0),
        overviews[0],
    )
    return AttributeOverview.from_payload(current)


def national_team_summary(payload: Any) -> Optional[NationalTeamSummary]:
    statistics = _dig(payload, "statistics")
    if not isinstance(statistics, list) or not statistics or not isinstance(statistics[0], dict):
        return None
    first = statistics[0]
    return NationalTeamSummary(
        team=_dig(first, "team", "name"),
        team_id=_dig(first, "team", "id"),
        appearances=first.get("appearances"),
        goals=first.get("goals"),
        debut_timestamp=first.get("debutTimestamp"),
    )


def transfer_records(transfers: Any) -> list[TransferRecord]:
    if not isinstance(transfers, list):
        return []
    records: list[TransferRecord] = []
    for t in transfers:
        if not isinstance(t, dict):
            continue
        records.append(TransferRecord(
            from_team=_dig(t, "transferFrom", "name") or t.get("fromTeamName"),
            from_team_id=_dig(t, "transferFrom", "id"),
            to_team=_dig(t, "transferTo", "name") or t.get("toTeamName"),
            to_team_id=_dig(t, "transferTo", "id"),
            fee=t.get("transferFee"),
            fee_description=t.get("transferFeeDescription"),
            fee_currency=_dig(t, "transferFeeRaw", "currency"),
            type=t.get("type"),
            date_timestamp=t.get("transferDateTimestamp"),
        ))
    return records


def build_profile(
    player: PlayerBasicInfo,
    next_data: Any,
    captured: dict[str, Any],
    page_lines: Iterable[str],
) -> PlayerProfile:
    """Merge SSR data, captured API payloads and page text into one profile."""
    attributes_pattern, characteristics_pattern, national_pattern = profile_patterns(player.player_id)
    initial = _dig(next_data, "props", "pageProps", "initialProps")
    if not isinstance(initial, dict):
        initial = {}
    p = initial.get("player") if isinstance(initial.get("player"), dict) else {}

    attributes_raw = captured.get(attributes_pattern)
    characteristics = captured.get(characteristics_pattern)
    attributes = current_attributes(attributes_raw)
    strengths, weaknesses = parse_strengths_weaknesses(page_lines)
    positions = _dig(characteristics, "positions")

    return PlayerProfile(
        player_id=player.player_id,
        player_name=p.get("name") or player.name,
        primary_position=p.get("position"),
        positions=positions if isinstance(positions, list) else [],
        height=p.get("height"),
        preferred_foot=p.get("preferredFoot"),
        country_name=_dig(p, "country", "name"),
        current_team_id=_dig(p, "team", "id"),
        current_team_name=_dig(p, "team", "name"),
        market_value=p.get("proposedMarketValue"),
        market_value_currency=_dig(p, "proposedMarketValueRaw", "currency"),
        attacking_rating=attributes.attacking if attributes else None,
        creative_rating=attributes.creativity if attributes else None,
        defensive_rating=attributes.defending if attributes else None,
        technical_rating=attributes.technical if attributes else None,
        tactical_rating=attributes.tactical if attributes else None,
        strengths=strengths,
        weaknesses=weaknesses,
        national_team_stats=national_team_summary(captured.get(national_pattern)),
        transfer_history=transfer_records(initial.get("transfers")),
        attributes_raw=attributes_raw if isinstance(attributes_raw, dict) else None,
        raw_profile={"player": p, "characteristics": characteristics},
    )


@dataclass(frozen=True)
class PlayerPage:
    """Everything one load of a player page yields."""
    next_data: Any
    captured: dict[str, Any]
    lines: list[str]


async def read_player_page(
    session: BrowserSession,
    player: PlayerBasicInfo,
    settings: Settings,
) -> PlayerPage:
    """Load the player page while capturing its profile APIs (partial accepted)."""
    patterns = profile_patterns(player.player_id)
    async with session.correlator.capture(patterns, settings.profile_capture_timeout_s) as pending:
        await session.goto(player_page_url(player), wait_until="load")
        await session.pause(settings.page_delay_s)
        next_data = await session.extract_next_data()
        try:
            lines = await session.page_text_lines()
        except PlaywrightError as exc:
            logger.debug("page_text_unavailable", player=player.name, error=str(exc))
            lines = []
        result = await pending.wait()

    if result.remaining:
        logger.debug(
            "profile_capture_incomplete",
            player=player.name,
            captured=len(result.payloads),
            requested=len(patterns),
        )
    return PlayerPage(next_data=next_data, captured=result.payloads, lines=lines)


async def collect_player_profile(
    session: BrowserSession,
    writer: RowWriter,
    player: PlayerBasicInfo,
    settings: Settings | None = None,
) -> bool:
    settings = settings or get_settings()

    async def attempt() -> bool:
        page = await read_player_page(session, player, settings)
        profile = build_profile(player, page.next_data, page.captured, page.lines)
        await writer.upsert_player_profile(profile)
        return True

    return await run_with_retry(
        attempt,
        f"Player profile: {player.name}",
        settings.max_retries,
        settings.retry_delay_s,
    )
