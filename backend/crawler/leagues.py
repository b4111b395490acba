"""Supported competitions and their SofaScore identifiers."""
from __future__ import annotations

from typing import Optional

from shared.models.domain import LeagueConfig

LEAGUES: tuple[LeagueConfig, ...] = (
    LeagueConfig(name="Premier League", slug="premier-league", unique_tournament_id=17),
    LeagueConfig(name="La Liga", slug="laliga", unique_tournament_id=8),
    LeagueConfig(name="Bundesliga", slug="bundesliga", unique_tournament_id=35),
    LeagueConfig(name="Serie A", slug="serie-a", unique_tournament_id=23),
    LeagueConfig(name="Ligue 1", slug="ligue-1", unique_tournament_id=34),
    LeagueConfig(name="Champions League", slug="uefa-champions-league", unique_tournament_id=7),
)

# Source-side tables name the competition differently
SOURCE_LEAGUE_NAMES: dict[str, str] = {
    "UEFA Champions League": "Champions League",
}


def find_league(name_or_slug: str) -> Optional[LeagueConfig]:
    """Look a league up by display name (case-insensitive) or slug."""
    query = name_or_slug.strip().lower()
    query = SOURCE_LEAGUE_NAMES.get(name_or_slug.strip(), query).lower()
    for league in LEAGUES:
        if league.name.lower() == query or league.slug == query:
            return league
    return None


def league_names() -> list[str]:
    return [league.name for league in LEAGUES]
