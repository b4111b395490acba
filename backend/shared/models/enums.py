"""Domain enumerations for sofacrawl."""
from __future__ import annotations

from enum import Enum


class CrawlCommand(str, Enum):
    ALL = "all"
    TEAM_STATS = "team-stats"
    TEAM_PLAYERS = "team-players"
    PLAYER_PROFILES = "player-profiles"
    PLAYER_STATS = "player-stats"

    @property
    def needs_players(self) -> bool:
        return self in (
            CrawlCommand.ALL,
            CrawlCommand.TEAM_PLAYERS,
            CrawlCommand.PLAYER_PROFILES,
            CrawlCommand.PLAYER_STATS,
        )

    def includes(self, stage: "CrawlCommand") -> bool:
        return self == CrawlCommand.ALL or self == stage


class CaptureOutcome(str, Enum):
    MATCHED = "matched"
    PARTIAL = "partial"
    TIMEOUT = "timeout"


class MatchStrategy(str, Enum):
    """Fuzzy matcher strategies, in cascade order."""
    EXACT = "exact"
    NORMALIZED = "normalized"
    CONTAINMENT = "containment"
    ALIAS = "alias"
    TOKEN_OVERLAP = "token_overlap"
