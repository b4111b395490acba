"""
Pydantic v2 domain models shared across sofacrawl.
These are the canonical internal representations, NOT ORM models.

Upstream payloads are opaque JSON; the ``*Statistics`` and profile models
project them into typed records where every field may be absent.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PayloadModel(BaseModel):
    """Projection of an upstream JSON object. Unknown keys are ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["PayloadModel"]:
        if not isinstance(payload, dict):
            return None
        return cls.model_validate(payload)

    def columns(self) -> dict[str, Any]:
        """Field values keyed by column name."""
        return self.model_dump(by_alias=False)


# ── Reference entities ──────────────────────────────────────────────────
class LeagueConfig(DomainModel):
    model_config = ConfigDict(frozen=True)

    name: str
    slug: str
    unique_tournament_id: int


class SeasonInfo(DomainModel):
    model_config = ConfigDict(frozen=True)

    season_id: int
    season_name: str


class TeamInfo(DomainModel):
    model_config = ConfigDict(frozen=True)

    team_id: int
    slug: str
    name: str


class CatalogEntry(DomainModel):
    """Canonical entity from the second-source catalog; immutable."""
    model_config = ConfigDict(frozen=True)

    id: int
    slug: str
    name: str


class PlayerBasicInfo(DomainModel):
    model_config = ConfigDict(frozen=True)

    player_id: int
    slug: str
    name: str


# ── Team statistics ─────────────────────────────────────────────────────
class TeamSeasonStatistics(PayloadModel):
    """``statistics`` object of the team season statistics endpoint."""
    goals_scored: Optional[int] = Field(default=None, alias="goalsScored")
    goals_conceded: Optional[int] = Field(default=None, alias="goalsConceded")
    shots_total: Optional[int] = Field(default=None, alias="shots")
    shots_on_target: Optional[int] = Field(default=None, alias="shotsOnTarget")
    shots_off_target: Optional[int] = Field(default=None, alias="shotsOffTarget")
    blocked_shots: Optional[int] = Field(default=None, alias="blockedScoringAttempt")
    corner_kicks: Optional[int] = Field(default=None, alias="corners")
    offsides: Optional[int] = None
    total_passes: Optional[int] = Field(default=None, alias="totalPasses")
    accurate_passes_pct: Optional[float] = Field(default=None, alias="accuratePassesPercentage")
    possession_pct: Optional[float] = Field(default=None, alias="averageBallPossession")
    tackles: Optional[int] = None
    interceptions: Optional[int] = None
    clearances: Optional[int] = None
    yellow_cards: Optional[int] = Field(default=None, alias="yellowCards")
    red_cards: Optional[int] = Field(default=None, alias="redCards")
    fouls: Optional[int] = None
    matches_played: Optional[int] = Field(default=None, alias="matches")
    wins: Optional[int] = None
    draws: Optional[int] = None
    losses: Optional[int] = None


# ── Player season statistics ────────────────────────────────────────────
class PlayerSeasonStatistics(PayloadModel):
    """``statistics`` object of the player tournament season endpoint."""
    # Matches
    appearances: Optional[int] = None
    matches_started: Optional[int] = Field(default=None, alias="matchesStarted")
    minutes_played: Optional[int] = Field(default=None, alias="minutesPlayed")
    totw_appearances: Optional[int] = Field(default=None, alias="totwAppearances")
    # Attacking
    goals: Optional[int] = None
    expected_goals: Optional[float] = Field(default=None, alias="expectedGoals")
    scoring_frequency: Optional[float] = Field(default=None, alias="scoringFrequency")
    total_shots: Optional[int] = Field(default=None, alias="totalShots")
    shots_on_target: Optional[int] = Field(default=None, alias="shotsOnTarget")
    shots_off_target: Optional[int] = Field(default=None, alias="shotsOffTarget")
    big_chances_missed: Optional[int] = Field(default=None, alias="bigChancesMissed")
    goal_conversion_pct: Optional[float] = Field(default=None, alias="goalConversionPercentage")
    free_kick_goals: Optional[int] = Field(default=None, alias="freeKickGoal")
    goals_from_inside_box: Optional[int] = Field(default=None, alias="goalsFromInsideTheBox")
    goals_from_outside_box: Optional[int] = Field(default=None, alias="goalsFromOutsideTheBox")
    headed_goals: Optional[int] = Field(default=None, alias="headedGoals")
    left_foot_goals: Optional[int] = Field(default=None, alias="leftFootGoals")
    right_foot_goals: Optional[int] = Field(default=None, alias="rightFootGoals")
    penalty_goals: Optional[int] = Field(default=None, alias="penaltyGoals")
    penalty_won: Optional[int] = Field(default=None, alias="penaltyWon")
    hit_woodwork: Optional[int] = Field(default=None, alias="hitWoodwork")
    # Passing
    assists: Optional[int] = None
    expected_assists: Optional[float] = Field(default=None, alias="expectedAssists")
    touches: Optional[int] = None
    big_chances_created: Optional[int] = Field(default=None, alias="bigChancesCreated")
    key_passes: Optional[int] = Field(default=None, alias="keyPasses")
    accurate_passes: Optional[int] = Field(default=None, alias="accuratePasses")
    accurate_passes_pct: Optional[float] = Field(default=None, alias="accuratePassesPercentage")
    total_passes: Optional[int] = Field(default=None, alias="totalPasses")
    accurate_long_balls: Optional[int] = Field(default=None, alias="accurateLongBalls")
    accurate_long_balls_pct: Optional[float] = Field(default=None, alias="accurateLongBallsPercentage")
    accurate_crosses: Optional[int] = Field(default=None, alias="accurateCrosses")
    accurate_crosses_pct: Optional[float] = Field(default=None, alias="accurateCrossesPercentage")
    # Defending
    interceptions: Optional[int] = None
    tackles: Optional[int] = None
    tackles_won_pct: Optional[float] = Field(default=None, alias="tacklesWonPercentage")
    ball_recovery: Optional[int] = Field(default=None, alias="ballRecovery")
    dribbled_past: Optional[int] = Field(default=None, alias="dribbledPast")
    clearances: Optional[int] = None
    blocked_shots: Optional[int] = Field(default=None, alias="blockedShots")
    error_lead_to_goal: Optional[int] = Field(default=None, alias="errorLeadToGoal")
    penalty_committed: Optional[int] = Field(default=None, alias="penaltyConceded")
    # Other
    successful_dribbles: Optional[int] = Field(default=None, alias="successfulDribbles")
    successful_dribbles_pct: Optional[float] = Field(default=None, alias="successfulDribblesPercentage")
    total_duels_won: Optional[int] = Field(default=None, alias="totalDuelsWon")
    total_duels_won_pct: Optional[float] = Field(default=None, alias="totalDuelsWonPercentage")
    aerial_duels_won: Optional[int] = Field(default=None, alias="aerialDuelsWon")
    possession_lost: Optional[int] = Field(default=None, alias="possessionLost")
    fouls: Optional[int] = None
    was_fouled: Optional[int] = Field(default=None, alias="wasFouled")
    offsides: Optional[int] = None
    # Cards
    yellow_cards: Optional[int] = Field(default=None, alias="yellowCards")
    yellow_red_cards: Optional[int] = Field(default=None, alias="yellowRedCards")
    red_cards: Optional[int] = Field(default=None, alias="redCards")
    direct_red_cards: Optional[int] = Field(default=None, alias="directRedCards")
    # Rating
    rating: Optional[float] = None


# ── Player profile ──────────────────────────────────────────────────────
class AttributeOverview(PayloadModel):
    year_shift: Optional[int] = Field(default=None, alias="yearShift")
    attacking: Optional[float] = None
    technical: Optional[float] = None
    tactical: Optional[float] = None
    defending: Optional[float] = None
    creativity: Optional[float] = None


class NationalTeamSummary(DomainModel):
    team: Optional[str] = None
    team_id: Optional[int] = None
    appearances: Optional[int] = None
    goals: Optional[int] = None
    debut_timestamp: Optional[int] = None


class TransferRecord(DomainModel):
    from_team: Optional[str] = None
    from_team_id: Optional[int] = None
    to_team: Optional[str] = None
    to_team_id: Optional[int] = None
    fee: Optional[float] = None
    fee_description: Optional[str] = None
    fee_currency: Optional[str] = None
    type: Optional[int] = None
    date_timestamp: Optional[int] = None


class PlayerProfile(DomainModel):
    """Merged profile built from SSR page data and captured API payloads."""
    player_id: int
    player_name: str
    primary_position: Optional[str] = None
    positions: list[str] = Field(default_factory=list)
    height: Optional[int] = None
    preferred_foot: Optional[str] = None
    country_name: Optional[str] = None
    current_team_id: Optional[int] = None
    current_team_name: Optional[str] = None
    market_value: Optional[float] = None
    market_value_currency: Optional[str] = None
    attacking_rating: Optional[float] = None
    creative_rating: Optional[float] = None
    defensive_rating: Optional[float] = None
    technical_rating: Optional[float] = None
    tactical_rating: Optional[float] = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    national_team_stats: Optional[NationalTeamSummary] = None
    transfer_history: list[TransferRecord] = Field(default_factory=list)
    attributes_raw: Optional[dict[str, Any]] = None
    raw_profile: Optional[dict[str, Any]] = None
