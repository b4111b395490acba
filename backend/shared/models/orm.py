"""
SQLAlchemy 2.0 ORM models for sofacrawl.
Maps to the PostgreSQL schema defined in migrations/*.sql.
Each table carries the unique constraint its upsert conflicts on.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    ARRAY,
    BigInteger,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TeamStatisticsORM(Base):
    __tablename__ = "sofascore_team_statistics"
    __table_args__ = (
        UniqueConstraint("team_id", "tournament_id", "season_id", name="uq_team_statistics"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tournament_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tournament_name: Mapped[str] = mapped_column(String(200), nullable=False)
    season_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season_name: Mapped[str] = mapped_column(String(100), nullable=False)
    goals_scored: Mapped[Optional[int]] = mapped_column(Integer)
    goals_conceded: Mapped[Optional[int]] = mapped_column(Integer)
    shots_total: Mapped[Optional[int]] = mapped_column(Integer)
    shots_on_target: Mapped[Optional[int]] = mapped_column(Integer)
    shots_off_target: Mapped[Optional[int]] = mapped_column(Integer)
    blocked_shots: Mapped[Optional[int]] = mapped_column(Integer)
    corner_kicks: Mapped[Optional[int]] = mapped_column(Integer)
    offsides: Mapped[Optional[int]] = mapped_column(Integer)
    total_passes: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_passes_pct: Mapped[Optional[float]] = mapped_column(Float)
    possession_pct: Mapped[Optional[float]] = mapped_column(Float)
    tackles: Mapped[Optional[int]] = mapped_column(Integer)
    interceptions: Mapped[Optional[int]] = mapped_column(Integer)
    clearances: Mapped[Optional[int]] = mapped_column(Integer)
    yellow_cards: Mapped[Optional[int]] = mapped_column(Integer)
    red_cards: Mapped[Optional[int]] = mapped_column(Integer)
    fouls: Mapped[Optional[int]] = mapped_column(Integer)
    matches_played: Mapped[Optional[int]] = mapped_column(Integer)
    wins: Mapped[Optional[int]] = mapped_column(Integer)
    draws: Mapped[Optional[int]] = mapped_column(Integer)
    losses: Mapped[Optional[int]] = mapped_column(Integer)
    raw_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TeamPlayerORM(Base):
    __tablename__ = "sofascore_team_players"
    __table_args__ = (
        UniqueConstraint("player_id", "team_id", name="uq_team_player"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_name: Mapped[str] = mapped_column(String(200), nullable=False)
    player_slug: Mapped[Optional[str]] = mapped_column(String(200))
    raw_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PlayerProfileORM(Base):
    __tablename__ = "sofascore_player_profiles"

    player_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    player_name: Mapped[str] = mapped_column(String(200), nullable=False)
    primary_position: Mapped[Optional[str]] = mapped_column(String(20))
    positions: Mapped[list] = mapped_column(ARRAY(String(10)), nullable=False, default=list)
    height: Mapped[Optional[int]] = mapped_column(Integer)
    preferred_foot: Mapped[Optional[str]] = mapped_column(String(20))
    country_name: Mapped[Optional[str]] = mapped_column(String(100))
    current_team_id: Mapped[Optional[int]] = mapped_column(Integer)
    current_team_name: Mapped[Optional[str]] = mapped_column(String(200))
    market_value: Mapped[Optional[float]] = mapped_column(Float)
    market_value_currency: Mapped[Optional[str]] = mapped_column(String(10))
    attacking_rating: Mapped[Optional[float]] = mapped_column(Float)
    creative_rating: Mapped[Optional[float]] = mapped_column(Float)
    defensive_rating: Mapped[Optional[float]] = mapped_column(Float)
    technical_rating: Mapped[Optional[float]] = mapped_column(Float)
    tactical_rating: Mapped[Optional[float]] = mapped_column(Float)
    strengths: Mapped[list] = mapped_column(ARRAY(Text), nullable=False, default=list)
    weaknesses: Mapped[list] = mapped_column(ARRAY(Text), nullable=False, default=list)
    national_team_stats: Mapped[Optional[dict]] = mapped_column(JSONB)
    transfer_history: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    attributes_raw: Mapped[Optional[dict]] = mapped_column(JSONB)
    raw_profile: Mapped[Optional[dict]] = mapped_column(JSONB)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PlayerSeasonStatsORM(Base):
    __tablename__ = "sofascore_player_season_stats"
    __table_args__ = (
        UniqueConstraint("player_id", "tournament_id", "season_id", name="uq_player_season_stats"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tournament_id: Mapped[int] = mapped_column(Integer, nullable=False)
    tournament_name: Mapped[str] = mapped_column(String(200), nullable=False)
    season_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season_name: Mapped[str] = mapped_column(String(100), nullable=False)
    appearances: Mapped[Optional[int]] = mapped_column(Integer)
    matches_started: Mapped[Optional[int]] = mapped_column(Integer)
    minutes_played: Mapped[Optional[int]] = mapped_column(Integer)
    totw_appearances: Mapped[Optional[int]] = mapped_column(Integer)
    goals: Mapped[Optional[int]] = mapped_column(Integer)
    expected_goals: Mapped[Optional[float]] = mapped_column(Float)
    scoring_frequency: Mapped[Optional[float]] = mapped_column(Float)
    total_shots: Mapped[Optional[int]] = mapped_column(Integer)
    shots_on_target: Mapped[Optional[int]] = mapped_column(Integer)
    shots_off_target: Mapped[Optional[int]] = mapped_column(Integer)
    big_chances_missed: Mapped[Optional[int]] = mapped_column(Integer)
    goal_conversion_pct: Mapped[Optional[float]] = mapped_column(Float)
    free_kick_goals: Mapped[Optional[int]] = mapped_column(Integer)
    goals_from_inside_box: Mapped[Optional[int]] = mapped_column(Integer)
    goals_from_outside_box: Mapped[Optional[int]] = mapped_column(Integer)
    headed_goals: Mapped[Optional[int]] = mapped_column(Integer)
    left_foot_goals: Mapped[Optional[int]] = mapped_column(Integer)
    right_foot_goals: Mapped[Optional[int]] = mapped_column(Integer)
    penalty_goals: Mapped[Optional[int]] = mapped_column(Integer)
    penalty_won: Mapped[Optional[int]] = mapped_column(Integer)
    hit_woodwork: Mapped[Optional[int]] = mapped_column(Integer)
    assists: Mapped[Optional[int]] = mapped_column(Integer)
    expected_assists: Mapped[Optional[float]] = mapped_column(Float)
    touches: Mapped[Optional[int]] = mapped_column(Integer)
    big_chances_created: Mapped[Optional[int]] = mapped_column(Integer)
    key_passes: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_passes: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_passes_pct: Mapped[Optional[float]] = mapped_column(Float)
    total_passes: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_long_balls: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_long_balls_pct: Mapped[Optional[float]] = mapped_column(Float)
    accurate_crosses: Mapped[Optional[int]] = mapped_column(Integer)
    accurate_crosses_pct: Mapped[Optional[float]] = mapped_column(Float)
    interceptions: Mapped[Optional[int]] = mapped_column(Integer)
    tackles: Mapped[Optional[int]] = mapped_column(Integer)
    tackles_won_pct: Mapped[Optional[float]] = mapped_column(Float)
    ball_recovery: Mapped[Optional[int]] = mapped_column(Integer)
    dribbled_past: Mapped[Optional[int]] = mapped_column(Integer)
    clearances: Mapped[Optional[int]] = mapped_column(Integer)
    blocked_shots: Mapped[Optional[int]] = mapped_column(Integer)
    error_lead_to_goal: Mapped[Optional[int]] = mapped_column(Integer)
    penalty_committed: Mapped[Optional[int]] = mapped_column(Integer)
    successful_dribbles: Mapped[Optional[int]] = mapped_column(Integer)
    successful_dribbles_pct: Mapped[Optional[float]] = mapped_column(Float)
    total_duels_won: Mapped[Optional[int]] = mapped_column(Integer)
    total_duels_won_pct: Mapped[Optional[float]] = mapped_column(Float)
    aerial_duels_won: Mapped[Optional[int]] = mapped_column(Integer)
    possession_lost: Mapped[Optional[int]] = mapped_column(Integer)
    fouls: Mapped[Optional[int]] = mapped_column(Integer)
    was_fouled: Mapped[Optional[int]] = mapped_column(Integer)
    offsides: Mapped[Optional[int]] = mapped_column(Integer)
    yellow_cards: Mapped[Optional[int]] = mapped_column(Integer)
    yellow_red_cards: Mapped[Optional[int]] = mapped_column(Integer)
    red_cards: Mapped[Optional[int]] = mapped_column(Integer)
    direct_red_cards: Mapped[Optional[int]] = mapped_column(Integer)
    rating: Mapped[Optional[float]] = mapped_column(Float)
    raw_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MergedTeamStatisticsORM(Base):
    """Source-side team_statistics rows merged with the SofaScore season payload."""
    __tablename__ = "oddsflow_team_statistics"
    __table_args__ = (
        UniqueConstraint("team_id", "league_name", name="uq_merged_team_statistics"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    league_name: Mapped[str] = mapped_column(String(200), nullable=False)
    season: Mapped[Optional[int]] = mapped_column(Integer)
    supabase_original_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    sofascore_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    data_collection_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MergedPlayerStatisticsORM(Base):
    """Source-side player_stats rows merged with the player's SofaScore data."""
    __tablename__ = "oddsflow_player_statistics"
    __table_args__ = (
        UniqueConstraint("player_id", name="uq_merged_player_statistics"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_name: Mapped[str] = mapped_column(String(200), nullable=False)
    team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    supabase_original_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    sofascore_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    data_collection_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


def column_names(model: type[Base]) -> set[str]:
    return {c.name for c in model.__table__.columns}


def row_to_dict(row: Any) -> dict[str, Any]:
    """Plain dict of a mapped row, JSON-friendly for raw-data columns."""
    out: dict[str, Any] = {}
    for key, value in dict(row).items():
        if isinstance(value, (datetime, date)):
            out[key] = value.isoformat()
        elif isinstance(value, Decimal):
            out[key] = float(value)
        else:
            out[key] = value
    return out
