"""
Record shapes produced by the MLL source.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class MLLTeam(BaseModel):
    id: str
    name: str
    city: Optional[str] = None
    abbreviation: str
    founded_year: Optional[int] = None
    final_year: Optional[int] = None


class MLLPlayerStats(BaseModel):
    games_played: int = 0
    goals: int = 0
    assists: int = 0
    points: int = 0
    shots: Optional[int] = None
    shot_pct: Optional[float] = None
    ground_balls: Optional[int] = None
    faceoffs_won: Optional[int] = None
    faceoffs_lost: Optional[int] = None
    faceoff_pct: Optional[float] = None


class MLLPlayer(BaseModel):
    id: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    team_id: str
    team_name: str
    stats: MLLPlayerStats


class MLLGoalieStats(BaseModel):
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    goals_against: int = 0
    saves: int = 0
    gaa: Optional[float] = None
    save_pct: Optional[float] = None


class MLLGoalie(BaseModel):
    id: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    team_id: str
    team_name: str
    stats: MLLGoalieStats


class MLLStanding(BaseModel):
    team_id: str
    team_name: str
    position: int
    wins: int
    losses: int
    games_played: int
    goals_for: int
    goals_against: int
    goal_diff: int
    win_pct: float


class MLLStatLeader(BaseModel):
    """One ranked row of a league leaders table (points, goals or assists)."""
    player_id: str
    player_name: str
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    stat_type: str
    stat_value: float
    rank: int


class MLLGame(BaseModel):
    id: str
    date: Optional[str] = None
    status: Optional[str] = None
    home_team_id: str
    away_team_id: str
    home_team_name: str
    away_team_name: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    venue: Optional[str] = None
    source_url: str


class WaybackSnapshot(BaseModel):
    """One CDX capture row."""
    urlkey: str = ""
    timestamp: str = ""
    original: str = ""
    mimetype: str = ""
    statuscode: str = ""
    digest: str = ""
    length: str = ""
