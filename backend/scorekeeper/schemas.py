from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

from .scoring.events import PointLossReason
from .scoring.state import MatchState, Ruleset, Team

SideLiteral = Literal["A", "B"]
TEAM_SIZES = {"singles": 1, "doubles": 2}


class PlayerIn(BaseModel):
    displayName: str = Field(..., min_length=1, max_length=100)
    playerId: Optional[str] = Field(default=None, max_length=64)

    model_config = ConfigDict(extra="forbid")

    @field_validator("displayName", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class TeamIn(BaseModel):
    players: List[PlayerIn]


class MatchCreate(BaseModel):
    """Schema for starting a new match."""

    ruleset: Ruleset = Field(default_factory=Ruleset)
    teams: Dict[SideLiteral, TeamIn]
    initialServer: SideLiteral = "A"

    @model_validator(mode="after")
    def _validate_teams(self):
        if set(self.teams) != {"A", "B"}:
            raise ValueError("teams must contain exactly the sides A and B")
        expected = TEAM_SIZES[self.ruleset.match_type]
        for side, team in self.teams.items():
            if len(team.players) != expected:
                raise ValueError(
                    f"team {side} must have {expected} player(s) for "
                    f"{self.ruleset.match_type}"
                )
        return self


class MatchIdOut(BaseModel):
    id: str


class PointIn(BaseModel):
    team: SideLiteral


class AnnotationIn(BaseModel):
    reason: PointLossReason


class ScoreEventOut(BaseModel):
    """Represents an individual event within a match log."""

    eventId: str
    matchId: str
    seq: int
    type: str
    payload: Dict[str, Any]
    createdAt: datetime


class MatchOut(BaseModel):
    """Detailed match information returned by the API."""

    id: str
    ruleset: Ruleset
    teams: Dict[SideLiteral, Team]
    status: str
    createdAt: datetime
    updatedAt: datetime
    state: MatchState
    summary: Dict[str, Any]
    canUndo: bool
    annotationTarget: Optional[str] = None
    events: List[ScoreEventOut] = Field(default_factory=list)


class ScoringResultOut(BaseModel):
    """Outcome of a point, undo or annotation request.

    ``eventId`` is ``None`` when the request was a no-op and nothing was
    written to the log.
    """

    ok: bool = True
    eventId: Optional[str] = None
    status: str
    state: MatchState
    summary: Dict[str, Any]
    canUndo: bool
    annotationTarget: Optional[str] = None


class MatchSummaryOut(BaseModel):
    """One row of the match history."""

    id: str
    teams: Dict[SideLiteral, str]
    label: str
    setScores: str
    status: str
    winner: Optional[SideLiteral] = None
    winnerName: Optional[str] = None
    createdAt: datetime


class MatchStatsOut(BaseModel):
    A: Dict[str, int]
    B: Dict[str, int]
