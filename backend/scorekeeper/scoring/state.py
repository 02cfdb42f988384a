"""Immutable value types describing a tennis match at one point in time.

Python attributes are snake_case; the wire format (API responses and the
persisted event payloads) is camelCase, e.g. ``points_a`` <-> ``pointsA``.
Every model is frozen: the engine derives new values with ``model_copy`` and
never mutates an existing one.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Annotated, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Side = Literal["A", "B"]
PointScore = Literal[0, 15, 30, 40, "AD"]
BestOf = Literal[1, 3, 5, "practice"]
TiebreakPolicy = Literal["none", "7pt"]
MatchType = Literal["singles", "doubles"]
MatchStatus = Literal["in_progress", "finished"]

TIEBREAK_TARGET = 7


class FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Ruleset(FrozenModel):
    """Match configuration, fixed when the match is created."""

    best_of: BestOf = 3
    tiebreak: TiebreakPolicy = "7pt"
    match_type: MatchType = "singles"


class Player(FrozenModel):
    player_id: str
    display_name: str


class Team(FrozenModel):
    team_id: Side
    players: Tuple[Player, ...] = Field(min_length=1, max_length=2)

    @property
    def display_name(self) -> str:
        return " / ".join(p.display_name for p in self.players)


def _freeze_teams(teams: Mapping[Side, Team]) -> Mapping[Side, Team]:
    return MappingProxyType(dict(teams))


def _teams_dict(teams: Mapping[Side, Team]) -> Dict[Side, Team]:
    return dict(teams)


# Read-only once validated; shallow model copies share it safely.
TeamMap = Annotated[
    Dict[Side, Team],
    AfterValidator(_freeze_teams),
    PlainSerializer(_teams_dict, return_type=Dict[Side, Team]),
]


class NormalGame(FrozenModel):
    kind: Literal["normal"] = "normal"
    points_a: PointScore = 0
    points_b: PointScore = 0
    deuce: bool = False


class TiebreakGame(FrozenModel):
    kind: Literal["tiebreak"] = "tiebreak"
    tb_a: int = Field(default=0, ge=0)
    tb_b: int = Field(default=0, ge=0)
    target: Literal[7] = TIEBREAK_TARGET


GameState = Annotated[Union[NormalGame, TiebreakGame], Field(discriminator="kind")]


class SetState(FrozenModel):
    games_a: int = Field(default=0, ge=0)
    games_b: int = Field(default=0, ge=0)
    game: GameState = Field(default_factory=NormalGame)


class MatchState(FrozenModel):
    """Root aggregate. Only ever produced by the scoring engine."""

    match_id: str
    ruleset: Ruleset
    teams: TeamMap
    sets: Tuple[SetState, ...]
    current_set_index: int = 0
    sets_won_a: int = 0
    sets_won_b: int = 0
    server: Side = "A"
    status: MatchStatus = "in_progress"
    winner: Optional[Side] = None

    @property
    def current_set(self) -> SetState:
        return self.sets[self.current_set_index]

    @property
    def is_finished(self) -> bool:
        return self.status == "finished"


def other_side(side: Side) -> Side:
    return "B" if side == "A" else "A"
