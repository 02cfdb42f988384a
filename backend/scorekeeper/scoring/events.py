"""Typed match events.

The persisted shape of every event is::

    {eventId, matchId, createdAt, seq, type, payload}

``parse_event`` turns that shape into one of the typed variants below and
``event_to_dict`` renders it back. Events are frozen; the log they live in is
append-only.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Union

from pydantic import Field, TypeAdapter

from .state import FrozenModel, Ruleset, Side, TeamMap


class PointLossReason(str, Enum):
    """Why the losing side lost a point."""

    DOUBLE_FAULT = "DOUBLE_FAULT"
    ACE = "ACE"
    FOREHAND_ERROR = "FOREHAND_ERROR"
    BACKHAND_ERROR = "BACKHAND_ERROR"
    VOLLEY_ERROR = "VOLLEY_ERROR"
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
    NET_ERROR = "NET_ERROR"
    WINNER = "WINNER"


class MatchCreatedPayload(FrozenModel):
    ruleset: Ruleset
    teams: TeamMap
    initial_server: Side


class PointWonPayload(FrozenModel):
    team: Side


class TargetPayload(FrozenModel):
    target_event_id: str


class MatchEndedPayload(FrozenModel):
    pass


class PointAnnotatedPayload(FrozenModel):
    point_event_id: str
    reason: PointLossReason


class BaseEvent(FrozenModel):
    event_id: str
    match_id: str
    created_at: datetime
    seq: int = Field(ge=0)


class MatchCreated(BaseEvent):
    type: Literal["MATCH_CREATED"] = "MATCH_CREATED"
    payload: MatchCreatedPayload


class PointWon(BaseEvent):
    type: Literal["POINT_WON"] = "POINT_WON"
    payload: PointWonPayload


class Undo(BaseEvent):
    type: Literal["UNDO"] = "UNDO"
    payload: TargetPayload


class Redo(BaseEvent):
    type: Literal["REDO"] = "REDO"
    payload: TargetPayload


class MatchEnded(BaseEvent):
    type: Literal["MATCH_ENDED"] = "MATCH_ENDED"
    payload: MatchEndedPayload = Field(default_factory=MatchEndedPayload)


class PointAnnotated(BaseEvent):
    type: Literal["POINT_ANNOTATED"] = "POINT_ANNOTATED"
    payload: PointAnnotatedPayload


MatchEvent = Annotated[
    Union[MatchCreated, PointWon, Undo, Redo, MatchEnded, PointAnnotated],
    Field(discriminator="type"),
]

EVENT_TYPES = (
    "MATCH_CREATED",
    "POINT_WON",
    "UNDO",
    "REDO",
    "MATCH_ENDED",
    "POINT_ANNOTATED",
)

_event_adapter: TypeAdapter[MatchEvent] = TypeAdapter(MatchEvent)


def parse_event(data: Dict[str, Any]) -> MatchEvent:
    """Validate one event in its persisted (camelCase) shape."""
    return _event_adapter.validate_python(data)


def parse_events(rows: Iterable[Dict[str, Any]]) -> List[MatchEvent]:
    return [parse_event(row) for row in rows]


def event_to_dict(event: MatchEvent) -> Dict[str, Any]:
    return event.model_dump(mode="json", by_alias=True)
