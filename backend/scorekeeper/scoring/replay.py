"""Event log reduction: derive the effective events and replay them."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from . import tennis
from .events import MatchEvent, PointWon
from .state import MatchState

NON_SCORING_MARKERS = frozenset({"UNDO", "REDO", "POINT_ANNOTATED"})


class ReplayError(RuntimeError):
    """Raised when an event log cannot be turned into a match state."""


def effective_events(events: Iterable[MatchEvent]) -> List[MatchEvent]:
    """Return the events that still count, in log order.

    ``UNDO`` voids its target and ``REDO`` revives it; the last marker for a
    target wins. Undo/redo markers and annotations are never effective.
    """
    events = list(events)
    voided: set[str] = set()
    for event in events:
        if event.type == "UNDO":
            voided.add(event.payload.target_event_id)
        elif event.type == "REDO":
            voided.discard(event.payload.target_event_id)

    return [
        e
        for e in events
        if e.type not in NON_SCORING_MARKERS and e.event_id not in voided
    ]


def replay(
    events: Iterable[MatchEvent], starting_state: Optional[MatchState] = None
) -> MatchState:
    """Rebuild the match state from an event log.

    Without ``starting_state`` the raw log is reduced with
    :func:`effective_events` first. With one, ``events`` must already be the
    exact effective sequence to fold on top of it.
    """
    sequence = list(events) if starting_state is not None else effective_events(events)

    state = starting_state
    for event in sequence:
        state = tennis.apply(event, state)

    if state is None:
        raise ReplayError("no MATCH_CREATED event found and no starting state provided")
    return state


def last_point_event(events: Sequence[MatchEvent]) -> Optional[PointWon]:
    """Most recent ``POINT_WON`` that has not been undone."""
    for event in reversed(effective_events(events)):
        if event.type == "POINT_WON":
            return event
    return None


def can_undo(events: Sequence[MatchEvent]) -> bool:
    return last_point_event(events) is not None


def annotation_target(events: Sequence[MatchEvent]) -> Optional[PointWon]:
    """The point an annotation may still be attached to.

    Only the most recent effective point is eligible, and only until it has
    been annotated once.
    """
    last_point = last_point_event(events)
    if last_point is None:
        return None
    for event in events:
        if (
            event.type == "POINT_ANNOTATED"
            and event.payload.point_event_id == last_point.event_id
        ):
            return None
    return last_point
