# backend/scorekeeper/routers/matches.py
import logging
import uuid
from typing import Callable, Literal, Sequence

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import MatchCancelled, MatchNotFound, http_problem
from ..models import Match
from ..schemas import (
    AnnotationIn,
    MatchCreate,
    MatchIdOut,
    MatchOut,
    MatchStatsOut,
    MatchSummaryOut,
    PointIn,
    ScoreEventOut,
    ScoringResultOut,
)
from ..scoring import tennis
from ..scoring.events import MatchEvent, event_to_dict
from ..scoring.replay import annotation_target, can_undo, last_point_event, replay
from ..scoring.state import MatchState, Player, Ruleset, Team
from ..services import event_store
from ..services.stats import compute_match_stats
from ..time_utils import coerce_utc, utcnow

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def match_label(ruleset: Ruleset) -> str:
    if ruleset.best_of == "practice":
        return "Practice Tiebreak"
    return f"Best of {ruleset.best_of}"


def _teams_from_record(m: Match) -> dict[str, Team]:
    return {side: Team.model_validate(data) for side, data in m.teams.items()}


async def _get_match(session: AsyncSession, mid: str) -> Match:
    m = (
        await session.execute(
            select(Match).where(Match.id == mid, Match.deleted_at.is_(None))
        )
    ).scalar_one_or_none()
    if not m:
        raise MatchNotFound(mid)
    return m


async def _get_open_match(session: AsyncSession, mid: str) -> Match:
    m = await _get_match(session, mid)
    if m.status == "cancelled":
        raise MatchCancelled(mid)
    return m


def _result(
    state: MatchState, events: Sequence[MatchEvent], event_id: str | None
) -> ScoringResultOut:
    target = annotation_target(events)
    return ScoringResultOut(
        eventId=event_id,
        status=state.status,
        state=state,
        summary=tennis.summary(state),
        canUndo=can_undo(events),
        annotationTarget=target.event_id if target else None,
    )


def _apply_status(m: Match, state: MatchState) -> bool:
    """Bring the record's status in line with the replayed state.

    Only stages the change; returns whether anything changed.
    """
    if state.is_finished and m.status != "finished":
        m.status = "finished"
        logger.info("Match %s finished; winner %s", m.id, state.winner)
    elif not state.is_finished and m.status == "finished":
        m.status = "in_progress"
        logger.info("Match %s reopened by undo", m.id)
    else:
        return False
    m.updated_at = utcnow()
    return True


async def _heal_status(session: AsyncSession, m: Match, state: MatchState) -> None:
    """Repair a record whose status drifted from its event log."""
    if _apply_status(m, state):
        logger.warning("Match %s status was out of sync with its event log", m.id)
        await session.commit()


async def _append(
    session: AsyncSession,
    m: Match,
    type_: str,
    payload: dict,
    derive: Callable[[MatchEvent], MatchState],
) -> tuple[MatchEvent, MatchState]:
    """Append one event and commit it together with the record's status.

    ``derive`` maps the written event to the resulting match state. Losing a
    ``seq`` race is reported as a conflict and nothing is committed.
    """
    try:
        event = await event_store.append_event(session, m.id, type_, payload)
        state = derive(event)
        _apply_status(m, state)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning("Lost seq race appending %s to match %s", type_, m.id)
        raise http_problem(
            status_code=409,
            detail="match was updated concurrently; reload and retry",
            code="match_event_conflict",
        )
    return event, state


# POST /api/v0/matches
@router.post("", response_model=MatchIdOut)
async def create_match(
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
) -> MatchIdOut:
    mid = uuid.uuid4().hex
    teams = {
        side: Team(
            team_id=side,
            players=tuple(
                Player(
                    player_id=p.playerId or uuid.uuid4().hex,
                    display_name=p.displayName,
                )
                for p in team.players
            ),
        )
        for side, team in sorted(body.teams.items())
    }
    ruleset = body.ruleset.model_dump(mode="json", by_alias=True)
    teams_json = {
        side: team.model_dump(mode="json", by_alias=True) for side, team in teams.items()
    }

    now = utcnow()
    session.add(
        Match(
            id=mid,
            ruleset=ruleset,
            teams=teams_json,
            initial_server=body.initialServer,
            status="in_progress",
            created_at=now,
            updated_at=now,
        )
    )
    await session.flush()
    await event_store.append_event(
        session,
        mid,
        "MATCH_CREATED",
        {"ruleset": ruleset, "teams": teams_json, "initialServer": body.initialServer},
    )
    await session.commit()
    logger.info("Created match %s (%s)", mid, match_label(body.ruleset))
    return MatchIdOut(id=mid)


# GET /api/v0/matches?status=finished
@router.get("", response_model=list[MatchSummaryOut])
async def list_matches(
    status: Literal["in_progress", "finished", "cancelled"] = Query(
        "finished", description="Only return matches with this status"
    ),
    session: AsyncSession = Depends(get_session),
) -> list[MatchSummaryOut]:
    rows = (
        await session.execute(
            select(Match)
            .where(Match.status == status, Match.deleted_at.is_(None))
            .order_by(Match.created_at.desc())
        )
    ).scalars().all()

    logs = await event_store.get_events_for_matches(session, [m.id for m in rows])
    summaries: list[MatchSummaryOut] = []
    for m in rows:
        state = replay(logs[m.id])
        teams = _teams_from_record(m)
        summaries.append(
            MatchSummaryOut(
                id=m.id,
                teams={side: team.display_name for side, team in teams.items()},
                label=match_label(Ruleset.model_validate(m.ruleset)),
                setScores=tennis.set_scores(state),
                status=m.status,
                winner=state.winner,
                winnerName=teams[state.winner].display_name if state.winner else None,
                createdAt=coerce_utc(m.created_at),
            )
        )
    return summaries


# GET /api/v0/matches/{mid}
@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)) -> MatchOut:
    m = await _get_match(session, mid)
    events = await event_store.get_match_events(session, mid)
    state = replay(events)
    target = annotation_target(events)
    return MatchOut(
        id=m.id,
        ruleset=Ruleset.model_validate(m.ruleset),
        teams=_teams_from_record(m),
        status=m.status,
        createdAt=coerce_utc(m.created_at),
        updatedAt=coerce_utc(m.updated_at),
        state=state,
        summary=tennis.summary(state),
        canUndo=can_undo(events),
        annotationTarget=target.event_id if target else None,
        events=[ScoreEventOut(**event_to_dict(e)) for e in events],
    )


# POST /api/v0/matches/{mid}/points
@router.post("/{mid}/points", response_model=ScoringResultOut)
async def score_point(
    mid: str,
    body: PointIn,
    session: AsyncSession = Depends(get_session),
) -> ScoringResultOut:
    m = await _get_open_match(session, mid)
    events = await event_store.get_match_events(session, mid)
    state = replay(events)
    if state.is_finished:
        await _heal_status(session, m, state)
        return _result(state, events, None)

    # Write, then apply: the state is derived from the staged event and
    # committed with it, so an unpersisted point never happened.
    event, state = await _append(
        session,
        m,
        "POINT_WON",
        {"team": body.team},
        lambda written, prior=state: tennis.apply(written, prior),
    )
    return _result(state, [*events, event], event.event_id)


# POST /api/v0/matches/{mid}/undo
@router.post("/{mid}/undo", response_model=ScoringResultOut)
async def undo_point(
    mid: str,
    session: AsyncSession = Depends(get_session),
) -> ScoringResultOut:
    m = await _get_open_match(session, mid)
    events = await event_store.get_match_events(session, mid)
    target = last_point_event(events)
    if target is None:
        state = replay(events)
        await _heal_status(session, m, state)
        return _result(state, events, None)

    event, state = await _append(
        session,
        m,
        "UNDO",
        {"targetEventId": target.event_id},
        lambda written: replay([*events, written]),
    )
    return _result(state, [*events, event], event.event_id)


# POST /api/v0/matches/{mid}/annotations
@router.post("/{mid}/annotations", response_model=ScoringResultOut)
async def annotate_point(
    mid: str,
    body: AnnotationIn,
    session: AsyncSession = Depends(get_session),
) -> ScoringResultOut:
    m = await _get_open_match(session, mid)
    events = await event_store.get_match_events(session, mid)
    target = annotation_target(events)
    if target is None:
        return _result(replay(events), events, None)

    event, state = await _append(
        session,
        m,
        "POINT_ANNOTATED",
        {"pointEventId": target.event_id, "reason": body.reason.value},
        lambda written: replay([*events, written]),
    )
    return _result(state, [*events, event], event.event_id)


# GET /api/v0/matches/{mid}/stats
@router.get("/{mid}/stats", response_model=MatchStatsOut)
async def match_stats(
    mid: str, session: AsyncSession = Depends(get_session)
) -> MatchStatsOut:
    await _get_match(session, mid)
    events = await event_store.get_match_events(session, mid)
    return MatchStatsOut(**compute_match_stats(events))


# POST /api/v0/matches/{mid}/cancel
@router.post("/{mid}/cancel", response_model=MatchIdOut)
async def cancel_match(
    mid: str, session: AsyncSession = Depends(get_session)
) -> MatchIdOut:
    m = await _get_match(session, mid)
    if m.status != "cancelled":
        m.status = "cancelled"
        m.updated_at = utcnow()
        await session.commit()
        logger.info("Match %s cancelled", mid)
    return MatchIdOut(id=mid)


# DELETE /api/v0/matches/{mid}
@router.delete("/{mid}", status_code=204)
async def delete_match(
    mid: str, session: AsyncSession = Depends(get_session)
) -> Response:
    m = await _get_match(session, mid)
    m.deleted_at = utcnow()
    await session.commit()
    logger.info("Match %s deleted", mid)
    return Response(status_code=204)
