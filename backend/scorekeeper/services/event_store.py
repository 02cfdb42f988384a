"""Append-only event store backed by the ``match_event`` table.

Rows are only ever inserted. Reads always come back in ``seq`` order, which
is the order replay relies on.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import MatchEvent as MatchEventRow
from ..scoring.events import MatchEvent, event_to_dict, parse_event
from ..time_utils import coerce_utc, utcnow


def row_to_event(row: MatchEventRow) -> MatchEvent:
    return parse_event(
        {
            "eventId": row.id,
            "matchId": row.match_id,
            "createdAt": coerce_utc(row.created_at),
            "seq": row.seq,
            "type": row.type,
            "payload": row.payload,
        }
    )


async def get_match_events(session: AsyncSession, match_id: str) -> List[MatchEvent]:
    """Return every event of ``match_id`` ordered by ``seq``."""
    rows = (
        await session.execute(
            select(MatchEventRow)
            .where(MatchEventRow.match_id == match_id)
            .order_by(MatchEventRow.seq)
        )
    ).scalars().all()
    return [row_to_event(r) for r in rows]


async def get_events_for_matches(
    session: AsyncSession, match_ids: Sequence[str]
) -> Dict[str, List[MatchEvent]]:
    """Fetch the logs of several matches in one query, keyed by match id."""
    logs: Dict[str, List[MatchEvent]] = {mid: [] for mid in match_ids}
    if not logs:
        return logs
    rows = (
        await session.execute(
            select(MatchEventRow)
            .where(MatchEventRow.match_id.in_(list(logs)))
            .order_by(MatchEventRow.match_id, MatchEventRow.seq)
        )
    ).scalars().all()
    for row in rows:
        logs[row.match_id].append(row_to_event(row))
    return logs


async def next_seq(session: AsyncSession, match_id: str) -> int:
    current = (
        await session.execute(
            select(func.max(MatchEventRow.seq)).where(MatchEventRow.match_id == match_id)
        )
    ).scalar_one_or_none()
    return 0 if current is None else current + 1


async def append_event(
    session: AsyncSession,
    match_id: str,
    type_: str,
    payload: Dict[str, Any],
) -> MatchEvent:
    """Stage one new event at the end of the log and flush it.

    The event is validated before anything is written. Committing is left to
    the caller; a concurrent append that took the same ``seq`` surfaces as an
    ``IntegrityError`` on flush.
    """
    event = parse_event(
        {
            "eventId": uuid.uuid4().hex,
            "matchId": match_id,
            "createdAt": utcnow(),
            "seq": await next_seq(session, match_id),
            "type": type_,
            "payload": payload,
        }
    )
    data = event_to_dict(event)
    session.add(
        MatchEventRow(
            id=event.event_id,
            match_id=match_id,
            seq=event.seq,
            created_at=event.created_at,
            type=event.type,
            payload=data["payload"],
        )
    )
    await session.flush()
    return event
