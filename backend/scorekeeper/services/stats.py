from __future__ import annotations

from typing import Dict, Sequence

from ..scoring.events import MatchEvent, PointLossReason
from ..scoring.replay import effective_events


def empty_team_stats() -> Dict[str, int]:
    stats = {"totalPointsWon": 0, "unannotated": 0}
    for reason in PointLossReason:
        stats[reason.value] = 0
    return stats


def compute_match_stats(events: Sequence[MatchEvent]) -> Dict[str, Dict[str, int]]:
    """Count points won per side, broken down by annotated loss reason.

    Only effective points are counted. Annotations whose target point has
    been undone are ignored. Statistics never feed back into scoring.
    """
    effective = effective_events(events)
    effective_ids = {e.event_id for e in effective}

    annotations: Dict[str, PointLossReason] = {}
    for event in events:
        if (
            event.type == "POINT_ANNOTATED"
            and event.payload.point_event_id in effective_ids
        ):
            annotations[event.payload.point_event_id] = event.payload.reason

    stats = {"A": empty_team_stats(), "B": empty_team_stats()}
    for event in effective:
        if event.type != "POINT_WON":
            continue
        team = stats[event.payload.team]
        team["totalPointsWon"] += 1
        reason = annotations.get(event.event_id)
        if reason is not None:
            team[reason.value] += 1
        else:
            team["unannotated"] += 1

    return stats
