#!/usr/bin/env python3
"""Replay an exported match event log and print the resulting score.

The input is a JSON list of events in the persisted shape
(``eventId, matchId, createdAt, seq, type, payload``), e.g. the ``events``
array of ``GET /api/v0/matches/{id}``.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from scorekeeper.scoring import tennis
from scorekeeper.scoring.events import parse_events
from scorekeeper.scoring.replay import replay
from scorekeeper.services.stats import compute_match_stats


def load_log(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "events" in data:
        data = data["events"]
    if not isinstance(data, list):
        raise ValueError("event log must be a JSON list (or an object with 'events')")
    return sorted(data, key=lambda e: e.get("seq", 0))


def render(raw_events: List[Dict[str, Any]], with_stats: bool) -> Dict[str, Any]:
    events = parse_events(raw_events)
    state = replay(events)
    result: Dict[str, Any] = {
        "matchId": state.match_id,
        "setScores": tennis.set_scores(state),
        "summary": tennis.summary(state),
    }
    if with_stats:
        result["stats"] = compute_match_stats(events)
    return result


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", type=Path, help="JSON file with the event log")
    parser.add_argument(
        "--stats", action="store_true", help="include per-team point statistics"
    )
    args = parser.parse_args(argv)

    result = render(load_log(args.path), args.stats)
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
