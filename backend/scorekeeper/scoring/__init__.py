"""Tennis scoring engine and event log reduction."""

from . import events, replay, state, tennis

__all__ = [
    "events",
    "replay",
    "state",
    "tennis",
]
