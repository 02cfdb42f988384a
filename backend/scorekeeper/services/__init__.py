"""Application services: the event store and read-only statistics."""

from . import event_store
from .stats import compute_match_stats, empty_team_stats

__all__ = [
    "event_store",
    "compute_match_stats",
    "empty_team_stats",
]
