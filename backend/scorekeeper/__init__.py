"""Tennis scorekeeper backend."""
