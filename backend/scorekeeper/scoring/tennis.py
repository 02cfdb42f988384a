"""Tennis scoring engine.
Tracks points -> games -> sets -> match with deuce/advantage, 7 point
tiebreaks and the single-tiebreak practice format.

Every function is pure: it takes a ``MatchState`` and returns a new one.
"""

from __future__ import annotations

from typing import Dict, Mapping

from .events import MatchEvent
from .state import (
    MatchState,
    NormalGame,
    Ruleset,
    SetState,
    Side,
    Team,
    TiebreakGame,
    other_side,
)

POINT_PROGRESSION = {0: 15, 15: 30, 30: 40}
GAMES_PER_SET = 6


class InvalidMatchState(RuntimeError):
    """Raised when a state could not have been produced by this engine."""


def _fresh_game() -> NormalGame:
    return NormalGame()


def _fresh_tiebreak() -> TiebreakGame:
    return TiebreakGame()


def _fresh_set() -> SetState:
    return SetState(game=_fresh_game())


def init_match_state(
    match_id: str,
    ruleset: Ruleset,
    teams: Mapping[Side, Team],
    server: Side,
) -> MatchState:
    """Initialise the state of a new match.

    Practice matches start straight in a tiebreak; everything else starts
    with a normal game at love-all.
    """
    first_game = _fresh_tiebreak() if ruleset.best_of == "practice" else _fresh_game()
    return MatchState(
        match_id=match_id,
        ruleset=ruleset,
        teams=dict(teams),
        sets=(SetState(game=first_game),),
        current_set_index=0,
        sets_won_a=0,
        sets_won_b=0,
        server=server,
        status="in_progress",
    )


def sets_needed(ruleset: Ruleset) -> int:
    if ruleset.best_of == "practice":
        return 1
    return ruleset.best_of // 2 + 1


def _replace_current_set(state: MatchState, current: SetState) -> tuple[SetState, ...]:
    sets = list(state.sets)
    sets[state.current_set_index] = current
    return tuple(sets)


def _add_game(current: SetState, winner: Side) -> SetState:
    if winner == "A":
        return current.model_copy(update={"games_a": current.games_a + 1})
    return current.model_copy(update={"games_b": current.games_b + 1})


def _win_set(state: MatchState, sets: tuple[SetState, ...], winner: Side) -> MatchState:
    sets_won_a = state.sets_won_a + (1 if winner == "A" else 0)
    sets_won_b = state.sets_won_b + (1 if winner == "B" else 0)
    needed = sets_needed(state.ruleset)

    if sets_won_a >= needed or sets_won_b >= needed:
        return state.model_copy(
            update={
                "sets": sets,
                "sets_won_a": sets_won_a,
                "sets_won_b": sets_won_b,
                "status": "finished",
                "winner": winner,
            }
        )

    return state.model_copy(
        update={
            "sets": sets + (_fresh_set(),),
            "sets_won_a": sets_won_a,
            "sets_won_b": sets_won_b,
            "current_set_index": state.current_set_index + 1,
            "server": other_side(state.server),
        }
    )


def _win_game(state: MatchState, winner: Side) -> MatchState:
    current = _add_game(state.current_set, winner)
    ga, gb = current.games_a, current.games_b

    if (
        state.ruleset.tiebreak == "7pt"
        and ga == GAMES_PER_SET
        and gb == GAMES_PER_SET
    ):
        # Regular change of server after the game; rotation inside the
        # tiebreak is handled by _score_tiebreak.
        current = current.model_copy(update={"game": _fresh_tiebreak()})
        return state.model_copy(
            update={
                "sets": _replace_current_set(state, current),
                "server": other_side(state.server),
            }
        )

    if (ga >= GAMES_PER_SET or gb >= GAMES_PER_SET) and abs(ga - gb) >= 2:
        current = current.model_copy(update={"game": _fresh_game()})
        return _win_set(state, _replace_current_set(state, current), winner)

    current = current.model_copy(update={"game": _fresh_game()})
    return state.model_copy(
        update={
            "sets": _replace_current_set(state, current),
            "server": other_side(state.server),
        }
    )


def _update_game(state: MatchState, game: NormalGame | TiebreakGame) -> MatchState:
    current = state.current_set.model_copy(update={"game": game})
    return state.model_copy(update={"sets": _replace_current_set(state, current)})


def _score_normal_game(state: MatchState, game: NormalGame, side: Side) -> MatchState:
    scorer_key = "points_a" if side == "A" else "points_b"
    other_key = "points_b" if side == "A" else "points_a"
    scorer = getattr(game, scorer_key)
    other = getattr(game, other_key)

    if scorer == "AD":
        return _win_game(state, side)

    if scorer == 40:
        if other == "AD":
            return _update_game(
                state,
                game.model_copy(update={"points_a": 40, "points_b": 40, "deuce": True}),
            )
        if other == 40:
            return _update_game(
                state, game.model_copy(update={scorer_key: "AD", "deuce": True})
            )
        return _win_game(state, side)

    next_point = POINT_PROGRESSION.get(scorer) if isinstance(scorer, int) else None
    if next_point is None:
        raise InvalidMatchState(f"invalid point score: {scorer!r}")

    update: Dict[str, object] = {scorer_key: next_point}
    if next_point == 40 and other == 40:
        update["deuce"] = True
    return _update_game(state, game.model_copy(update=update))


def _tiebreak_won(state: MatchState, game: TiebreakGame, tb_a: int, tb_b: int) -> bool:
    reached = tb_a >= game.target or tb_b >= game.target
    if state.ruleset.best_of == "practice":
        return reached
    return reached and abs(tb_a - tb_b) >= 2


def _tiebreak_server_changes(total_points: int) -> bool:
    # After the first point, then after every second point: 1, 3, 5, ...
    return total_points == 1 or (total_points > 1 and (total_points - 1) % 2 == 0)


def _score_tiebreak(state: MatchState, side: Side) -> MatchState:
    current = state.current_set
    game = current.game
    if not isinstance(game, TiebreakGame):
        raise InvalidMatchState("current game is not a tiebreak")

    tb_a = game.tb_a + (1 if side == "A" else 0)
    tb_b = game.tb_b + (1 if side == "B" else 0)

    if _tiebreak_won(state, game, tb_a, tb_b):
        winner: Side = "A" if tb_a > tb_b else "B"
        current = _add_game(current, winner).model_copy(update={"game": _fresh_game()})
        return _win_set(state, _replace_current_set(state, current), winner)

    server = state.server
    if _tiebreak_server_changes(tb_a + tb_b):
        server = other_side(server)

    current = current.model_copy(
        update={"game": game.model_copy(update={"tb_a": tb_a, "tb_b": tb_b})}
    )
    return state.model_copy(
        update={"sets": _replace_current_set(state, current), "server": server}
    )


def apply_point_won(state: MatchState, side: Side) -> MatchState:
    """Return the state after ``side`` wins the next point.

    A finished match absorbs further points: the very same state is returned.
    """
    if side not in ("A", "B"):
        raise ValueError(f"invalid side: {side!r}")
    if state.status == "finished":
        return state

    game = state.current_set.game
    if isinstance(game, TiebreakGame):
        return _score_tiebreak(state, side)
    if isinstance(game, NormalGame):
        return _score_normal_game(state, game, side)
    raise InvalidMatchState(f"unknown game state: {game!r}")


def apply(event: MatchEvent, state: MatchState | None) -> MatchState | None:
    """Fold a single event into ``state``.

    ``MATCH_CREATED`` reseeds the state, ``POINT_WON`` scores a point and
    every other event type leaves the state untouched.
    """
    if event.type == "MATCH_CREATED":
        payload = event.payload
        return init_match_state(
            event.match_id, payload.ruleset, payload.teams, payload.initial_server
        )
    if event.type == "POINT_WON" and state is not None:
        return apply_point_won(state, event.payload.team)
    return state


def display_points(game: NormalGame | TiebreakGame) -> tuple[str, str]:
    if isinstance(game, TiebreakGame):
        return str(game.tb_a), str(game.tb_b)
    return str(game.points_a), str(game.points_b)


def set_scores(state: MatchState) -> str:
    """Human readable set line, e.g. ``"6-4, 3-6, 7-6"``."""
    return ", ".join(f"{s.games_a}-{s.games_b}" for s in state.sets)


def summary(state: MatchState) -> Dict:
    points_a, points_b = display_points(state.current_set.game)
    return {
        "sets": [[s.games_a, s.games_b] for s in state.sets],
        "setsWon": {"A": state.sets_won_a, "B": state.sets_won_b},
        "points": {"A": points_a, "B": points_b},
        "tiebreak": state.current_set.game.kind == "tiebreak",
        "server": state.server,
        "status": state.status,
        "winner": state.winner,
    }
