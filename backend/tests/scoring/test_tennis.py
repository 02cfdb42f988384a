import pytest
from pydantic import ValidationError

from scorekeeper.scoring import tennis
from scorekeeper.scoring.state import (
    MatchState,
    NormalGame,
    Player,
    Ruleset,
    SetState,
    Team,
)

TEAMS = {
    "A": Team(team_id="A", players=(Player(player_id="a1", display_name="Ana"),)),
    "B": Team(team_id="B", players=(Player(player_id="b1", display_name="Bea"),)),
}


def _new_match(best_of=3, tiebreak="7pt", server="A") -> MatchState:
    ruleset = Ruleset(best_of=best_of, tiebreak=tiebreak)
    return tennis.init_match_state("m1", ruleset, TEAMS, server)


def _play(state, sides):
    for side in sides:
        state = tennis.apply_point_won(state, side)
    return state


def _win_game(state, side):
    return _play(state, side * 4)


def _to_games(state, games_a, games_b):
    """Alternate games until the set stands at ``games_a``-``games_b``."""
    while state.current_set.games_a < games_a or state.current_set.games_b < games_b:
        if state.current_set.games_a < games_a:
            state = _win_game(state, "A")
        if state.current_set.games_b < games_b:
            state = _win_game(state, "B")
    return state


def test_init_match_state_starts_at_love():
    state = _new_match()
    assert state.status == "in_progress"
    assert state.winner is None
    assert len(state.sets) == 1
    assert state.current_set_index == 0
    assert state.current_set.game == NormalGame()
    assert state.server == "A"


def test_practice_match_starts_in_tiebreak():
    state = _new_match(best_of="practice", server="B")
    assert state.current_set.game.kind == "tiebreak"
    assert state.server == "B"


@pytest.mark.parametrize(
    "best_of, needed", [(1, 1), (3, 2), (5, 3), ("practice", 1)]
)
def test_sets_needed(best_of, needed):
    assert tennis.sets_needed(Ruleset(best_of=best_of)) == needed


def test_point_progression():
    state = _new_match()
    seen = []
    for _ in range(3):
        state = tennis.apply_point_won(state, "A")
        seen.append(state.current_set.game.points_a)
    assert seen == [15, 30, 40]
    assert state.current_set.game.points_b == 0
    assert state.current_set.game.deuce is False

    state = tennis.apply_point_won(state, "A")
    assert state.current_set.games_a == 1
    assert state.current_set.game == NormalGame()


def test_deuce_advantage_cycle():
    state = _play(_new_match(), "AAABBB")
    game = state.current_set.game
    assert (game.points_a, game.points_b, game.deuce) == (40, 40, True)

    state = tennis.apply_point_won(state, "A")
    assert state.current_set.game.points_a == "AD"
    assert state.current_set.game.points_b == 40

    state = tennis.apply_point_won(state, "B")
    game = state.current_set.game
    assert (game.points_a, game.points_b, game.deuce) == (40, 40, True)

    state = _play(state, "BB")
    assert state.current_set.games_b == 1
    assert state.current_set.game.deuce is False


def test_set_without_tiebreak_needs_two_game_margin():
    state = _to_games(_new_match(tiebreak="none"), 5, 5)
    state = _win_game(state, "A")
    assert (state.current_set.games_a, state.current_set.games_b) == (6, 5)
    assert state.sets_won_a == 0

    state = _win_game(state, "A")
    assert (state.sets[0].games_a, state.sets[0].games_b) == (7, 5)
    assert state.sets_won_a == 1
    assert state.current_set_index == 1
    assert len(state.sets) == 2


def test_no_tiebreak_policy_plays_on_at_six_all():
    state = _to_games(_new_match(tiebreak="none"), 6, 6)
    assert state.current_set.game.kind == "normal"
    state = _win_game(state, "B")
    state = _win_game(state, "B")
    assert (state.sets[0].games_a, state.sets[0].games_b) == (6, 8)
    assert state.sets_won_b == 1


def test_tiebreak_at_six_all_needs_two_point_margin():
    state = _to_games(_new_match(), 6, 6)
    assert state.current_set.game.kind == "tiebreak"
    assert (state.current_set.game.tb_a, state.current_set.game.tb_b) == (0, 0)

    state = _play(state, "A" * 6 + "B" * 6)
    state = tennis.apply_point_won(state, "A")
    assert (state.current_set.game.tb_a, state.current_set.game.tb_b) == (7, 6)
    assert state.sets_won_a == 0

    state = tennis.apply_point_won(state, "A")
    assert state.sets_won_a == 1
    assert (state.sets[0].games_a, state.sets[0].games_b) == (7, 6)
    assert state.current_set.game == NormalGame()


def test_tiebreak_overtime_is_unbounded():
    state = _to_games(_new_match(), 6, 6)
    state = _play(state, "AB" * 10)
    assert (state.current_set.game.tb_a, state.current_set.game.tb_b) == (10, 10)
    assert state.sets_won_a == state.sets_won_b == 0


def test_practice_tiebreak_ends_on_reaching_target():
    state = _play(_new_match(best_of="practice"), "B" * 6 + "A" * 6)
    assert state.status == "in_progress"

    state = tennis.apply_point_won(state, "A")
    assert state.status == "finished"
    assert state.winner == "A"
    assert state.sets_won_a == 1
    assert len(state.sets) == 1
    assert (state.sets[0].games_a, state.sets[0].games_b) == (1, 0)


def test_server_alternates_every_game_including_set_change():
    state = _new_match(server="A")
    servers = []
    for _ in range(6):
        state = _win_game(state, "A")
        servers.append(state.server)
    assert servers == ["B", "A", "B", "A", "B", "A"]
    assert state.current_set_index == 1


def test_tiebreak_server_rotation():
    state = _to_games(_new_match(server="A"), 6, 6)
    assert state.server == "A"

    servers = []
    for side in "ABABA":
        state = tennis.apply_point_won(state, side)
        servers.append(state.server)
    assert servers == ["B", "B", "A", "A", "B"]


def test_finished_match_absorbs_points():
    state = _new_match(best_of=1)
    for _ in range(6):
        state = _win_game(state, "A")
    assert state.status == "finished"
    assert state.winner == "A"

    assert tennis.apply_point_won(state, "B") is state


def test_best_of_three_end_to_end():
    state = _new_match()
    for side in "ABA":
        for _ in range(6):
            state = _win_game(state, side)

    assert state.status == "finished"
    assert state.winner == "A"
    assert (state.sets_won_a, state.sets_won_b) == (2, 1)
    assert tennis.set_scores(state) == "6-0, 0-6, 6-0"
    assert len(state.sets) == 3


def test_apply_point_won_is_pure():
    start = _new_match()
    after = tennis.apply_point_won(start, "A")

    assert start.current_set.game.points_a == 0
    assert after.current_set.game.points_a == 15
    assert tennis.apply_point_won(start, "A") == after

    with pytest.raises(ValidationError):
        start.server = "B"


def test_rejects_unknown_side():
    with pytest.raises(ValueError):
        tennis.apply_point_won(_new_match(), "C")


def test_rejects_impossible_point_score():
    bad_game = NormalGame.model_construct(kind="normal", points_a=20, points_b=0, deuce=False)
    bad_set = SetState.model_construct(games_a=0, games_b=0, game=bad_game)
    state = _new_match().model_copy(update={"sets": (bad_set,)})

    with pytest.raises(tennis.InvalidMatchState):
        tennis.apply_point_won(state, "A")


def test_summary_reports_display_points():
    state = _play(_new_match(server="B"), "AAB")
    summary = tennis.summary(state)
    assert summary["points"] == {"A": "30", "B": "15"}
    assert summary["sets"] == [[0, 0]]
    assert summary["setsWon"] == {"A": 0, "B": 0}
    assert summary["tiebreak"] is False
    assert summary["server"] == "B"
    assert summary["status"] == "in_progress"
    assert summary["winner"] is None


def test_straight_sets_win():
    state = _new_match()
    for _ in range(12):
        state = _win_game(state, "A")

    assert state.status == "finished"
    assert state.winner == "A"
    assert (state.sets_won_a, state.sets_won_b) == (2, 0)
    assert len(state.sets) == 2
    assert tennis.set_scores(state) == "6-0, 6-0"


def test_score_tiebreak_rejects_normal_game():
    with pytest.raises(tennis.InvalidMatchState):
        tennis._score_tiebreak(_new_match(), "A")


def test_teams_are_read_only_across_derived_states():
    start = _new_match()
    later = tennis.apply_point_won(start, "A")

    with pytest.raises(TypeError):
        later.teams["A"] = TEAMS["B"]
    assert start.teams["A"].display_name == "Ana"
    assert later.model_dump(by_alias=True)["teams"]["B"]["teamId"] == "B"
