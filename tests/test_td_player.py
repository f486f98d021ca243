import numpy as np

from agent_config import parse_agent_args, PLAYER_DEFAULTS
from agents import TDPlayer, Step
from game_2048 import Board, UP, DOWN
from ntuple_network import NTupleNetwork, td_backward_update

DEAD = [1, 2, 1, 2,
        2, 1, 2, 1,
        1, 2, 1, 2,
        2, 1, 2, 1]


def top_row_network():
    # one tuple over the top row, ranks 0..3
    return NTupleNetwork(tuples=[(0, 1, 2, 3)], max_index=4)


def td_player(args="", network=None):
    return TDPlayer(parse_agent_args(args, PLAYER_DEFAULTS), network=network or top_row_network())


def top_row(*ranks):
    return Board(list(ranks) + [0] * 12)


def test_backward_update_is_sequential():
    net = top_row_network()
    a1, a2, a3 = top_row(1, 0, 0, 0), top_row(0, 1, 0, 0), top_row(0, 0, 1, 0)
    f1, f2, f3 = 64, 16, 4
    net.tables[0, [f1, f2, f3]] = [1.0, 2.0, 4.0]

    history = [Step(2, a1), Step(4, a2), Step(8, a3)]
    td_backward_update(net, history, alpha=0.5)

    # terminal: target 0, error -4
    assert net.tables[0, f3] == 2.0
    # target 8 + 2 (already updated), error 8
    assert net.tables[0, f2] == 6.0
    # target 4 + 6 (already updated), error 9
    assert net.tables[0, f1] == 5.5


def test_close_episode_runs_backward_update():
    net = top_row_network()
    player = td_player("alpha=0.5", net)
    player.open_episode()
    player.history.extend([Step(0, top_row(1, 0, 0, 0)), Step(4, top_row(0, 1, 0, 0))])
    player.close_episode()
    # terminal stays 0, the first afterstate moves halfway to 4
    assert net.tables[0, 16] == 0.0
    assert net.tables[0, 64] == 2.0


def test_no_update_for_empty_history_or_zero_alpha():
    net = top_row_network()
    net.tables[0] = np.arange(256, dtype=np.float32)
    before = net.tables.copy()

    td_backward_update(net, [], alpha=0.5)
    assert np.array_equal(net.tables, before)

    frozen = td_player("alpha=0", net)
    frozen.open_episode()
    frozen.history.append(Step(4, top_row(1, 1, 0, 0)))
    frozen.close_episode()
    assert np.array_equal(net.tables, before)


def test_take_action_records_afterstate():
    player = td_player()
    player.open_episode()
    board = top_row(1, 1, 0, 0)
    action = player.take_action(board)
    assert action.kind == "slide"
    assert len(player.history) == 1
    step = player.history[0]
    expected = board.copy()
    assert step.reward == expected.slide(action.direction)
    assert step.after == expected
    # the caller's board is never modified
    assert board == top_row(1, 1, 0, 0)


def test_ties_go_to_the_first_direction():
    player = td_player()
    board = Board([0] * 5 + [1] + [0] * 10)
    assert player.take_action(board).direction == UP


def test_first_legal_direction_wins_ties():
    player = td_player()
    # the tile is already on the top row, so UP is illegal
    board = Board([0, 1] + [0] * 14)
    assert player.take_action(board).direction == DOWN


def test_later_direction_must_be_strictly_better():
    net = top_row_network()
    # every afterstate with an empty top row is worth 1
    net.tables[0, 0] = 1.0
    player = td_player(network=net)
    board = Board([0] * 5 + [1] + [0] * 10)
    # UP scores 0, DOWN scores 1, LEFT and RIGHT also 1 but come later
    assert player.take_action(board).direction == DOWN


def test_value_outweighs_reward():
    net = top_row_network()
    net.tables[0, 0] = 100.0
    player = td_player(network=net)
    # merging left keeps the tiles in the top row; down empties it
    board = top_row(1, 1, 0, 0)
    assert player.take_action(board).direction == DOWN


def test_no_action_on_dead_board():
    player = td_player()
    player.open_episode()
    action = player.take_action(Board(DEAD))
    assert not action
    assert player.history == []


def test_history_lifecycle():
    player = td_player("alpha=0.1")
    player.open_episode()
    player.take_action(top_row(1, 1, 0, 0))
    player.close_episode()
    assert len(player.history) == 1
    player.open_episode()
    assert player.history == []


def test_default_player_uses_full_network():
    player = TDPlayer(parse_agent_args("", PLAYER_DEFAULTS))
    assert player.alpha == 0.005
    assert player.network.tables.shape == (17, 25 ** 4)


def test_init_starts_from_zero_tables():
    net = top_row_network()
    net.tables[:] = 3.0
    player = td_player("init", net)
    assert not player.network.tables.any()


def test_load_wins_over_init(tmp_path):
    path = str(tmp_path / "w.bin")
    saved = top_row_network()
    saved.tables[0] = np.arange(256, dtype=np.float32)
    saved.save(path)

    net = top_row_network()
    net.tables[:] = 3.0
    player = td_player(f"init load={path}", net)
    assert np.array_equal(player.network.tables, saved.tables)
