import numpy as np
import pytest

from action import Action
from game_2048 import Board, ILLEGAL, UP, DOWN, LEFT, RIGHT


# no two neighbours share a rank
DEAD = [1, 2, 1, 2,
        2, 1, 2, 1,
        1, 2, 1, 2,
        2, 1, 2, 1]


def row_board(row):
    return Board(list(row) + [0] * 12)


def test_read_and_write_positions():
    b = Board()
    b[6] = 3
    assert b[6] == 3
    assert b.grid[1, 2] == 3
    assert b.space_left() == 15
    assert b.max_tile() == 3


def test_slide_left_merges_pairs():
    b = row_board([1, 1, 1, 1])
    assert b.slide(LEFT) == 8
    assert b.flat[:4].tolist() == [2, 2, 0, 0]


def test_tile_merges_once_per_slide():
    b = row_board([2, 1, 1, 0])
    assert b.slide(LEFT) == 4
    assert b.flat[:4].tolist() == [2, 2, 0, 0]


def test_slide_right_merges_toward_the_wall():
    b = row_board([1, 1, 1, 0])
    assert b.slide(RIGHT) == 4
    assert b.flat[:4].tolist() == [0, 0, 1, 2]


def test_slide_up_and_down_on_columns():
    b = Board([0, 0, 0, 0,
               3, 0, 0, 0,
               0, 0, 0, 0,
               3, 0, 0, 0])
    up = b.copy()
    assert up.slide(UP) == 16
    assert up[0] == 4 and up.space_left() == 15

    down = b.copy()
    assert down.slide(DOWN) == 16
    assert down[12] == 4 and down.space_left() == 15


def test_slide_without_change_is_illegal():
    b = row_board([1, 2, 3, 4])
    before = b.copy()
    assert b.slide(LEFT) == ILLEGAL
    assert b.slide(RIGHT) == ILLEGAL
    assert b.slide(UP) == ILLEGAL
    assert b == before
    assert b.slide(DOWN) == 0


def test_slide_rejects_unknown_direction():
    with pytest.raises(ValueError):
        Board().slide(4)


def test_copy_is_independent():
    b = row_board([1, 1, 0, 0])
    c = b.copy()
    c.slide(LEFT)
    assert b.flat[:4].tolist() == [1, 1, 0, 0]
    assert c != b


def test_place_only_on_empty_cells():
    b = Board()
    assert b.place(3, 1) == 0
    assert b[3] == 1
    assert b.place(3, 2) == ILLEGAL
    assert b.place(16, 1) == ILLEGAL
    assert b.place(4, 3) == ILLEGAL


def test_dead_board_has_no_legal_move():
    b = Board(DEAD)
    assert not b.has_legal_move()
    for d in (UP, DOWN, LEFT, RIGHT):
        assert b.copy().slide(d) == ILLEGAL


def test_full_board_with_a_pair_has_a_move():
    cells = list(DEAD)
    cells[1] = 1
    assert Board(cells).has_legal_move()


def test_action_apply():
    b = row_board([1, 1, 0, 0])
    assert Action.slide(LEFT).apply(b) == 4
    assert Action.place(15, 2).apply(b) == 0
    assert b[15] == 2
    assert Action.none().apply(b) == ILLEGAL
    assert not Action.none()
    assert Action.slide(UP)
    assert str(Action.slide(RIGHT)) == "#R"
    assert str(Action.place(5, 2)) == "@5-2"


def test_str_shows_tile_values():
    b = Board(np.arange(16) % 12)
    assert "2048" in str(b)
    assert "." in str(b)
