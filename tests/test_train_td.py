import json

import numpy as np

from agent_config import parse_agent_args, PLAYER_DEFAULTS
from agents import TDPlayer, make_player, make_environment
from game_2048 import Game2048Env, Board, LEFT
from ntuple_network import NTupleNetwork
from train_td import EpisodeResult, Statistics, run_episode, train, main


def make_env(seed=1):
    return Game2048Env(make_environment(f"seed={seed}"))


def test_reset_places_two_tiles():
    env = make_env()
    obs, info = env.reset()
    assert obs.shape == (4, 4)
    assert env.board.space_left() == 14
    assert info["score"] == 0


def test_illegal_step_changes_nothing():
    env = make_env()
    env.reset()
    env.board = Board([1, 2, 3, 4] + [0] * 12)
    obs, reward, terminated, truncated, info = env.step(LEFT)
    assert reward == 0.0
    assert not info["grid_changed"]
    assert env.board.space_left() == 12
    assert not terminated and not truncated


def test_legal_step_adds_a_tile():
    env = make_env()
    env.reset()
    env.board = Board([1, 1] + [0] * 14)
    _, reward, _, _, info = env.step(LEFT)
    assert reward == 4.0
    assert info["grid_changed"]
    assert env.board.space_left() == 14
    assert env.score == 4


def test_episode_runs_until_no_move_is_left():
    env = make_env()
    result = run_episode(make_player("name=greedy_pos"), env)
    assert result.moves > 0
    assert result.score == env.score
    assert result.max_tile == env.board.max_tile()
    assert not env.board.has_legal_move()


def test_td_player_learns_from_an_episode():
    net = NTupleNetwork(tuples=[(0, 1, 2, 3), (0, 4, 8, 12)], max_index=16)
    player = TDPlayer(parse_agent_args("alpha=0.1", PLAYER_DEFAULTS), network=net)
    result = run_episode(player, make_env())
    assert len(player.history) == result.moves
    assert np.any(net.tables != 0)


def test_frozen_td_player_does_not_learn():
    net = NTupleNetwork(tuples=[(0, 1, 2, 3)], max_index=16)
    player = TDPlayer(parse_agent_args("alpha=0", PLAYER_DEFAULTS), network=net)
    run_episode(player, make_env())
    assert not net.tables.any()


def test_block_summary():
    stats = Statistics(block=4)
    for score, rank in [(100, 11), (50, 10), (70, 10), (30, 9)]:
        stats.add(EpisodeResult(score=score, moves=10, max_tile=rank, seconds=0.5))
    assert stats.is_block_end()
    summary = stats.summarize()
    assert summary["episodes"] == 4
    assert summary["avg_score"] == 62.5
    assert summary["max_score"] == 100
    assert summary["ops_per_sec"] == 20.0
    assert summary["tiles"][2048] == {"pct": 25.0, "at_least_pct": 25.0}
    assert summary["tiles"][1024] == {"pct": 50.0, "at_least_pct": 75.0}
    assert summary["tiles"][512] == {"pct": 25.0, "at_least_pct": 100.0}


def test_train_plays_every_episode():
    stats = train(make_player("name=greedy_score"), make_env(), total=3, block=2, show_progress=False)
    assert len(stats.results) == 3


def test_main_writes_summary(tmp_path):
    summary = tmp_path / "stats.json"
    code = main(["--total", "2", "--block", "2", "--play", "name=greedy_score",
                 "--env", "seed=3", "--log-dir", str(tmp_path / "logs"),
                 "--summary", str(summary), "--quiet"])
    assert code == 0
    data = json.loads(summary.read_text())
    assert data["final"]["episodes"] == 2
    assert len(data["episodes"]) == 2


def test_main_rejects_bad_configuration(tmp_path):
    code = main(["--play", "name=bogus", "--log-dir", str(tmp_path / "logs")])
    assert code == 1


def test_main_reports_missing_weights(tmp_path):
    code = main(["--play", f"name=TD load={tmp_path / 'missing.bin'}", "--log-dir", str(tmp_path / "logs")])
    assert code == 1


def test_actual_grid_values():
    env = make_env()
    env.reset()
    env.board = Board([0, 1, 11, 17] + [0] * 12)
    assert env.get_grid_actual_values()[0].tolist() == [0, 2, 2048, 131072]


def test_main_rejects_out_of_range_seed(tmp_path):
    code = main(["--play", "name=greedy_score", "--env", "seed=-1", "--log-dir", str(tmp_path / "logs")])
    assert code == 1
