"""
Training script for 2048 using TD(0) learning on an n-tuple network.

Plays episodes between a player agent and an environment agent, lets the
player learn at the end of every episode, and reports block statistics.

Usage:
    python train_td.py --total 100000 --block 1000 \\
        --play "name=TD alpha=0.0025 save=weights.bin"
    python train_td.py --play "name=TD alpha=0 load=weights.bin" --total 1000
    python train_td.py --play "name=greedy_pos" --total 1000
"""

import json
import logging
import os
import sys
import time
from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from agent_config import ConfigError
from agents import Agent, make_player, make_environment
from game_2048 import Game2048Env
from weights import WeightFileError


def setup_logging(log_dir: str = "logs") -> logging.Logger:
    """
    Setup logging to both console and file.

    Args:
        log_dir: Directory to store log files

    Returns:
        Configured logger
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"training_{timestamp}.log")

    # The root logger also collects the agents' and weight store's messages
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter('%(asctime)s | %(message)s', datefmt='%Y-%m-%d %H:%M:%S'))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(message)s'))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info(f"Logging to: {log_file}")

    return logger


logger = logging.getLogger("train_td")


@dataclass
class EpisodeResult:
    score: int
    moves: int
    max_tile: int
    seconds: float


def run_episode(player: Agent, env: Game2048Env) -> EpisodeResult:
    """
    Play one episode until the player has no legal move left.

    The player's close_episode hook runs at the end, which is where a TD
    player learns.
    """
    start = time.perf_counter()
    env.reset()
    player.open_episode()
    while True:
        action = player.take_action(env.board)
        if not action:
            break
        env.step(action.direction)
    player.close_episode()
    return EpisodeResult(
        score=env.score,
        moves=env.moves_made,
        max_tile=env.board.max_tile(),
        seconds=time.perf_counter() - start,
    )


class Statistics:
    """Collects episode results and summarizes them per block."""

    def __init__(self, block: int = 1000):
        self.block = block
        self.results: List[EpisodeResult] = []

    def add(self, result: EpisodeResult) -> None:
        self.results.append(result)

    def is_block_end(self) -> bool:
        return self.block > 0 and len(self.results) % self.block == 0

    def summarize(self, results: Optional[List[EpisodeResult]] = None) -> Dict[str, Any]:
        """
        Summary of the given results (default: the last block).

        Returns:
            Dictionary with average/max score, moves per second and, for
            every max tile reached, the share of episodes ending on it and
            the share reaching at least it
        """
        if results is None:
            results = self.results[-self.block:] if self.block > 0 else self.results
        if not results:
            return {"episodes": 0}

        scores = np.array([r.score for r in results])
        moves = sum(r.moves for r in results)
        seconds = sum(r.seconds for r in results)
        tiles = Counter(r.max_tile for r in results)

        tile_rates = {}
        reached = 0
        for rank in sorted(tiles, reverse=True):
            reached += tiles[rank]
            tile_rates[2 ** rank if rank else 0] = {
                "pct": 100.0 * tiles[rank] / len(results),
                "at_least_pct": 100.0 * reached / len(results),
            }

        return {
            "episodes": len(self.results),
            "avg_score": float(scores.mean()),
            "max_score": int(scores.max()),
            "ops_per_sec": moves / seconds if seconds > 0 else 0.0,
            "tiles": tile_rates,
        }

    def log_summary(self, summary: Dict[str, Any]) -> None:
        if summary["episodes"] == 0:
            logger.info("0\tno episodes played")
            return
        logger.info(f"{summary['episodes']}\tavg = {summary['avg_score']:.0f}, "
                    f"max = {summary['max_score']}, ops = {summary['ops_per_sec']:.0f}")
        for tile, rates in summary["tiles"].items():
            logger.info(f"\t{tile}\t{rates['at_least_pct']:.1f}%\t({rates['pct']:.1f}%)")


def plot_training_curves(stats: Statistics, save_path: str = "plots/td_training_curves.png") -> None:
    """Plot smoothed scores and max tiles over the training run."""
    if not stats.results:
        return
    if os.path.dirname(save_path):
        os.makedirs(os.path.dirname(save_path), exist_ok=True)

    def moving_average(data, window):
        if len(data) < window:
            return np.asarray(data, dtype=float)
        return np.convolve(data, np.ones(window) / window, mode='valid')

    window = max(1, min(stats.block, len(stats.results) // 10 or 1))
    scores = [r.score for r in stats.results]
    max_tiles = [2 ** r.max_tile for r in stats.results]

    fig, axes = plt.subplots(1, 2, figsize=(12, 4))
    axes[0].plot(scores, alpha=0.3, label='Score')
    axes[0].plot(moving_average(scores, window), label=f'MA({window})')
    axes[0].set_title('Episode Score')
    axes[0].set_xlabel('Episode')
    axes[0].legend()
    axes[0].grid(True)

    axes[1].plot(moving_average(max_tiles, window))
    axes[1].set_yscale('log', base=2)
    axes[1].set_title('Max Tile')
    axes[1].set_xlabel('Episode')
    axes[1].grid(True)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150)
    plt.close(fig)
    logger.info(f"Training curves saved to {save_path}")


def train(player: Agent, env: Game2048Env, total: int, block: int = 1000,
          show_progress: bool = True) -> Statistics:
    """
    Play `total` episodes, logging a summary after every block.

    Returns:
        Statistics of all episodes
    """
    stats = Statistics(block)
    for _ in tqdm(range(total), desc="Episodes", disable=not show_progress):
        stats.add(run_episode(player, env))
        if stats.is_block_end():
            stats.log_summary(stats.summarize())
    return stats


def main(argv: Optional[List[str]] = None) -> int:
    """Main training function."""
    import argparse

    parser = argparse.ArgumentParser(description='Train or evaluate 2048 agents with TD(0) n-tuple learning')
    parser.add_argument('--total', type=int, default=1000,
                        help='Number of episodes to play')
    parser.add_argument('--block', type=int, default=1000,
                        help='Episodes per statistics block')
    parser.add_argument('--play', type=str, default="",
                        help='Player arguments, e.g. "name=TD alpha=0.005 load=w.bin save=w.bin"')
    parser.add_argument('--env', type=str, default="",
                        help='Environment arguments, e.g. "seed=42"')
    parser.add_argument('--log-dir', type=str, default="logs",
                        help='Directory for log files')
    parser.add_argument('--plot', type=str, default=None,
                        help='Save training curves to this PNG path')
    parser.add_argument('--summary', type=str, default=None,
                        help='Write the final statistics to this JSON path')
    parser.add_argument('--quiet', action='store_true',
                        help='Hide the progress bar')
    args = parser.parse_args(argv)

    setup_logging(args.log_dir)

    try:
        player = make_player(args.play)
        environment = make_environment(args.env)
    except (ConfigError, WeightFileError) as e:
        logger.error(f"Cannot create agents: {e}")
        return 1

    env = Game2048Env(environment)
    try:
        with player:
            stats = train(player, env, args.total, args.block, show_progress=not args.quiet)
    except WeightFileError as e:
        logger.error(f"Cannot save weights: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    final_stats = stats.summarize(stats.results)
    logger.info(f"\n{'='*70}")
    logger.info(f"Final Statistics ({final_stats['episodes']} episodes)")
    logger.info(f"{'='*70}")
    stats.log_summary(final_stats)

    if args.plot:
        plot_training_curves(stats, args.plot)
    if args.summary:
        with open(args.summary, 'w') as f:
            json.dump({
                "player": args.play,
                "environment": args.env,
                "final": final_stats,
                "episodes": [asdict(r) for r in stats.results[-args.block:]],
            }, f, indent=2)
        logger.info(f"Summary saved to {args.summary}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
