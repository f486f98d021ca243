"""
N-tuple network value function for 2048 afterstates.

Each tuple names a few board positions; the ranks found there, clamped to
max_index - 1, are read as the digits of a base-max_index number that
selects one weight in the tuple's lookup table. The value of a board is
the sum of the selected weights over all tuples.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from game_2048 import Board
import weights

logger = logging.getLogger(__name__)


DEFAULT_TUPLES = (
    (0, 1, 2, 3), (4, 5, 6, 7), (8, 9, 10, 11), (12, 13, 14, 15),
    (0, 4, 8, 12), (1, 5, 9, 13), (2, 6, 10, 14), (3, 7, 11, 15),
    (0, 1, 4, 5), (1, 2, 5, 6), (2, 3, 6, 7),
    (4, 5, 8, 9), (4, 5, 9, 10), (4, 5, 10, 11),
    (8, 9, 12, 13), (9, 10, 13, 14), (10, 11, 14, 15),
)
DEFAULT_MAX_INDEX = 25


class NTupleNetwork:
    """
    Linear value function over n-tuple features.

    Attributes:
        tuples: (index_count, tuple_size) array of board positions
        max_index: Number of distinguishable ranks per cell
        tables: (index_count, max_index ** tuple_size) float32 weights
    """

    def __init__(self, tuples: Sequence[Sequence[int]] = DEFAULT_TUPLES,
                 max_index: int = DEFAULT_MAX_INDEX,
                 tables: Optional[np.ndarray] = None):
        """
        Build a network, zero-initialized unless tables are given.

        Args:
            tuples: Board positions of every tuple; all tuples have the same size
            max_index: Ranks >= max_index share the weight of max_index - 1
            tables: Optional initial weights of shape (len(tuples), table_size)
        """
        self.tuples = self._validate_tuples(tuples)
        self.max_index = max_index
        self.index_count, self.tuple_size = self.tuples.shape
        self.table_size = max_index ** self.tuple_size
        # Digit weights, most significant position first
        self._place_values = max_index ** np.arange(self.tuple_size - 1, -1, -1, dtype=np.int64)
        self._rows = np.arange(self.index_count)

        if tables is None:
            self.tables = np.zeros((self.index_count, self.table_size), dtype=np.float32)
        else:
            self.tables = self._check_shape(np.asarray(tables, dtype=np.float32))

    @staticmethod
    def _validate_tuples(tuples: Sequence[Sequence[int]]) -> np.ndarray:
        if len(tuples) == 0:
            raise ValueError("At least one tuple is required")
        sizes = {len(t) for t in tuples}
        if len(sizes) != 1:
            raise ValueError(f"All tuples must have the same size, got sizes {sorted(sizes)}")
        for t in tuples:
            if len(set(t)) != len(t):
                raise ValueError(f"Tuple {tuple(t)} repeats a position")
            if any(p < 0 or p >= 16 for p in t):
                raise ValueError(f"Tuple {tuple(t)} has a position outside 0..15")
        return np.array(tuples, dtype=np.int64)

    def _check_shape(self, tables: np.ndarray) -> np.ndarray:
        expected = (self.index_count, self.table_size)
        if tables.shape != expected:
            raise ValueError(f"Weight tables have shape {tables.shape}, expected {expected}")
        return tables

    def extract_feature(self, board: Board, tuple_id: int) -> int:
        """
        Feature index of one tuple on a board.

        Ranks of max_index or more are read as max_index - 1.
        """
        index = 0
        for position in self.tuples[tuple_id]:
            rank = min(board[int(position)], self.max_index - 1)
            index = index * self.max_index + rank
        return index

    def features(self, board: Board) -> np.ndarray:
        """Feature indices of every tuple, in tuple order."""
        ranks = np.minimum(board.flat[self.tuples], self.max_index - 1)
        return ranks.astype(np.int64) @ self._place_values

    def estimate(self, board: Board) -> float:
        """Sum of the weights selected by every tuple."""
        return float(self.tables[self._rows, self.features(board)].sum(dtype=np.float64))

    def adjust(self, board: Board, target: float, alpha: float) -> float:
        """
        Move the estimate of a board toward a target.

        Every weight the board selects is changed by alpha * error.

        Returns:
            The TD error (target - estimate) before the adjustment
        """
        error = target - self.estimate(board)
        self.tables[self._rows, self.features(board)] += alpha * error
        return error

    def save(self, path: str) -> None:
        weights.save_tables(path, self.tables)

    def load(self, path: str) -> None:
        """
        Replace the weights with those stored in a file.

        The network is unchanged if loading fails.
        """
        self.tables = weights.load_tables(path, self.index_count, self.table_size)


def td_backward_update(network: NTupleNetwork, history: List, alpha: float) -> None:
    """
    TD(0) update of a finished episode, last afterstate first.

    The terminal afterstate is moved toward 0; every earlier afterstate
    toward the next step's reward plus the next afterstate's estimate,
    using the weights as already updated by the later steps.

    Args:
        network: Network updated in place
        history: Steps with `reward` and `after` attributes, in play order
        alpha: Learning rate; 0 leaves the network untouched
    """
    if not history or alpha == 0:
        return

    network.adjust(history[-1].after, 0.0, alpha)
    for i in range(len(history) - 2, -1, -1):
        following = history[i + 1]
        target = following.reward + network.estimate(following.after)
        network.adjust(history[i].after, target, alpha)
