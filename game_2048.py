"""
2048 Board and Gymnasium Environment
This module provides the 4x4 rank grid with its slide/merge rules, and a
Gymnasium environment in which a player's slides alternate with tile
placements chosen by an environment agent.
"""

from typing import Optional, Tuple, Dict, Any, TYPE_CHECKING

import numpy as np
import gymnasium as gym
from gymnasium import spaces

if TYPE_CHECKING:
    from agents import Agent


ILLEGAL = -1

UP, DOWN, LEFT, RIGHT = 0, 1, 2, 3
DIRECTIONS = (UP, DOWN, LEFT, RIGHT)
DIRECTION_NAMES = ["UP", "DOWN", "LEFT", "RIGHT"]


class Board:
    """
    4x4 grid of tile ranks.

    A cell holding rank r shows the value 2^r; rank 0 is an empty cell.
    Positions are numbered 0..15 in row-major order.
    """

    def __init__(self, grid: Optional[np.ndarray] = None):
        """
        Create a board.

        Args:
            grid: Optional 4x4 (or flat 16) array of ranks, copied in
        """
        if grid is None:
            self.grid = np.zeros((4, 4), dtype=np.int32)
        else:
            self.grid = np.array(grid, dtype=np.int32).reshape(4, 4)

    def __getitem__(self, position: int) -> int:
        return int(self.grid[position // 4, position % 4])

    def __setitem__(self, position: int, rank: int) -> None:
        self.grid[position // 4, position % 4] = rank

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return np.array_equal(self.grid, other.grid)

    def __repr__(self) -> str:
        return f"Board({self.grid.flatten().tolist()})"

    def __str__(self) -> str:
        lines = ["+" + "-" * 24 + "+"]
        for i in range(4):
            row_str = ""
            for j in range(4):
                rank = self.grid[i, j]
                tile_value = "." if rank == 0 else str(2 ** int(rank))
                row_str += f"{tile_value:>6}"
            lines.append("|" + row_str + "|")
        lines.append("+" + "-" * 24 + "+")
        return "\n".join(lines)

    def copy(self) -> "Board":
        return Board(self.grid)

    @property
    def flat(self) -> np.ndarray:
        """Ranks as a flat array of 16 cells (a view, not a copy)."""
        return self.grid.reshape(16)

    def space_left(self) -> int:
        """Number of empty cells."""
        return int(np.count_nonzero(self.grid == 0))

    def max_tile(self) -> int:
        """Highest rank on the board."""
        return int(self.grid.max())

    def place(self, position: int, tile: int) -> int:
        """
        Put a tile of the given rank on an empty cell.

        Returns:
            0 on success, ILLEGAL if the cell is occupied or the arguments
            are out of range
        """
        if position < 0 or position >= 16 or tile not in (1, 2):
            return ILLEGAL
        if self[position] != 0:
            return ILLEGAL
        self[position] = tile
        return 0

    def slide(self, direction: int) -> int:
        """
        Slide and merge all tiles in the specified direction, in place.

        Args:
            direction: 0=up, 1=down, 2=left, 3=right

        Returns:
            Reward (sum of the merged tiles' values), or ILLEGAL if nothing
            moved, in which case the board is left unchanged
        """
        if direction == LEFT:
            grid, reward = self._move_left(self.grid.copy())
        elif direction == RIGHT:
            grid, reward = self._move_right(self.grid.copy())
        elif direction == UP:
            grid, reward = self._move_up(self.grid.copy())
        elif direction == DOWN:
            grid, reward = self._move_down(self.grid.copy())
        else:
            raise ValueError(f"Invalid direction: {direction}")

        if np.array_equal(grid, self.grid):
            return ILLEGAL
        self.grid = grid
        return reward

    def has_legal_move(self) -> bool:
        """Check if any slide would change the board."""
        if np.any(self.grid == 0):
            return True
        # A full board can still merge horizontally or vertically
        if np.any(self.grid[:, :-1] == self.grid[:, 1:]):
            return True
        return bool(np.any(self.grid[:-1, :] == self.grid[1:, :]))

    def _move_left(self, grid: np.ndarray) -> Tuple[np.ndarray, int]:
        reward = 0
        for i in range(4):
            row, row_reward = self._merge_line(grid[i, :])
            grid[i, :] = row
            reward += row_reward
        return grid, reward

    def _move_right(self, grid: np.ndarray) -> Tuple[np.ndarray, int]:
        reward = 0
        for i in range(4):
            row, row_reward = self._merge_line(grid[i, ::-1])
            grid[i, :] = row[::-1]
            reward += row_reward
        return grid, reward

    def _move_up(self, grid: np.ndarray) -> Tuple[np.ndarray, int]:
        reward = 0
        for j in range(4):
            col, col_reward = self._merge_line(grid[:, j])
            grid[:, j] = col
            reward += col_reward
        return grid, reward

    def _move_down(self, grid: np.ndarray) -> Tuple[np.ndarray, int]:
        reward = 0
        for j in range(4):
            col, col_reward = self._merge_line(grid[::-1, j])
            grid[:, j] = col[::-1]
            reward += col_reward
        return grid, reward

    @staticmethod
    def _merge_line(line: np.ndarray) -> Tuple[np.ndarray, int]:
        """
        Merge a line (row or column) toward the beginning.

        Args:
            line: 1D array of 4 ranks

        Returns:
            Tuple of (merged_line, reward)
        """
        reward = 0
        tiles = [int(x) for x in line if x != 0]

        # Each tile takes part in at most one merge
        merged = []
        i = 0
        while i < len(tiles):
            if i + 1 < len(tiles) and tiles[i] == tiles[i + 1]:
                merged_rank = tiles[i] + 1
                merged.append(merged_rank)
                reward += 2 ** merged_rank
                i += 2
            else:
                merged.append(tiles[i])
                i += 1

        padded_line = np.zeros(4, dtype=np.int32)
        padded_line[:len(merged)] = merged
        return padded_line, reward


class Game2048Env(gym.Env):
    """
    2048 Game Environment compatible with Gymnasium API.

    The player's slides are actions of this environment; after every legal
    slide the environment agent places a new tile.

    - Actions: 0=up, 1=down, 2=left, 3=right
    - Observation: 4x4 grid of ranks
    - Reward: Sum of merged tiles in each step
    - Episode termination: When no more moves are possible
    """

    metadata = {"render_modes": ["human", "ansi"], "render_fps": 4}

    def __init__(self, environment: "Agent", render_mode: Optional[str] = None):
        """
        Initialize the 2048 game environment.

        Args:
            environment: Agent that places the new tiles
            render_mode: Optional render mode ('human', 'ansi' or None)
        """
        super().__init__()

        self.environment = environment
        self.render_mode = render_mode

        self.board = Board()
        self.score: int = 0
        self.moves_made: int = 0

        self.action_space = spaces.Discrete(4)
        # Ranks beyond 2^24 are unusual but representable
        self.observation_space = spaces.Box(low=0, high=31, shape=(4, 4), dtype=np.int32)

    def _place_tile(self) -> bool:
        action = self.environment.take_action(self.board)
        return action.apply(self.board) != ILLEGAL

    def _info(self, grid_changed: bool = False) -> Dict[str, Any]:
        return {
            "score": self.score,
            "moves": self.moves_made,
            "max_tile": self.board.max_tile(),
            "grid_changed": grid_changed,
        }

    def reset(self, seed: Optional[int] = None, options: Optional[Dict] = None) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Clear the board and let the environment agent place two tiles.

        Args:
            seed: Accepted for API compatibility; tile placement randomness
                belongs to the environment agent
            options: Unused

        Returns:
            Tuple of (observation, info)
        """
        super().reset(seed=seed)
        self.board = Board()
        self.score = 0
        self.moves_made = 0

        self.environment.open_episode()
        for _ in range(2):
            self._place_tile()

        return self.board.grid.copy(), self._info()

    def step(self, action: int) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        """
        Execute one slide and, if it changed the board, one tile placement.

        Args:
            action: 0=up, 1=down, 2=left, 3=right

        Returns:
            observation, reward, terminated, truncated, info
        """
        if not isinstance(action, (int, np.integer)):
            raise ValueError(f"Invalid action type: {type(action)}")
        if action < 0 or action >= self.action_space.n:
            raise ValueError(f"Invalid action: {action}")

        reward = self.board.slide(int(action))
        grid_changed = reward != ILLEGAL
        if grid_changed:
            self.score += reward
            self.moves_made += 1
            self._place_tile()
        else:
            reward = 0

        terminated = not self.board.has_legal_move()
        if terminated:
            self.environment.close_episode()

        if self.render_mode == "human":
            self.render()

        return self.board.grid.copy(), float(reward), terminated, False, self._info(grid_changed)

    def render(self) -> Optional[str]:
        """
        Render the current game state.

        Returns:
            String representation of the grid for 'ansi' and 'human' modes
        """
        if self.render_mode is None:
            return None
        output = f"Score: {self.score} | Moves: {self.moves_made}\n{self.board}"
        if self.render_mode == "human":
            print(output)
        return output

    def get_grid_actual_values(self) -> np.ndarray:
        """
        Get the actual tile values (not ranks).

        Returns:
            4x4 array with displayed 2048 values
        """
        actual_grid = np.zeros_like(self.board.grid, dtype=np.int64)
        mask = self.board.grid > 0
        actual_grid[mask] = 2 ** self.board.grid[mask].astype(np.int64)
        return actual_grid
