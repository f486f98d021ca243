"""
Agents for 2048: players that choose slides and environments that place
tiles.

The TD player learns an n-tuple network value function over afterstates
(the board right after a slide, before the new tile appears). It plays the
move maximizing reward + estimated afterstate value, records each chosen
afterstate, and runs a backward TD(0) pass when the episode closes.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Type

import numpy as np

from action import Action
from agent_config import (
    AgentConfig, ConfigError, parse_agent_args,
    PLAYER_DEFAULTS, ENVIRONMENT_DEFAULTS,
)
from game_2048 import Board, ILLEGAL, DIRECTIONS
from ntuple_network import NTupleNetwork, td_backward_update

logger = logging.getLogger(__name__)


class Agent:
    """Base agent: holds the configuration and the episode hooks."""

    def __init__(self, config: AgentConfig):
        self.config = config
        logger.info(" ".join(f"{k}={v}" for k, v in sorted(config.meta.items())))

    def open_episode(self, flag: str = "") -> None:
        pass

    def close_episode(self, flag: str = "") -> None:
        pass

    def take_action(self, board: Board) -> Action:
        return Action.none()

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def get_property(self, key: str) -> str:
        return self.config.meta[key]

    def notify(self, message: str) -> None:
        """Set a meta property from a "key=value" message."""
        key, _, value = message.partition("=")
        self.config.meta[key] = value

    @property
    def name(self) -> str:
        return self.get_property("name")

    @property
    def role(self) -> str:
        return self.get_property("role")


class RandomAgent(Agent):
    """Base agent for agents with randomness."""

    def __init__(self, config: AgentConfig):
        super().__init__(config)
        self._rng = np.random.RandomState(config.seed)


@dataclass
class Step:
    reward: int
    after: Board


class TDPlayer(RandomAgent):
    """
    Player that learns an n-tuple network with TD(0) over afterstates.

    With alpha=0 the network is frozen and the player only evaluates.
    """

    def __init__(self, config: AgentConfig, network: NTupleNetwork = None):
        """
        Args:
            config: Parsed configuration; `load` reads weights from a file,
                `save` writes them on close()
            network: Optional network to start from instead of a fresh one
        """
        super().__init__(config)
        self.alpha = config.alpha
        self.history: List[Step] = []
        self.network = network if network is not None else NTupleNetwork()
        if config.init is not None:
            self.network.tables[:] = 0.0
        if config.load is not None:
            self.network.load(config.load)

    def open_episode(self, flag: str = "") -> None:
        self.history.clear()

    def close_episode(self, flag: str = "") -> None:
        # History stays readable until the next episode opens
        td_backward_update(self.network, self.history, self.alpha)

    def take_action(self, board: Board) -> Action:
        best_op = None
        best_score = -np.inf
        best_step = None
        for op in DIRECTIONS:
            after = board.copy()
            reward = after.slide(op)
            if reward == ILLEGAL:
                continue
            score = reward + self.network.estimate(after)
            if score > best_score:
                best_op = op
                best_score = score
                best_step = Step(reward, after)

        if best_op is None:
            return Action.none()
        self.history.append(best_step)
        return Action.slide(best_op)

    def close(self) -> None:
        if self.config.save is not None:
            self.network.save(self.config.save)


class DummyPlayer(RandomAgent):
    """Plays a uniformly random legal slide."""

    def take_action(self, board: Board) -> Action:
        opcode = list(DIRECTIONS)
        self._rng.shuffle(opcode)
        for op in opcode:
            if board.copy().slide(op) != ILLEGAL:
                return Action.slide(op)
        return Action.none()


class GreedyScorePlayer(RandomAgent):
    """Plays the slide with the highest immediate reward."""

    def take_action(self, board: Board) -> Action:
        best_op = None
        best_reward = ILLEGAL
        for op in DIRECTIONS:
            reward = board.copy().slide(op)
            if reward > best_reward:
                best_op = op
                best_reward = reward
        if best_op is None:
            return Action.none()
        return Action.slide(best_op)


class GreedyPositionPlayer(RandomAgent):
    """Plays the highest immediate reward, preferring fuller boards on ties."""

    def take_action(self, board: Board) -> Action:
        best_op = None
        best_reward = ILLEGAL
        best_space = 17
        for op in DIRECTIONS:
            after = board.copy()
            reward = after.slide(op)
            if reward == ILLEGAL:
                continue
            space_left = after.space_left()
            if reward > best_reward or (reward == best_reward and space_left < best_space):
                best_op = op
                best_reward = reward
                best_space = space_left
        if best_op is None:
            return Action.none()
        return Action.slide(best_op)


class RandomEnvironment(RandomAgent):
    """
    Adds a new random tile to an empty cell.

    2-tile: 90%
    4-tile: 10%
    """

    def take_action(self, board: Board) -> Action:
        space = np.arange(16)
        self._rng.shuffle(space)
        for pos in space:
            if board[int(pos)] != 0:
                continue
            tile = 1 if self._rng.randint(0, 10) else 2
            return Action.place(int(pos), tile)
        return Action.none()


PLAYERS: Dict[str, Type[Agent]] = {
    "TD": TDPlayer,
    "dummy": DummyPlayer,
    "greedy_score": GreedyScorePlayer,
    "greedy_pos": GreedyPositionPlayer,
}

ENVIRONMENTS: Dict[str, Type[Agent]] = {
    "random": RandomEnvironment,
}


def make_player(args: str = "") -> Agent:
    """
    Build a player from a configuration string.

    Raises:
        ConfigError: If the name is not a known player kind
    """
    config = parse_agent_args(args, PLAYER_DEFAULTS)
    if config.name not in PLAYERS:
        raise ConfigError(f"{config.name} is not a valid player name")
    return PLAYERS[config.name](config)


def make_environment(args: str = "") -> Agent:
    """
    Build an environment agent from a configuration string.

    Raises:
        ConfigError: If the name is not a known environment kind
    """
    config = parse_agent_args(args, ENVIRONMENT_DEFAULTS)
    if config.name not in ENVIRONMENTS:
        raise ConfigError(f"{config.name} is not a valid environment name")
    return ENVIRONMENTS[config.name](config)
