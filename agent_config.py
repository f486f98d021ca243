"""
Agent configuration parsed from flat "key=value" strings, e.g.

    "name=TD alpha=0.0025 load=weights.bin save=weights.bin"

The string is parsed and validated once; agents only read typed fields.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Optional


DEFAULT_ALPHA = 0.005

PLAYER_DEFAULTS = "name=TD alpha=0.005 role=player"
ENVIRONMENT_DEFAULTS = "name=random role=environment"


class ConfigError(ValueError):
    """Raised when an agent configuration string is invalid."""


@dataclass
class AgentConfig:
    name: str = "unknown"
    role: str = "unknown"
    alpha: float = DEFAULT_ALPHA
    seed: Optional[int] = None
    init: Optional[str] = None
    load: Optional[str] = None
    save: Optional[str] = None
    meta: Dict[str, str] = field(default_factory=dict)


def split_pairs(args: str) -> Dict[str, str]:
    """
    Split a whitespace separated "key=value" string into a dict.

    A token without "=" maps to itself (so a bare "init" means init=init).
    Later tokens override earlier ones.
    """
    meta = {}
    for pair in args.split():
        key, sep, value = pair.partition("=")
        meta[key] = value if sep else key
    return meta


def _to_float(key: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ConfigError(f"{key}={value} is not a number") from None
    if not math.isfinite(number):
        raise ConfigError(f"{key}={value} is not a finite number")
    return number


def _to_seed(key: str, value: str) -> int:
    try:
        seed = int(value)
    except ValueError:
        number = _to_float(key, value)
        if not number.is_integer():
            raise ConfigError(f"{key}={value} is not an integer") from None
        seed = int(number)
    if not 0 <= seed < 2 ** 32:
        raise ConfigError(f"{key}={value} must be in 0..2**32-1")
    return seed


def parse_agent_args(args: str = "", defaults: str = "") -> AgentConfig:
    """
    Parse an agent configuration string.

    Args:
        args: User supplied "key=value" pairs
        defaults: Pairs applied first, overridden by args

    Returns:
        Typed configuration

    Raises:
        ConfigError: If a numeric option does not parse or is out of range
    """
    meta = split_pairs("name=unknown role=unknown " + defaults + " " + args)

    alpha = _to_float("alpha", meta["alpha"]) if "alpha" in meta else DEFAULT_ALPHA
    if alpha < 0:
        raise ConfigError(f"alpha={alpha} must not be negative")
    seed = _to_seed("seed", meta["seed"]) if "seed" in meta else None

    return AgentConfig(
        name=meta["name"],
        role=meta["role"],
        alpha=alpha,
        seed=seed,
        init=meta.get("init"),
        load=meta.get("load"),
        save=meta.get("save"),
        meta=meta,
    )
