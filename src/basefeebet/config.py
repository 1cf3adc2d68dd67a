"""
basefeebet/config.py

Configuration constants and data classes for basefeebet.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("basefeebet.config")


# Fixed-point unit of the host ledger (18 fractional digits)
DECIMALS = 18
UNIT = 10 ** DECIMALS

# Guess domain
GUESS_MIN = 100
GUESS_MAX = 999

# Maximum number of x10 steps tried when extracting a guess
MAX_SCALE = 18

# Timing (in time-steps / blocks)
ROUND_LENGTH = 1000         # each round starts this many steps after the previous
BETTING_WINDOW = 1000       # betting is open for the first BETTING_WINDOW steps
REVEAL_DELAY = 2000         # signal is read at round_start + REVEAL_DELAY
RESPONSE_WINDOW = 256       # oracle must answer within this many steps of reveal

# Economics
DEFAULT_COMMISSION_RATE = 1                 # percent of the group pool
DEFAULT_ORACLE_FEE = UNIT // 1000           # 0.001 native units per request

# Default identities (overridden by deployment)
DEFAULT_GAME_ACCOUNT = "game"
DEFAULT_OPERATOR = "operator"
DEFAULT_ORACLE = "oracle"

ENV_PREFIX = "BASEFEEBET_"


@dataclass(frozen=True)
class GameConfig:
    """
    Process-wide game configuration.

    Initialized once at construction and read-only thereafter.

    Usage:
        config = GameConfig(game_start=19_000_000, oracle="0xOracle")
        config = GameConfig.from_env()
    """

    game_start: int = 0
    oracle: str = DEFAULT_ORACLE
    operator: str = DEFAULT_OPERATOR
    game_account: str = DEFAULT_GAME_ACCOUNT

    commission_rate: int = DEFAULT_COMMISSION_RATE
    oracle_fee: int = DEFAULT_ORACLE_FEE

    guess_min: int = GUESS_MIN
    guess_max: int = GUESS_MAX
    max_scale: int = MAX_SCALE
    decimals: int = DECIMALS

    round_length: int = ROUND_LENGTH
    betting_window: int = BETTING_WINDOW
    reveal_delay: int = REVEAL_DELAY
    response_window: int = RESPONSE_WINDOW

    @property
    def unit(self) -> int:
        """Fixed-point scale of the native currency."""
        return 10 ** self.decimals

    def validate(self) -> None:
        """Raise ValueError if the configuration is inconsistent."""
        if self.game_start < 0:
            raise ValueError(f"game_start must be >= 0, got {self.game_start}")
        if not 0 <= self.commission_rate <= 100:
            raise ValueError(f"commission_rate must be within 0..100, got {self.commission_rate}")
        if self.oracle_fee < 0:
            raise ValueError(f"oracle_fee must be >= 0, got {self.oracle_fee}")
        if not 0 < self.guess_min <= self.guess_max:
            raise ValueError(f"Invalid guess bounds [{self.guess_min}, {self.guess_max}]")
        if not 0 < self.betting_window <= self.round_length:
            raise ValueError("betting_window must be within (0, round_length]")
        if self.reveal_delay < self.betting_window:
            raise ValueError("reveal_delay must not fall inside the betting window")
        if not self.oracle:
            raise ValueError("oracle identity is required")

    @classmethod
    def from_env(cls, **overrides) -> "GameConfig":
        """
        Build a configuration from BASEFEEBET_* environment variables.

        Recognized variables:
            BASEFEEBET_GAME_START, BASEFEEBET_ORACLE, BASEFEEBET_OPERATOR,
            BASEFEEBET_GAME_ACCOUNT, BASEFEEBET_COMMISSION_RATE,
            BASEFEEBET_ORACLE_FEE

        Keyword overrides take precedence over the environment.
        """
        values = {}

        for name in ("game_start", "commission_rate", "oracle_fee"):
            parsed = _env_int(name)
            if parsed is not None:
                values[name] = parsed

        for name in ("oracle", "operator", "game_account"):
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw:
                values[name] = raw.strip()

        values.update(overrides)
        config = cls(**values)
        config.validate()
        logger.info(
            f"Game config loaded: start={config.game_start} oracle={config.oracle} "
            f"commission={config.commission_rate}% fee={config.oracle_fee}"
        )
        return config


def _env_int(name: str) -> Optional[int]:
    """Read an integer environment variable, ignoring invalid values."""
    key = f"{ENV_PREFIX}{name.upper()}"
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"Invalid {key}={raw!r}, using default")
        return None
