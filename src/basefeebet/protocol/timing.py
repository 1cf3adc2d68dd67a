"""
basefeebet/protocol/timing.py

Round timing derived from the current time-index (block number).

Rounds start every ROUND_LENGTH steps and overlap: round n's waiting
period coincides with round n+1's betting window. There is no explicit
"closed" transition; everything is derived from the current time-index.

    round n:   |--- betting ---|---- waiting ----|reveal
    round n+1:                 |--- betting ---|---- waiting ----|reveal

Usage:
    from basefeebet.protocol.timing import TimingPolicy

    timing = TimingPolicy(config)
    n = timing.round_index(block_number)
    if timing.in_betting_window(n, block_number):
        ...
"""

import logging
from typing import Optional

from ..config import GameConfig

logger = logging.getLogger("basefeebet.protocol.timing")


class TimingPolicy:
    """Pure, stateless timing rules for a game configuration."""

    def __init__(self, config: GameConfig):
        self.config = config

    @property
    def game_start(self) -> int:
        return self.config.game_start

    def has_started(self, t: int) -> bool:
        """Check whether the game has started at time-index t."""
        return t >= self.config.game_start

    def round_index(self, t: int) -> int:
        """
        Get the round index for time-index t.

        Args:
            t: Current time-index, must be >= game start

        Returns:
            Round index (first round is 1)
        """
        if not self.has_started(t):
            raise ValueError(f"Time-index {t} precedes game start {self.config.game_start}")
        return (t - self.config.game_start) // self.config.round_length + 1

    def round_start(self, n: int) -> int:
        """First time-index of round n."""
        return self.config.game_start + (n - 1) * self.config.round_length

    def betting_end(self, n: int) -> int:
        """Last time-index at which round n accepts wagers."""
        return self.round_start(n) + self.config.betting_window - 1

    def reveal_time(self, n: int) -> int:
        """Time-index whose base fee decides round n."""
        return self.round_start(n) + self.config.reveal_delay

    def response_deadline(self, n: int) -> int:
        """Last time-index at which the oracle may answer for round n."""
        return self.reveal_time(n) + self.config.response_window

    def in_betting_window(self, n: int, t: int) -> bool:
        """Check whether t falls inside round n's betting window."""
        return self.round_start(n) <= t <= self.betting_end(n)

    def reveal_passed(self, n: int, t: int) -> bool:
        return t >= self.reveal_time(n)

    def response_window_elapsed(self, n: int, t: int) -> bool:
        """Check whether the oracle can no longer answer for round n."""
        return t > self.response_deadline(n)

    def signal_round(self, target_time_index: int) -> Optional[int]:
        """
        Map a reveal time-index back to its round.

        Returns:
            Round index, or None if target_time_index is not exactly a
            round's reveal time.
        """
        offset = target_time_index - self.config.game_start - self.config.reveal_delay
        if offset < 0:
            return None
        n = offset // self.config.round_length + 1
        if self.reveal_time(n) != target_time_index:
            return None
        return n

    def pending_reveal_round(self, t: int) -> Optional[int]:
        """
        Get the round whose reveal time was most recently reached at t.

        A deposit into round n happens after round n-2's reveal time
        (reveal(n-2) == round_start(n)), so that round is the one whose
        signal may need requesting.
        """
        if not self.has_started(t):
            return None
        offset = t - self.config.game_start - self.config.reveal_delay
        if offset < 0:
            return None
        return offset // self.config.round_length + 1
