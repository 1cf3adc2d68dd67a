"""
basefeebet/protocol/ledger.py

Persistent round/group state.

Rounds are keyed by round index and groups by scale class within a round.
Both are created lazily on first reference; nothing here ever enumerates
all rounds, groups or bettors.

    RoundLedger
      rounds: round_index -> Round
        signal (set once)
        groups: scale -> Group
          index:   SortedGuessIndex
          bettors: guess -> bettor
          amounts: guess -> remaining amount
          pool, winners, shares, commission flags
      wagers: bettor -> [Wager, ...]   (append-only)
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .sorted_index import SortedGuessIndex
from ..errors import GuessTaken, InvalidWagerReference

logger = logging.getLogger("basefeebet.protocol.ledger")


# ============================================================================
# DATA CLASSES
# ============================================================================

class WagerStatus(Enum):
    """Lifecycle of a wager: pending -> claimed | withdrawn (terminal)."""
    PENDING = 'pending'
    CLAIMED = 'claimed'
    WITHDRAWN = 'withdrawn'


@dataclass
class Wager:
    """A single recorded bet. Never deleted."""
    bettor: str
    round_index: int
    scale: int
    guess: int
    amount: int
    placed_at: int
    status: WagerStatus = WagerStatus.PENDING
    payout: int = 0

    @property
    def is_settled(self) -> bool:
        return self.status is not WagerStatus.PENDING

    def to_dict(self) -> dict:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass
class Group:
    """
    Fairness bucket of one round: all wagers sharing a scale class.

    Winner data is computed at most once (see SettlementEngine) and read
    by every later claim.
    """
    round_index: int
    scale: int
    index: SortedGuessIndex = field(default_factory=SortedGuessIndex)
    bettors: Dict[int, str] = field(default_factory=dict)   # guess -> bettor
    amounts: Dict[int, int] = field(default_factory=dict)   # guess -> remaining amount
    pool: int = 0

    # Settlement (memoized)
    winners_computed: bool = False
    winners: Tuple[int, ...] = ()
    commission: int = 0
    commission_taken: bool = False
    share: int = 0                  # per-winner share (floor for ties)
    tie_remainder: int = 0          # odd unit of a tie, paid to the first claimant
    tie_remainder_paid: bool = False

    def has_guess(self, guess: int) -> bool:
        return guess in self.bettors

    def add_wager(self, guess: int, bettor: str, amount: int) -> None:
        """Record a wager on a free guess."""
        if guess in self.bettors:
            raise GuessTaken(
                f"Guess {guess} already taken in round {self.round_index} scale {self.scale}"
            )
        self.index.insert(guess)
        self.bettors[guess] = bettor
        self.amounts[guess] = amount
        self.pool += amount

    def is_winner(self, guess: int) -> bool:
        return guess in self.winners

    def get_stats(self) -> dict:
        return {
            "round_index": self.round_index,
            "scale": self.scale,
            "guesses": len(self.index),
            "pool": self.pool,
            "winners_computed": self.winners_computed,
            "winners": list(self.winners),
            "commission": self.commission,
            "commission_taken": self.commission_taken,
            "share": self.share,
        }


@dataclass
class Round:
    """One round: its revealed signal and its groups."""
    round_index: int
    signal: Optional[int] = None            # None until the oracle answers
    signal_requested_at: Optional[int] = None
    fee_paid: bool = False                  # oracle fee sent for this round
    groups: Dict[int, Group] = field(default_factory=dict)

    @property
    def signal_known(self) -> bool:
        return self.signal is not None

    @property
    def largest_pool(self) -> int:
        """Largest group pool of the round (at most one group per scale)."""
        return max((group.pool for group in self.groups.values()), default=0)

    def group(self, scale: int) -> Group:
        """Get or lazily create the group for a scale class."""
        group = self.groups.get(scale)
        if group is None:
            group = Group(round_index=self.round_index, scale=scale)
            self.groups[scale] = group
        return group


@dataclass
class GroupCheckpoint:
    """
    Snapshot of everything a single claim may mutate.

    Restoring it undoes the call when the payout transfer fails.
    """
    group: Group
    wager: Wager
    guess: int
    pool: int
    amount: int
    winners_computed: bool
    winners: Tuple[int, ...]
    commission: int
    commission_taken: bool
    share: int
    tie_remainder: int
    tie_remainder_paid: bool
    status: WagerStatus
    payout: int

    @classmethod
    def capture(cls, group: Group, wager: Wager) -> "GroupCheckpoint":
        return cls(
            group=group,
            wager=wager,
            guess=wager.guess,
            pool=group.pool,
            amount=group.amounts.get(wager.guess, 0),
            winners_computed=group.winners_computed,
            winners=group.winners,
            commission=group.commission,
            commission_taken=group.commission_taken,
            share=group.share,
            tie_remainder=group.tie_remainder,
            tie_remainder_paid=group.tie_remainder_paid,
            status=wager.status,
            payout=wager.payout,
        )

    def restore(self) -> None:
        group = self.group
        group.pool = self.pool
        group.amounts[self.guess] = self.amount
        group.winners_computed = self.winners_computed
        group.winners = self.winners
        group.commission = self.commission
        group.commission_taken = self.commission_taken
        group.share = self.share
        group.tie_remainder = self.tie_remainder
        group.tie_remainder_paid = self.tie_remainder_paid
        self.wager.status = self.status
        self.wager.payout = self.payout


# ============================================================================
# ROUND LEDGER
# ============================================================================

class RoundLedger:
    """
    Global ledger of rounds, groups and wagers.

    Usage:
        ledger = RoundLedger()
        wager_index = ledger.record_wager(bettor, n, scale, guess, amount, now)
        wager = ledger.get_wager(bettor, wager_index)
    """

    def __init__(self):
        self._rounds: Dict[int, Round] = {}
        self._wagers: Dict[str, List[Wager]] = {}   # bettor -> wagers

    def round(self, round_index: int) -> Round:
        """Get or lazily create a round."""
        rnd = self._rounds.get(round_index)
        if rnd is None:
            rnd = Round(round_index=round_index)
            self._rounds[round_index] = rnd
        return rnd

    def peek_round(self, round_index: int) -> Optional[Round]:
        """Get a round without creating it."""
        return self._rounds.get(round_index)

    def group(self, round_index: int, scale: int) -> Group:
        return self.round(round_index).group(scale)

    def record_wager(
        self,
        bettor: str,
        round_index: int,
        scale: int,
        guess: int,
        amount: int,
        placed_at: int,
    ) -> int:
        """
        Record a wager in its group and in the bettor's history.

        Returns:
            Index of the wager in the bettor's list

        Raises:
            GuessTaken: if the guess is occupied in the group
        """
        rnd = self.round(round_index)
        group = rnd.group(scale)
        group.add_wager(guess, bettor, amount)

        wager = Wager(
            bettor=bettor,
            round_index=round_index,
            scale=scale,
            guess=guess,
            amount=amount,
            placed_at=placed_at,
        )
        wagers = self._wagers.setdefault(bettor, [])
        wagers.append(wager)
        logger.debug(
            f"Recorded wager bettor={bettor} round={round_index} scale={scale} "
            f"guess={guess} amount={amount}"
        )
        return len(wagers) - 1

    def get_wager(self, bettor: str, wager_index: int) -> Wager:
        """
        Resolve a wager reference.

        Raises:
            InvalidWagerReference: if the bettor has no such wager
        """
        wagers = self._wagers.get(bettor)
        if not wagers or not 0 <= wager_index < len(wagers):
            raise InvalidWagerReference(f"No wager #{wager_index} for bettor {bettor}")
        return wagers[wager_index]

    def get_wagers(self, bettor: str) -> List[Wager]:
        return list(self._wagers.get(bettor, []))

    def get_stats(self) -> dict:
        return {
            "rounds": len(self._rounds),
            "bettors": len(self._wagers),
        }
