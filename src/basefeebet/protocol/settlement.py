"""
basefeebet/protocol/settlement.py

Lazy, once-per-group winner computation and payout accounting.

The first claim against a group after its round's signal is known runs
settle(); every later claim reads the cached result. Winner search is a
single nearest-neighbour lookup on the group's sorted index.

Accounting:
    commission = pool * commission_rate // 100
    pot        = pool - commission
    1 winner:  share = pot
    2 winners: share = pot // 2 each; the odd unit (pot % 2) goes to
               whichever of the two claims first

The tie remainder makes the split depend on claim order.
"""

import logging
from typing import Tuple

from .guess import winning_guess
from .ledger import Group
from ..config import GameConfig

logger = logging.getLogger("basefeebet.protocol.settlement")


class SettlementEngine:
    """
    Computes and caches group winners and shares.

    Usage:
        engine = SettlementEngine(config)
        winners = engine.settle(group, signal)
        if group.is_winner(guess):
            commission = engine.take_commission(group)
            payout = engine.take_share(group, guess)
    """

    def __init__(self, config: GameConfig):
        self.config = config

    def winning_guess(self, signal: int):
        return winning_guess(
            signal,
            decimals=self.config.decimals,
            max_scale=self.config.max_scale,
        )

    def settle(self, group: Group, signal: int) -> Tuple[int, ...]:
        """
        Compute the group's winners once.

        Args:
            group: Group to settle
            signal: Revealed signal of the group's round

        Returns:
            Winning guesses (empty when the signal maps to no guess or
            the group is empty)
        """
        if group.winners_computed:
            return group.winners

        target = self.winning_guess(signal)
        winners = () if target is None else group.index.nearest(target)
        group.winners = winners

        if winners:
            commission = group.pool * self.config.commission_rate // 100
            pot = group.pool - commission
            group.commission = commission
            if len(winners) == 1:
                group.share = pot
                group.tie_remainder = 0
            else:
                group.share = pot // 2
                group.tie_remainder = pot - 2 * group.share

        group.winners_computed = True
        logger.info(
            f"Settled round={group.round_index} scale={group.scale} signal={signal} "
            f"target={target} winners={list(winners)} pool={group.pool} "
            f"commission={group.commission} share={group.share}"
        )
        return winners

    def take_commission(self, group: Group) -> int:
        """
        Deduct the commission on the group's first winning claim.

        Returns:
            Commission to transfer now (0 if already taken)
        """
        if group.commission_taken:
            return 0
        group.commission_taken = True
        group.pool -= group.commission
        return group.commission

    def take_share(self, group: Group, guess: int) -> int:
        """
        Deduct a winner's share from the pool.

        Returns:
            Amount owed to the winner of guess
        """
        amount = group.share
        if len(group.winners) == 2 and not group.tie_remainder_paid:
            amount += group.tie_remainder
            group.tie_remainder_paid = True
        group.pool -= amount
        group.amounts[guess] = 0
        return amount
