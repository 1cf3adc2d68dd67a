"""
basefeebet/protocol/game.py

The base fee prediction game.

Entry points:
- deposit():        place a wager; the amount itself encodes the guess
- request_signal(): ask the oracle for a round's signal if it is due
- submit_signal():  oracle callback carrying the reveal block header
- claim():          resolve one wager to a payout, a refund, or "pending"

Every call runs to completion with no interleaving. Rejections raise a
GameError and leave no partial state. State is moved to its terminal form
before any outbound transfer.

Usage:
    from basefeebet import BaseFeeGame, GameConfig, InMemoryFunds

    game = BaseFeeGame(GameConfig(game_start=1000), InMemoryFunds(), oracle_client)
    game.subscribe(print)

    index = game.deposit("alice", 300 * 10**18, now=1500)
    ...
    result = game.claim("alice", index, now=3300)
"""

import logging
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional

from .events import Claimed, EventEmitter, GameEvent, BetPlaced, Withdrawn
from .guess import extract_guess
from .ledger import Group, GroupCheckpoint, Round, RoundLedger, Wager, WagerStatus
from .settlement import SettlementEngine
from .signal import SignalHandshake
from .timing import TimingPolicy
from ..blockchain.funds import FundsTransfer
from ..config import GameConfig
from ..errors import (
    AlreadySettled,
    GuessOutOfRange,
    GuessTaken,
    NotBettingPhase,
    ResultPending,
    TransferFailed,
    ZeroBet,
)
from ..oracle.client import OracleClient

logger = logging.getLogger("basefeebet.protocol.game")


@dataclass
class ClaimResult:
    """Outcome of a successful claim() call."""
    bettor: str
    wager_index: int
    status: WagerStatus
    payout: int
    winner: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data['status'] = self.status.value
        return data


class BaseFeeGame:
    """
    Round-based base fee prediction game.

    Wagers are bucketed by round and scale class. The wager(s) closest to
    the revealed base fee win their group's pool minus commission.
    """

    def __init__(
        self,
        config: GameConfig,
        funds: FundsTransfer,
        oracle_client: Optional[OracleClient] = None,
    ):
        """
        Initialize BaseFeeGame.

        Args:
            config: Immutable game configuration
            funds: Native-balance transfer backend
            oracle_client: Oracle collaborator (requests disabled if None)
        """
        config.validate()
        self.config = config
        self.funds = funds
        self.timing = TimingPolicy(config)
        self.ledger = RoundLedger()
        self.events = EventEmitter()
        self.settlement = SettlementEngine(config)
        self.handshake = SignalHandshake(
            config, self.timing, self.ledger, funds, oracle_client, self.events,
        )

    def subscribe(self, callback: Callable[[GameEvent], None]) -> None:
        """Register a callback for every emitted event."""
        self.events.subscribe(callback)

    # ========== Deposits ==========

    def deposit(self, bettor: str, amount: int, now: int) -> int:
        """
        Place a wager of amount at time-index now.

        Returns:
            Index of the wager in the bettor's wager list

        Raises:
            ZeroBet, NotBettingPhase, InvalidGuess, GuessOutOfRange,
            GuessTaken, TransferFailed
        """
        if amount <= 0:
            raise ZeroBet(f"Wager amount must be positive, got {amount}")

        if not self.timing.has_started(now):
            raise NotBettingPhase(f"Game starts at {self.config.game_start}, now {now}")
        round_index = self.timing.round_index(now)
        if not self.timing.in_betting_window(round_index, now):
            raise NotBettingPhase(f"Round {round_index} is not accepting wagers at {now}")

        guess, scale = extract_guess(
            amount,
            decimals=self.config.decimals,
            max_scale=self.config.max_scale,
        )
        if not self.config.guess_min <= guess <= self.config.guess_max:
            raise GuessOutOfRange(
                f"Guess {guess} outside [{self.config.guess_min}, {self.config.guess_max}]"
            )

        existing = self.ledger.peek_round(round_index)
        if existing is not None and scale in existing.groups and existing.groups[scale].has_guess(guess):
            raise GuessTaken(f"Guess {guess} already taken in round {round_index} scale {scale}")

        self.funds.receive(bettor, amount)
        wager_index = self.ledger.record_wager(bettor, round_index, scale, guess, amount, now)

        self.events.emit(BetPlaced(
            bettor=bettor,
            round_index=round_index,
            scale=scale,
            guess=guess,
            amount=amount,
            wager_index=wager_index,
        ))
        logger.info(
            f"Bet placed bettor={bettor} round={round_index} scale={scale} "
            f"guess={guess} amount={amount}"
        )

        # The round revealed most recently may now need its signal
        pending = self.timing.pending_reveal_round(now)
        if pending is not None:
            self.handshake.maybe_request(pending, now)

        return wager_index

    # ========== Oracle ==========

    def request_signal(self, round_index: int, now: int) -> bool:
        """
        Request a round's signal if it is due and not yet requested.

        Returns:
            True if a request was issued
        """
        return self.handshake.maybe_request(round_index, now)

    def submit_signal(self, caller: str, target_time_index: int, raw_record: bytes, now: int) -> int:
        """
        Oracle callback: store the base fee of the reveal block.

        Returns:
            The stored signal

        Raises:
            UnauthorizedCaller, InvalidTargetTime, AlreadySet,
            SignalExpired, InvalidRecord
        """
        return self.handshake.submit(caller, target_time_index, raw_record, now)

    # ========== Claims ==========

    def claim(self, bettor: str, wager_index: int, now: int) -> ClaimResult:
        """
        Resolve one wager.

        - signal unknown, oracle window open:    ResultPending
        - signal unknown, oracle window elapsed: refund (withdrawn)
        - signal known, group has no winners:    refund (withdrawn)
        - signal known, otherwise:               claimed; winners are paid

        A failed payout or refund transfer, whatever it raises, restores
        the wager and its group to their state before the call.

        Raises:
            InvalidWagerReference, AlreadySettled, ResultPending,
            TransferFailed
        """
        wager = self.ledger.get_wager(bettor, wager_index)
        if wager.is_settled:
            raise AlreadySettled(
                f"Wager #{wager_index} of {bettor} already {wager.status.value}"
            )

        rnd = self.ledger.round(wager.round_index)
        group = rnd.group(wager.scale)
        checkpoint = GroupCheckpoint.capture(group, wager)

        if not rnd.signal_known:
            if self.timing.response_window_elapsed(rnd.round_index, now):
                return self._refund(wager, wager_index, group, checkpoint)
            raise ResultPending(
                f"Round {rnd.round_index} signal pending until "
                f"{self.timing.response_deadline(rnd.round_index)}"
            )

        winners = self.settlement.settle(group, rnd.signal)
        if not winners:
            return self._refund(wager, wager_index, group, checkpoint)

        return self._claim(wager, wager_index, group, checkpoint)

    def _refund(
        self,
        wager: Wager,
        wager_index: int,
        group: Group,
        checkpoint: GroupCheckpoint,
    ) -> ClaimResult:
        amount = group.amounts.get(wager.guess, 0)
        wager.status = WagerStatus.WITHDRAWN
        wager.payout = amount
        group.amounts[wager.guess] = 0
        group.pool -= amount

        try:
            self.funds.send(wager.bettor, amount)
        except Exception:
            checkpoint.restore()
            raise

        self.events.emit(Withdrawn(
            bettor=wager.bettor,
            round_index=wager.round_index,
            scale=wager.scale,
            guess=wager.guess,
            amount=amount,
        ))
        logger.info(
            f"Refunded bettor={wager.bettor} round={wager.round_index} "
            f"scale={wager.scale} guess={wager.guess} amount={amount}"
        )
        return ClaimResult(
            bettor=wager.bettor,
            wager_index=wager_index,
            status=WagerStatus.WITHDRAWN,
            payout=amount,
        )

    def _claim(
        self,
        wager: Wager,
        wager_index: int,
        group: Group,
        checkpoint: GroupCheckpoint,
    ) -> ClaimResult:
        wager.status = WagerStatus.CLAIMED
        winner = group.is_winner(wager.guess)
        commission = 0
        payout = 0

        if winner:
            commission = self.settlement.take_commission(group)
            payout = self.settlement.take_share(group, wager.guess)
            wager.payout = payout
            try:
                self.funds.send(wager.bettor, payout)
            except Exception:
                checkpoint.restore()
                raise
        else:
            group.amounts[wager.guess] = 0

        if commission:
            self._send_commission(group, commission)

        self.events.emit(Claimed(
            bettor=wager.bettor,
            round_index=wager.round_index,
            scale=wager.scale,
            guess=wager.guess,
            amount=payout,
        ))
        logger.info(
            f"Claimed bettor={wager.bettor} round={wager.round_index} scale={wager.scale} "
            f"guess={wager.guess} winner={winner} payout={payout}"
        )
        return ClaimResult(
            bettor=wager.bettor,
            wager_index=wager_index,
            status=WagerStatus.CLAIMED,
            payout=payout,
            winner=winner,
        )

    def _send_commission(self, group: Group, commission: int) -> None:
        # A failing operator account must never block winner payouts
        try:
            self.funds.send(self.config.operator, commission)
        except TransferFailed as e:
            logger.warning(
                f"Commission transfer of {commission} for round={group.round_index} "
                f"scale={group.scale} failed: {e}"
            )

    # ========== Queries ==========

    def get_wager(self, bettor: str, wager_index: int) -> Wager:
        return self.ledger.get_wager(bettor, wager_index)

    def get_wagers(self, bettor: str) -> List[Wager]:
        return self.ledger.get_wagers(bettor)

    def get_round(self, round_index: int) -> Optional[Round]:
        return self.ledger.peek_round(round_index)

    def get_group(self, round_index: int, scale: int) -> Optional[Group]:
        rnd = self.ledger.peek_round(round_index)
        if rnd is None:
            return None
        return rnd.groups.get(scale)

    def current_round(self, now: int) -> Optional[int]:
        if not self.timing.has_started(now):
            return None
        return self.timing.round_index(now)

    # ========== Statistics ==========

    def get_stats(self) -> dict:
        """Get game statistics."""
        stats = {
            "game_start": self.config.game_start,
            "commission_rate": self.config.commission_rate,
            "oracle_fee": self.config.oracle_fee,
            "game_balance": self.funds.get_balance(self.config.game_account),
        }
        stats.update(self.ledger.get_stats())
        return stats
