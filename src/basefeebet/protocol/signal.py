"""
basefeebet/protocol/signal.py

Oracle request/response handshake.

Request side: once a round's reveal time has passed, its signal is still
unknown, no request is outstanding and one of its group pools covers the
oracle fee, the game pays the fee from its own account and asks the oracle
for the header at the reveal time. Requests are best-effort: a failure is
logged and a later deposit (or an explicit request) tries again. The fee
is paid at most once per round; a retry after a failed request reuses it.

Response side: only the configured oracle may submit. The record is the
RLP header of the reveal block; its base fee becomes the round's signal.
A round's signal is written once and never changed.
"""

import logging
from typing import Optional

from .events import EventEmitter, SignalReceived, SignalRequested
from .ledger import RoundLedger
from .timing import TimingPolicy
from ..blockchain.funds import FundsTransfer
from ..config import GameConfig
from ..errors import (
    AlreadySet,
    InvalidRecord,
    InvalidTargetTime,
    SignalExpired,
    TransferFailed,
    UnauthorizedCaller,
)
from ..oracle.client import OracleClient
from ..oracle.header import extract_base_fee

logger = logging.getLogger("basefeebet.protocol.signal")


class SignalHandshake:
    """Issues oracle requests and consumes oracle responses."""

    def __init__(
        self,
        config: GameConfig,
        timing: TimingPolicy,
        ledger: RoundLedger,
        funds: FundsTransfer,
        oracle_client: Optional[OracleClient],
        events: EventEmitter,
    ):
        self.config = config
        self.timing = timing
        self.ledger = ledger
        self.funds = funds
        self.oracle_client = oracle_client
        self.events = events

    # ========== Requests ==========

    def should_request(self, round_index: int, now: int) -> bool:
        """Check every precondition for requesting round_index's signal."""
        if round_index < 1:
            return False
        rnd = self.ledger.peek_round(round_index)
        if rnd is None or rnd.signal_known or rnd.signal_requested_at is not None:
            return False
        if not self.timing.reveal_passed(round_index, now):
            return False
        if self.timing.response_window_elapsed(round_index, now):
            return False
        return rnd.largest_pool >= self.config.oracle_fee

    def maybe_request(self, round_index: int, now: int) -> bool:
        """
        Request the round's signal if due.

        Returns:
            True if a request was issued
        """
        if self.oracle_client is None or not self.should_request(round_index, now):
            return False

        rnd = self.ledger.round(round_index)
        target = self.timing.reveal_time(round_index)
        fee = self.config.oracle_fee

        if not rnd.fee_paid:
            try:
                self.funds.send(self.config.oracle, fee)
            except TransferFailed as e:
                logger.warning(f"Oracle fee payment failed for round {round_index}: {e}")
                return False
            rnd.fee_paid = True

        try:
            self.oracle_client.request_signal(target, fee)
        except Exception as e:
            logger.error(f"Oracle request failed for round {round_index}: {e}")
            return False

        rnd.signal_requested_at = now
        self.events.emit(SignalRequested(round_index=round_index, target_time_index=target, fee=fee))
        logger.info(f"Requested signal for round {round_index} (time-index {target}, fee {fee})")
        return True

    # ========== Responses ==========

    def submit(self, caller: str, target_time_index: int, raw_record: bytes, now: int) -> int:
        """
        Accept the oracle's answer for target_time_index.

        Returns:
            The stored signal value

        Raises:
            UnauthorizedCaller, InvalidTargetTime, AlreadySet,
            SignalExpired, InvalidRecord
        """
        if caller != self.config.oracle:
            raise UnauthorizedCaller(f"{caller} is not the configured oracle")

        if target_time_index < self.config.game_start + self.config.reveal_delay:
            raise InvalidTargetTime(f"Time-index {target_time_index} precedes the first reveal")
        round_index = self.timing.signal_round(target_time_index)
        if round_index is None:
            raise InvalidTargetTime(f"Time-index {target_time_index} is not a reveal time")
        if now < target_time_index:
            raise InvalidTargetTime(f"Time-index {target_time_index} is in the future (now {now})")

        existing = self.ledger.peek_round(round_index)
        if existing is not None and existing.signal_known:
            raise AlreadySet(f"Signal for round {round_index} already set to {existing.signal}")
        if self.timing.response_window_elapsed(round_index, now):
            raise SignalExpired(
                f"Response window for round {round_index} closed at "
                f"{self.timing.response_deadline(round_index)}"
            )

        number, base_fee = extract_base_fee(raw_record)
        if number != target_time_index:
            raise InvalidRecord(f"Record is for block {number}, expected {target_time_index}")

        rnd = self.ledger.round(round_index)
        rnd.signal = base_fee
        self.events.emit(SignalReceived(
            round_index=round_index,
            target_time_index=target_time_index,
            signal=base_fee,
        ))
        logger.info(f"Signal for round {round_index} set to {base_fee}")
        return base_fee
