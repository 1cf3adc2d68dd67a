"""
basefeebet/protocol/

Round/group state machine, winner selection and settlement.
"""

from .timing import TimingPolicy
from .guess import extract_guess, winning_guess
from .sorted_index import SortedGuessIndex
from .ledger import RoundLedger, Round, Group, Wager, WagerStatus, GroupCheckpoint
from .events import (
    EventEmitter,
    GameEvent,
    BetPlaced,
    SignalRequested,
    SignalReceived,
    Claimed,
    Withdrawn,
)
from .settlement import SettlementEngine
from .signal import SignalHandshake
from .game import BaseFeeGame, ClaimResult

__all__ = [
    "TimingPolicy",
    "extract_guess",
    "winning_guess",
    "SortedGuessIndex",
    "RoundLedger",
    "Round",
    "Group",
    "Wager",
    "WagerStatus",
    "GroupCheckpoint",
    # Events
    "EventEmitter",
    "GameEvent",
    "BetPlaced",
    "SignalRequested",
    "SignalReceived",
    "Claimed",
    "Withdrawn",
    # Settlement & handshake
    "SettlementEngine",
    "SignalHandshake",
    "BaseFeeGame",
    "ClaimResult",
]
