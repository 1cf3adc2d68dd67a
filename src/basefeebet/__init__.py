"""
basefeebet - Round-based base fee prediction game

Bettors wager on the base fee of a future block. The wager amount encodes
the guess: its first three significant digits are the guess and the
number of x10 steps needed to reach them is the group. Within each
round and group, the guess closest to the revealed base fee wins the
pool minus commission.

Usage:
    import trio
    from basefeebet import BaseFeeGame, GameConfig, InMemoryFunds, QueuedOracleClient

    send_channel, receive_channel = trio.open_memory_channel(100)
    game = BaseFeeGame(
        GameConfig.from_env(),
        InMemoryFunds(),
        QueuedOracleClient(send_channel),
    )

    index = game.deposit("alice", 300 * 10**18, now=block_number)

    # later, once the oracle delivered the reveal block header
    result = game.claim("alice", index, now=block_number)

Relay Usage:
    from basefeebet.oracle import HeaderRelay, InMemoryHeaderSource

    relay = HeaderRelay(game, receive_channel, InMemoryHeaderSource(), clock)
    async with trio.open_nursery() as nursery:
        await nursery.start(relay.run)
"""

from .config import GameConfig, UNIT, GUESS_MIN, GUESS_MAX
from .errors import (
    GameError,
    InputRejected,
    StateViolation,
    ZeroBet,
    NotBettingPhase,
    InvalidGuess,
    GuessOutOfRange,
    GuessTaken,
    InvalidTargetTime,
    InvalidRecord,
    AlreadySettled,
    AlreadySet,
    InvalidWagerReference,
    SignalExpired,
    UnauthorizedCaller,
    ResultPending,
    TransferFailed,
)
from .protocol import (
    BaseFeeGame,
    ClaimResult,
    TimingPolicy,
    SortedGuessIndex,
    WagerStatus,
    extract_guess,
    winning_guess,
)
from .blockchain import FundsTransfer, InMemoryFunds
from .oracle import (
    OracleClient,
    QueuedOracleClient,
    HeaderRelay,
    InMemoryHeaderSource,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "BaseFeeGame",
    "ClaimResult",
    "GameConfig",
    "TimingPolicy",
    "SortedGuessIndex",
    "WagerStatus",
    "extract_guess",
    "winning_guess",
    "UNIT",
    "GUESS_MIN",
    "GUESS_MAX",
    # Funds
    "FundsTransfer",
    "InMemoryFunds",
    # Oracle
    "OracleClient",
    "QueuedOracleClient",
    "HeaderRelay",
    "InMemoryHeaderSource",
    # Errors
    "GameError",
    "InputRejected",
    "StateViolation",
    "ZeroBet",
    "NotBettingPhase",
    "InvalidGuess",
    "GuessOutOfRange",
    "GuessTaken",
    "InvalidTargetTime",
    "InvalidRecord",
    "AlreadySettled",
    "AlreadySet",
    "InvalidWagerReference",
    "SignalExpired",
    "UnauthorizedCaller",
    "ResultPending",
    "TransferFailed",
]
