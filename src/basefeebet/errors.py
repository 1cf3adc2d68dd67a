"""
basefeebet/errors.py

Exceptions raised by the game.

Every rejection aborts the triggering call with no partial state mutation.
"""


class GameError(Exception):
    """Base class for all game errors."""
    pass


# ============================================================================
# INPUT REJECTION (caller error, safe to retry with different input)
# ============================================================================

class InputRejected(GameError):
    """The call's input cannot be accepted."""
    pass


class ZeroBet(InputRejected):
    """Deposit amount is zero or negative."""
    pass


class NotBettingPhase(InputRejected):
    """Deposit arrived outside of any betting window."""
    pass


class InvalidGuess(InputRejected):
    """No scale class maps the amount into the guess range."""
    pass


class GuessOutOfRange(InputRejected):
    """Extracted guess falls outside the configured bounds."""
    pass


class GuessTaken(InputRejected):
    """Guess already occupied in this round and group."""
    pass


class InvalidTargetTime(InputRejected):
    """Signal target time does not correspond to a round's reveal time."""
    pass


class InvalidRecord(InputRejected):
    """Raw oracle record could not be decoded."""
    pass


# ============================================================================
# STATE-PRECONDITION VIOLATION (stale or duplicate call)
# ============================================================================

class StateViolation(GameError):
    """The call conflicts with the current state."""
    pass


class AlreadySettled(StateViolation):
    """Wager was already claimed or withdrawn."""
    pass


class AlreadySet(StateViolation):
    """Round signal was already set."""
    pass


class InvalidWagerReference(StateViolation):
    """No wager exists for the given reference."""
    pass


class SignalExpired(StateViolation):
    """Signal arrived after the oracle response window closed."""
    pass


# ============================================================================
# AUTHORIZATION / TRANSIENT / TRANSFER
# ============================================================================

class UnauthorizedCaller(GameError):
    """Only the configured oracle may submit signals."""
    pass


class ResultPending(GameError):
    """Signal unknown but the oracle may still answer; retry later."""
    pass


class TransferFailed(GameError):
    """A funds transfer could not be completed."""
    pass
