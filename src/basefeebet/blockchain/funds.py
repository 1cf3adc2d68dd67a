"""
basefeebet/blockchain/funds.py

Native-balance transfer primitives.

The game only needs three operations from the host ledger: accept an
incoming wager, send value out, and read a balance. Transfers are atomic
and either complete or raise TransferFailed; they carry no business logic.

Subclass FundsTransfer to implement a different backend.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set, Tuple

from ..config import DEFAULT_GAME_ACCOUNT
from ..errors import TransferFailed

logger = logging.getLogger("basefeebet.blockchain.funds")


class FundsTransfer(ABC):
    """
    Abstract base class for funds movement.

    All amounts are integers in the native fixed-point unit.
    """

    @abstractmethod
    def receive(self, sender: str, amount: int) -> None:
        """
        Move amount from sender into the game account.

        Raises:
            TransferFailed: if the sender cannot pay
        """
        pass

    @abstractmethod
    def send(self, recipient: str, amount: int) -> None:
        """
        Move amount from the game account to recipient.

        Raises:
            TransferFailed: if the transfer cannot complete
        """
        pass

    @abstractmethod
    def get_balance(self, account: str) -> int:
        """Get the native balance of an account."""
        pass


class InMemoryFunds(FundsTransfer):
    """
    Balance book kept in process memory.

    Used for local runs and tests. Accounts listed in `rejecting` refuse
    incoming transfers, which simulates a recipient whose receive hook
    reverts.

    Usage:
        funds = InMemoryFunds(balances={"alice": 10**18})
        funds.receive("alice", 10**17)
        funds.send("bob", 5 * 10**16)
    """

    def __init__(
        self,
        game_account: str = DEFAULT_GAME_ACCOUNT,
        balances: Optional[Dict[str, int]] = None,
        rejecting: Optional[Set[str]] = None,
    ):
        self.game_account = game_account
        self._balances: Dict[str, int] = dict(balances or {})
        self._balances.setdefault(game_account, 0)
        self.rejecting: Set[str] = set(rejecting or ())
        self.transfers: List[Tuple[str, str, int]] = []  # (sender, recipient, amount)

    def get_balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        """Credit an account out of thin air (test/dev helper)."""
        self._balances[account] = self.get_balance(account) + amount

    def receive(self, sender: str, amount: int) -> None:
        self._move(sender, self.game_account, amount)

    def send(self, recipient: str, amount: int) -> None:
        if recipient in self.rejecting:
            raise TransferFailed(f"Recipient {recipient} rejected {amount}")
        self._move(self.game_account, recipient, amount)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailed(f"Negative transfer amount {amount}")
        available = self.get_balance(sender)
        if available < amount:
            raise TransferFailed(
                f"Insufficient balance: {sender} has {available}, needs {amount}"
            )
        self._balances[sender] = available - amount
        self._balances[recipient] = self.get_balance(recipient) + amount
        self.transfers.append((sender, recipient, amount))
        logger.debug(f"Transfer {sender} -> {recipient}: {amount}")
