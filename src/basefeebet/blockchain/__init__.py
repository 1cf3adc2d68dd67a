"""
basefeebet/blockchain/

Native-balance transfer backends for the game.
"""

from .funds import FundsTransfer, InMemoryFunds

__all__ = [
    "FundsTransfer",
    "InMemoryFunds",
]
