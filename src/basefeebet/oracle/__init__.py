"""
basefeebet/oracle - Oracle collaborator interface.

Provides the outbound request interface, the header record codec and the
trio-based relay that delivers header records back to the game.
"""

from .client import OracleClient, QueuedOracleClient, SignalRequest
from .header import (
    decode_rlp,
    encode_rlp,
    encode_header,
    extract_base_fee,
)
from .relay import HeaderRelay, HeaderSource, InMemoryHeaderSource

__all__ = [
    "OracleClient",
    "QueuedOracleClient",
    "SignalRequest",
    "decode_rlp",
    "encode_rlp",
    "encode_header",
    "extract_base_fee",
    "HeaderRelay",
    "HeaderSource",
    "InMemoryHeaderSource",
]
