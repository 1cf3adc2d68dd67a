"""
basefeebet/oracle/client.py

Outbound side of the oracle handshake.

The game asks its oracle collaborator for the header of a target
time-index and pays a fee; the answer arrives later through
BaseFeeGame.submit_signal. Requests are fire-and-forget from the game's
point of view: it never waits for the response.

Usage:
    send_channel, receive_channel = trio.open_memory_channel(100)
    client = QueuedOracleClient(send_channel)
    game = BaseFeeGame(config, funds, client)

    relay = HeaderRelay(game, receive_channel, source, clock)
    async with trio.open_nursery() as nursery:
        await nursery.start(relay.run)
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict

import trio

logger = logging.getLogger("basefeebet.oracle.client")


@dataclass
class SignalRequest:
    """A paid request for the header at target_time_index."""
    target_time_index: int
    fee: int
    requested_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


class OracleClient(ABC):
    """Abstract oracle collaborator."""

    @abstractmethod
    def request_signal(self, target_time_index: int, fee: int) -> None:
        """
        Ask the oracle to deliver the header at target_time_index.

        Must not block. Raises on failure to enqueue the request.
        """
        pass


class QueuedOracleClient(OracleClient):
    """
    Oracle client backed by a trio memory channel.

    Requests are consumed by a HeaderRelay task.
    """

    def __init__(self, send_channel: trio.MemorySendChannel):
        self._send_channel = send_channel
        self.requests_sent = 0

    def request_signal(self, target_time_index: int, fee: int) -> None:
        request = SignalRequest(target_time_index=target_time_index, fee=fee)
        # raises trio.WouldBlock when the relay is saturated
        self._send_channel.send_nowait(request)
        self.requests_sent += 1
        logger.debug(f"Queued signal request for time-index {target_time_index}")
