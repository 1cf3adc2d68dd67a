"""
basefeebet/oracle/relay.py

Header relay: the oracle collaborator's delivery loop.

Consumes SignalRequests from a trio memory channel, waits until the
requested header is available from a HeaderSource, then submits it to
the game as the configured oracle identity. A request whose response
window has elapsed is dropped.

Usage:
    relay = HeaderRelay(game, receive_channel, source, clock=lambda: chain.height)

    async with trio.open_nursery() as nursery:
        await nursery.start(relay.run)
        ...
        relay.stop()
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, TYPE_CHECKING

import trio

from .client import SignalRequest
from ..errors import GameError

if TYPE_CHECKING:
    from ..protocol.game import BaseFeeGame

logger = logging.getLogger("basefeebet.oracle.relay")


class HeaderSource(ABC):
    """Where the relay reads raw header records from."""

    @abstractmethod
    async def get_header(self, number: int) -> Optional[bytes]:
        """
        Get the raw header record for a block number.

        Returns:
            RLP bytes, or None if the block is not available yet
        """
        pass


class InMemoryHeaderSource(HeaderSource):
    """Header records held in a dict (local runs and tests)."""

    def __init__(self, headers: Optional[Dict[int, bytes]] = None):
        self._headers: Dict[int, bytes] = dict(headers or {})

    def add_header(self, number: int, raw_record: bytes) -> None:
        self._headers[number] = raw_record

    async def get_header(self, number: int) -> Optional[bytes]:
        return self._headers.get(number)


class HeaderRelay:
    """
    Delivers requested header records to the game.

    Each request is handled in its own task so a slow header does not
    hold back later requests.
    """

    # Seconds between polls of the header source
    POLL_INTERVAL = 1.0

    def __init__(
        self,
        game: "BaseFeeGame",
        receive_channel: trio.MemoryReceiveChannel,
        source: HeaderSource,
        clock: Callable[[], int],
        poll_interval: float = POLL_INTERVAL,
    ):
        """
        Initialize HeaderRelay.

        Args:
            game: Game receiving the signals
            receive_channel: Channel fed by QueuedOracleClient
            source: Header record provider
            clock: Returns the current time-index
            poll_interval: Seconds between header polls
        """
        self.game = game
        self.source = source
        self.clock = clock
        self.poll_interval = poll_interval
        self._receive_channel = receive_channel
        self._cancel_scope: Optional[trio.CancelScope] = None
        self._running = False

        self.delivered = 0
        self.rejected = 0
        self.expired = 0

    @property
    def oracle(self) -> str:
        return self.game.config.oracle

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """
        Run the relay until stopped or the request channel closes.

        Usage:
            async with trio.open_nursery() as nursery:
                await nursery.start(relay.run)
        """
        self._cancel_scope = trio.CancelScope()
        self._running = True
        task_status.started()
        logger.info("HeaderRelay started")

        try:
            with self._cancel_scope:
                async with trio.open_nursery() as nursery:
                    async with self._receive_channel:
                        async for request in self._receive_channel:
                            nursery.start_soon(self._handle_request, request)
        finally:
            self._running = False
            logger.info("HeaderRelay stopped")

    def stop(self) -> None:
        """Cancel the relay and any in-flight requests."""
        if self._cancel_scope:
            self._cancel_scope.cancel()

    async def _handle_request(self, request: SignalRequest) -> None:
        target = request.target_time_index
        deadline = target + self.game.config.response_window

        raw_record = await self._wait_for_header(target, deadline)
        if raw_record is None:
            self.expired += 1
            logger.warning(f"Header {target} unavailable before deadline {deadline}, dropping request")
            return

        try:
            self.game.submit_signal(self.oracle, target, raw_record, self.clock())
            self.delivered += 1
        except GameError as e:
            self.rejected += 1
            logger.warning(f"Signal for time-index {target} rejected: {type(e).__name__}: {e}")

    async def _wait_for_header(self, target: int, deadline: int) -> Optional[bytes]:
        while True:
            try:
                raw_record = await self.source.get_header(target)
            except Exception as e:
                logger.error(f"Header source failed for {target}: {e}")
                raw_record = None

            if raw_record is not None:
                return raw_record
            if self.clock() > deadline:
                return None
            await trio.sleep(self.poll_interval)

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "delivered": self.delivered,
            "rejected": self.rejected,
            "expired": self.expired,
        }
