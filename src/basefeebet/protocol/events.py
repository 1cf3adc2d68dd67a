"""
basefeebet/protocol/events.py

Events emitted for external observability.

Events are not consumed by the game itself. Listeners are called in
registration order; a failing listener is logged and skipped.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Callable, List

logger = logging.getLogger("basefeebet.protocol.events")


@dataclass
class GameEvent:
    """Base class for game events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data["event"] = self.name
        return data


@dataclass
class BetPlaced(GameEvent):
    bettor: str
    round_index: int
    scale: int
    guess: int
    amount: int
    wager_index: int


@dataclass
class SignalRequested(GameEvent):
    round_index: int
    target_time_index: int
    fee: int


@dataclass
class SignalReceived(GameEvent):
    round_index: int
    target_time_index: int
    signal: int


@dataclass
class Claimed(GameEvent):
    bettor: str
    round_index: int
    scale: int
    guess: int
    amount: int         # payout transferred (0 for a losing wager)


@dataclass
class Withdrawn(GameEvent):
    bettor: str
    round_index: int
    scale: int
    guess: int
    amount: int         # refunded amount


class EventEmitter:
    """Fan-out of game events to registered callbacks."""

    def __init__(self):
        self._listeners: List[Callable[[GameEvent], None]] = []

    def subscribe(self, callback: Callable[[GameEvent], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[GameEvent], None]) -> bool:
        if callback in self._listeners:
            self._listeners.remove(callback)
            return True
        return False

    def emit(self, event: GameEvent) -> None:
        for callback in self._listeners:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event listener error on {event.name}: {e}")
