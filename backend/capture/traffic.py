"""
Observed network traffic, as seen by the correlator.

A traffic source pushes one ``NetworkExchange`` per completed response to every
subscribed handler. Handlers are plain callables and must not block.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol


@dataclass(frozen=True)
class NetworkExchange:
    """One response observed on the browser session."""
    url: str
    status: int
    read_body: Callable[[], Awaitable[bytes]]


ExchangeHandler = Callable[[NetworkExchange], None]


class TrafficSource(Protocol):
    def subscribe(self, handler: ExchangeHandler) -> None:
        ...

    def unsubscribe(self, handler: ExchangeHandler) -> None:
        ...
