"""
Response correlation engine.

Matches responses observed on a traffic source to the URL patterns a caller is
waiting on. The caller triggers the traffic itself (a navigation or a click)
and cannot replay it, so a wait never retries: it keeps listening until every
pattern is satisfied or the window closes, and a multi-pattern wait that closes
with some payloads in hand resolves with that partial mapping.

A qualifying response:
  - URL contains the configured API root AND the pattern
  - status is 200
  - body parses as JSON (unreadable or invalid bodies are skipped, the wait
    keeps listening)
"""
from __future__ import annotations

import asyncio
import json
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional

from shared.config import get_settings
from shared.models.enums import CaptureOutcome
from shared.utils.logging import get_logger
from shared.utils.metrics import CAPTURE_LATENCY, CAPTURE_OUTCOMES, CAPTURE_PARSE_FAILURES

from capture.traffic import NetworkExchange, TrafficSource

logger = get_logger(__name__)

QUALIFYING_STATUS = 200

Trigger = Callable[[], Awaitable[Any]]

_UNPARSED = object()


class CaptureTimeout(TimeoutError):
    """No qualifying response arrived for any requested pattern in the wait window."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        super().__init__(f"Timeout waiting for API: {', '.join(self.patterns)}")


@dataclass(frozen=True)
class CorrelationResult:
    """Outcome of a wait. A pattern is either in ``payloads`` or in ``remaining``."""
    payloads: dict[str, Any]
    remaining: frozenset[str]

    @property
    def timed_out(self) -> bool:
        return bool(self.remaining)

    @property
    def outcome(self) -> CaptureOutcome:
        if not self.remaining:
            return CaptureOutcome.MATCHED
        if self.payloads:
            return CaptureOutcome.PARTIAL
        return CaptureOutcome.TIMEOUT


class PendingCapture:
    """
    Handle for one correlated wait.

    Owns the subscription, the timer and the consumer task. The timer starts
    in ``start()``, before the caller triggers any traffic. Resolution happens
    exactly once (all patterns satisfied, or timer expiry) and tears all three
    down; ``close()`` does the same for abandoned waits and is idempotent.
    """

    def __init__(
        self,
        source: TrafficSource,
        patterns: Iterable[str],
        timeout_s: float,
        api_root: str,
    ) -> None:
        ordered = list(dict.fromkeys(patterns))
        if not ordered:
            raise ValueError("PendingCapture needs at least one pattern")
        self._source = source
        self._patterns = tuple(ordered)
        self._remaining: list[str] = ordered
        self._payloads: dict[str, Any] = {}
        self._timeout_s = timeout_s
        self._api_root = api_root
        self._queue: asyncio.Queue[NetworkExchange] = asyncio.Queue()
        self._handler = self._on_exchange
        self._result: Optional[asyncio.Future[CorrelationResult]] = None
        self._consumer: Optional[asyncio.Task[None]] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._subscribed = False
        self.created_at: Optional[float] = None

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    @property
    def done(self) -> bool:
        return self._result is not None and self._result.done()

    def start(self) -> None:
        """Register the subscription and arm the timer."""
        if self._result is not None:
            raise RuntimeError("PendingCapture already started.")
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self.created_at = time.monotonic()
        self._source.subscribe(self._handler)
        self._subscribed = True
        self._consumer = loop.create_task(self._consume())
        self._timer = loop.call_later(self._timeout_s, self._expire)

    async def wait(self) -> CorrelationResult:
        """Suspend until the wait resolves; never raises on timeout."""
        if self._result is None:
            raise RuntimeError("PendingCapture not started. Call start() first.")
        return await asyncio.shield(self._result)

    async def close(self) -> None:
        """Tear down subscription, timer and consumer without resolving."""
        self._teardown()
        if self._result is not None and not self._result.done():
            self._result.cancel()
        if self._consumer is not None:
            await asyncio.gather(self._consumer, return_exceptions=True)

    def qualifies(self, exchange: NetworkExchange) -> bool:
        return exchange.status == QUALIFYING_STATUS and self._api_root in exchange.url

    # ── Internals ───────────────────────────────────────────────────────

    def _on_exchange(self, exchange: NetworkExchange) -> None:
        # Called by the traffic source; enqueue only, never block
        if self._result is None or self._result.done():
            return
        self._queue.put_nowait(exchange)

    async def _consume(self) -> None:
        # Single consumer: events are handled strictly in arrival order
        while self._remaining:
            exchange = await self._queue.get()
            if not self.qualifies(exchange):
                continue
            pattern = next((p for p in self._remaining if p in exchange.url), None)
            if pattern is None:
                continue
            payload = await self._parse(exchange)
            if payload is _UNPARSED:
                continue
            self._payloads[pattern] = payload
            self._remaining.remove(pattern)
            logger.debug(
                "capture_matched",
                pattern=pattern,
                remaining=len(self._remaining),
            )
        self._resolve()

    async def _parse(self, exchange: NetworkExchange) -> Any:
        try:
            return json.loads(await exchange.read_body())
        except Exception as exc:
            # Body already consumed or not JSON; keep listening
            CAPTURE_PARSE_FAILURES.inc()
            logger.debug("capture_body_skipped", url=exchange.url, error=str(exc))
            return _UNPARSED

    def _expire(self) -> None:
        self._timer = None
        self._resolve()

    def _resolve(self) -> None:
        if self._result is None or self._result.done():
            return
        result = CorrelationResult(
            payloads=dict(self._payloads),
            remaining=frozenset(self._remaining),
        )
        self._teardown()
        self._result.set_result(result)
        CAPTURE_OUTCOMES.labels(outcome=result.outcome.value).inc()
        if self.created_at is not None:
            CAPTURE_LATENCY.observe(time.monotonic() - self.created_at)

    def _teardown(self) -> None:
        if self._subscribed:
            self._source.unsubscribe(self._handler)
            self._subscribed = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        consumer = self._consumer
        if consumer is not None and not consumer.done() and consumer is not asyncio.current_task():
            consumer.cancel()


class ResponseCorrelator:
    """
    Correlates logical API requests with traffic on one session.

    Several waits may be active at once on the same source; each has its own
    subscription and timer.
    """

    def __init__(
        self,
        source: TrafficSource,
        api_root: str | None = None,
        default_timeout_s: float | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source
        self._api_root = api_root or settings.api_root
        self._default_timeout_s = (
            settings.capture_timeout_s if default_timeout_s is None else default_timeout_s
        )

    @asynccontextmanager
    async def capture(
        self, patterns: Iterable[str], timeout_s: float | None = None
    ) -> AsyncIterator[PendingCapture]:
        """
        Start listening for ``patterns``; the subscription is removed on exit.

        Usage:
            async with correlator.capture([pattern]) as pending:
                await session.goto(url)
                result = await pending.wait()
        """
        pending = PendingCapture(
            self._source,
            patterns,
            self._default_timeout_s if timeout_s is None else timeout_s,
            self._api_root,
        )
        pending.start()
        try:
            yield pending
        finally:
            await pending.close()

    async def await_one(
        self,
        pattern: str,
        timeout_s: float | None = None,
        trigger: Trigger | None = None,
    ) -> Any:
        """
        Wait for the first qualifying response for ``pattern``.

        Args:
            pattern: URL substring identifying the API call.
            timeout_s: Wait window, measured from subscription.
            trigger: Optional coroutine factory run after subscribing
                (navigation, click) to produce the traffic.

        Raises:
            CaptureTimeout: No qualifying response within the window.
        """
        async with self.capture([pattern], timeout_s) as pending:
            if trigger is not None:
                await trigger()
            result = await pending.wait()
        if result.remaining:
            raise CaptureTimeout([pattern])
        logger.debug("captured_api", pattern=pattern)
        return result.payloads[pattern]

    async def await_all(
        self,
        patterns: Iterable[str],
        timeout_s: float | None = None,
        trigger: Trigger | None = None,
    ) -> dict[str, Any]:
        """
        Wait for every pattern; on timeout return whatever subset arrived.

        Raises:
            CaptureTimeout: Only when no pattern was satisfied at all.
        """
        requested = list(dict.fromkeys(patterns))
        async with self.capture(requested, timeout_s) as pending:
            if trigger is not None:
                await trigger()
            result = await pending.wait()
        if not result.payloads:
            raise CaptureTimeout(requested)
        if result.remaining:
            logger.warning(
                "partial_capture",
                captured=len(result.payloads),
                requested=len(requested),
                missing=[p for p in requested if p in result.remaining],
            )
        return result.payloads
