from __future__ import annotations

import asyncio
import math
from typing import Awaitable, List, Optional, Protocol, Set, TypeVar

import httpx
import structlog

from .detector import DeltaDetector
from .exceptions import FetchError
from .fetcher import DEFAULT_TIMEOUT, fetch_feed_entries
from .models import NewsItem
from .normalizer import normalize_entries

log = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL = 60.0
DEFAULT_SEND_DELAY = 0.1


class DeliverySink(Protocol):
    async def deliver(self, item: NewsItem, recipient: int) -> None:  # pragma: no cover - interface
        ...


class SubscriberSource(Protocol):
    def snapshot(self) -> Set[int]:  # pragma: no cover - interface
        ...


class Stopped(Exception):
    """The stop event fired while the poller was waiting."""


class FeedPoller:
    """
    Polls one feed on a fixed interval and pushes new items to subscribers.

    Pipeline per tick: fetch → normalize → detect → broadcast
    Cycles are strictly sequential; a slow fetch delays the next tick.
    """

    def __init__(
        self,
        url: str,
        sink: DeliverySink,
        subscribers: SubscriberSource,
        *,
        interval: float = DEFAULT_INTERVAL,
        fetch_timeout: float = DEFAULT_TIMEOUT,
        send_delay: float = DEFAULT_SEND_DELAY,
        detector: Optional[DeltaDetector] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError("interval must be a positive number of seconds")
        self.url = url
        self.sink = sink
        self.subscribers = subscribers
        self.interval = interval
        self.fetch_timeout = fetch_timeout
        self.send_delay = send_delay
        self.detector = detector or DeltaDetector()
        self._client = client
        self._stop: Optional[asyncio.Event] = None

    async def run_cycle(self) -> List[NewsItem]:
        """
        Fetch the feed once and return the items not delivered yet.

        Fetch and parse failures are logged and give an empty list; the
        detector state is not touched in that case.
        """
        try:
            entries = await fetch_feed_entries(self.url, timeout=self.fetch_timeout, client=self._client)
        except FetchError as e:
            log.error("fetch_failed", url=self.url, error=str(e), kind=type(e).__name__)
            return []

        items = normalize_entries(entries)
        skipped = len(entries) - len(items)
        if skipped:
            log.warning("entries_skipped", url=self.url, skipped=skipped, total=len(entries))
        return self.detector.detect(items)

    async def broadcast(self, items: List[NewsItem]) -> int:
        """
        Deliver ``items`` in order to every current subscriber.

        Recipients come from one snapshot taken up front. A failure for one
        recipient is logged and the rest are still attempted. Returns the number
        of successful sends.
        """
        if not items:
            return 0
        recipients = sorted(self.subscribers.snapshot())
        if not recipients:
            log.info("no_subscribers", items=len(items))
            return 0

        sent = 0
        first = True
        for recipient in recipients:
            for item in items:
                if not first and self.send_delay > 0:
                    # Small delay to stay under the transport's flood limits
                    await self._wait(asyncio.sleep(self.send_delay))
                first = False
                try:
                    await self._wait(self.sink.deliver(item, recipient))
                except Stopped:
                    raise
                except Exception as e:
                    log.error("delivery_failed", recipient=recipient, link=item.link, error=str(e))
                    continue
                sent += 1
        log.info("broadcast_done", items=len(items), recipients=len(recipients), sent=sent)
        return sent

    async def tick(self) -> int:
        """One full cycle: detect new items and broadcast them."""
        news = await self._wait(self.run_cycle())
        if not news:
            return 0
        return await self.broadcast(news)

    async def run(self, stop: asyncio.Event) -> None:
        """
        Run until ``stop`` is set (or the task is cancelled).

        The first cycle starts one interval after the call, like a ticker.
        """
        self._stop = stop
        log.info("poller_started", url=self.url, interval=self.interval)
        try:
            while not stop.is_set():
                await self._wait(asyncio.sleep(self.interval))
                try:
                    await self.tick()
                except Stopped:
                    raise
                except Exception as e:
                    # One bad cycle must not end the loop
                    log.exception("cycle_failed", url=self.url, error=str(e))
        except Stopped:
            pass
        finally:
            self._stop = None
            log.info("poller_stopped", url=self.url)

    async def _wait(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` unless the stop event fires first; then cancel it and raise Stopped."""
        stop = self._stop
        if stop is None:
            return await aw
        if stop.is_set():
            _close(aw)
            raise Stopped()

        task = asyncio.ensure_future(aw)
        stopper = asyncio.ensure_future(stop.wait())
        try:
            await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # also reached when the surrounding task is cancelled
            for fut in (task, stopper):
                if not fut.done():
                    fut.cancel()
        if task.done() and not task.cancelled():
            return task.result()
        # Stop won; let the cancelled work unwind first
        await asyncio.gather(task, return_exceptions=True)
        raise Stopped()


def _close(aw: Awaitable) -> None:
    close = getattr(aw, "close", None)
    if close is not None:
        close()
