"""
rss_relay

Polls one RSS feed on a timer and forwards items published since the last
check to a set of subscribers.

Core ideas:
- Input: one RSS feed URL
- Process: fetch → parse → normalize → detect delta against a watermark
- Output: the new NewsItems, pushed to every subscriber through a delivery sink

The first successful fetch only delivers the newest item; after that every
item strictly newer than the last delivered one is sent.

Example
-------
import asyncio
from rss_relay import FeedPoller, SubscriberStore

class PrintSink:
    async def deliver(self, item, recipient):
        print(recipient, item.published_at, item.title)

store = SubscriberStore("data")
store.add(42)
poller = FeedPoller("https://cointelegraph.com/rss", PrintSink(), store, interval=60)

asyncio.run(poller.run(asyncio.Event()))
"""
from .models import DetectorState, NewsItem, RawEntry
from .detector import DeltaDetector, detect
from .normalizer import normalize, normalize_entries
from .fetcher import fetch_feed_entries
from .core import DeliverySink, FeedPoller, SubscriberSource
from .subscribers import SubscriberStore
from .exceptions import (
    BadStatus,
    ConfigError,
    FetchError,
    FetchTimeout,
    MalformedDocument,
    RelayError,
    TransportError,
)

__all__ = [
    "NewsItem",
    "RawEntry",
    "DetectorState",
    "DeltaDetector",
    "detect",
    "normalize",
    "normalize_entries",
    "fetch_feed_entries",
    "FeedPoller",
    "DeliverySink",
    "SubscriberSource",
    "SubscriberStore",
    "RelayError",
    "ConfigError",
    "FetchError",
    "FetchTimeout",
    "BadStatus",
    "TransportError",
    "MalformedDocument",
]
