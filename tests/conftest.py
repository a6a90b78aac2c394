from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

import pytest

from rss_relay.models import NewsItem

BASE = datetime(2025, 1, 6, 10, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


def make_item(minutes: int, title: Optional[str] = None) -> NewsItem:
    return NewsItem(
        title=title or f"item-{minutes}",
        link=f"https://example.com/news/{minutes}",
        description=f"summary {minutes}",
        published_at=at(minutes),
    )


def rss_item(
    title: str,
    pub_date: str,
    *,
    guid: str = "",
    link: str = "",
    description: str = "",
    categories: Sequence[str] = (),
) -> str:
    cats = "".join(f"<category><![CDATA[{c}]]></category>" for c in categories)
    return (
        "<item>"
        f"<title><![CDATA[{title}]]></title>"
        f"<link>{link}</link>"
        f"<guid isPermaLink=\"false\">{guid}</guid>"
        f"<pubDate>{pub_date}</pubDate>"
        f"<description><![CDATA[{description}]]></description>"
        f"{cats}"
        "</item>"
    )


def rss_document(items: Iterable[str]) -> bytes:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        "<title>Test Feed</title><link>https://example.com</link>"
        "<description>test</description>"
        + "".join(items)
        + "</channel></rss>"
    ).encode("utf-8")


def pub_date(minutes: int) -> str:
    return at(minutes).strftime("%a, %d %b %Y %H:%M:%S +0000")


def feed_at(*minutes: int) -> bytes:
    """RSS document listing one item per given minute offset, in that order."""
    return rss_document(
        rss_item(
            f"News {m}",
            pub_date(m),
            guid=f"https://example.com/news/{m}",
            link=f"https://example.com/news/{m}?utm=rss",
            description=f"<p>caption</p><p>Summary {m}</p>",
        )
        for m in minutes
    )


class RecordingSink:
    def __init__(self, fail_for: Iterable[int] = ()) -> None:
        self.sent: List[tuple] = []
        self.fail_for = set(fail_for)

    async def deliver(self, item: NewsItem, recipient: int) -> None:
        if recipient in self.fail_for:
            raise RuntimeError(f"cannot send to {recipient}")
        self.sent.append((recipient, item.link))


class StaticSubscribers:
    def __init__(self, *ids: int) -> None:
        self.ids = set(ids)

    def snapshot(self):
        return set(self.ids)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
