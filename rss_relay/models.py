from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class RawEntry:
    """
    One feed entry exactly as the remote document lists it.

    Values are not cleaned; the description may still carry markup and CDATA
    markers, and pub_date is the untouched date string.
    """
    title: str = ""
    link: str = ""
    guid: str = ""
    description: str = ""
    pub_date: str = ""
    categories: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NewsItem:
    """
    Stable public model representing a normalized news item.

    WARNING: Do not change fields lightly. This is what delivery sinks receive.
    """
    title: str
    link: str
    description: str
    published_at: datetime
    categories: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DetectorState:
    """Watermark of the last delivered item plus the bootstrap flag."""
    watermark: Optional[datetime] = None
    has_fetched_once: bool = False
