from __future__ import annotations

from typing import Any, Dict, List, Tuple

from .models import RawEntry


def _text(entry: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        val = entry.get(key)
        if isinstance(val, str) and val:
            return val
    return ""


def _categories(entry: Dict[str, Any]) -> Tuple[str, ...]:
    # feedparser exposes every <category> as a tag dict; keep document order
    tags = entry.get("tags")
    if not isinstance(tags, list):
        return ()
    out: List[str] = []
    for tag in tags:
        if isinstance(tag, dict):
            term = tag.get("term")
            if isinstance(term, str):
                out.append(term)
    return tuple(out)


def parse_entry(entry: Dict[str, Any]) -> RawEntry:
    """
    Map a raw feed entry (from feedparser) to a RawEntry.

    Nothing is cleaned here; the normalizer owns every transformation.
    """
    return RawEntry(
        title=_text(entry, "title"),
        link=_text(entry, "link"),
        guid=_text(entry, "id", "guid"),
        description=_text(entry, "summary", "description"),
        pub_date=_text(entry, "published", "pubdate"),
        categories=_categories(entry),
    )
