from __future__ import annotations

import re
from datetime import datetime
from html import unescape
from typing import Iterable, List, Optional, Tuple

import structlog

from .models import NewsItem, RawEntry

log = structlog.get_logger(__name__)

# RFC 1123 with a numeric zone, e.g. "Mon, 02 Jan 2006 15:04:05 -0700"
PUB_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"

_CDATA_PREFIX = "<![CDATA["
_CDATA_SUFFIX = "]]>"

# Layout attributes the feed puts on the lead-image paragraph. Removed verbatim.
STYLE_FRAGMENTS: Tuple[str, ...] = (
    ' style="float:right; margin:0 0 10px 15px; width:240px;"',
    ' style="float:right;margin:0 0 10px 15px;width:240px;"',
)

_TYPOGRAPHY = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "–": "-",
    "—": "-",
    "…": "...",
})

_TAG_RE = re.compile(r"<[^>]+>")
_TAG_CHAR_RE = re.compile(r"[^A-Za-z0-9_]")
# The zone must be a numeric offset; %z alone also takes "Z" and "+00:00"
_NUMERIC_ZONE_RE = re.compile(r".* [+-]\d{4}")


def clean_cdata(s: str) -> str:
    s = s.strip()
    if s.startswith(_CDATA_PREFIX):
        s = s[len(_CDATA_PREFIX):]
    if s.endswith(_CDATA_SUFFIX):
        s = s[: -len(_CDATA_SUFFIX)]
    return s.strip()


def normalize_typography(s: str) -> str:
    """Replace curly quotes, en/em dashes and the ellipsis glyph with ASCII."""
    return s.translate(_TYPOGRAPHY)


def _plain(s: str) -> str:
    s = _TAG_RE.sub("", s)
    return normalize_typography(unescape(s))


def _strip_first_image(s: str) -> str:
    start = s.find("<img")
    if start == -1:
        return s
    end = s.find(">", start)
    if end == -1:
        return s
    return s[:start] + s[end + 1:]


def _last_paragraph(s: str) -> str:
    start = s.rfind("<p>")
    if start == -1:
        return s
    body = s[start + len("<p>"):]
    end = body.find("</p>")
    if end == -1:
        return body
    return body[:end]


def extract_description(description: str) -> str:
    """
    Pull the summary text out of the description markup.

    Lead images and captions sit in the earlier paragraphs, so the last <p>
    block wins. Without any <p> the whole cleaned text is used.
    """
    text = clean_cdata(description)
    for fragment in STYLE_FRAGMENTS:
        text = text.replace(fragment, "")
    text = _strip_first_image(text)
    text = _last_paragraph(text)
    return clean_cdata(_plain(text))


def clean_title(title: str) -> str:
    return clean_cdata(_plain(clean_cdata(title)))


def sanitize_category(category: str) -> str:
    """
    Turn a raw category into a hashtag-safe token.

    "  DeFi & NFTs " -> "DeFi_NFTs"; "#" -> "".
    """
    s = category.strip()
    if s.startswith("#"):
        s = s[1:]
    words = (_TAG_CHAR_RE.sub("", w) for w in s.split())
    return "_".join(w for w in words if w)


def clean_categories(categories: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for category in categories:
        tag = sanitize_category(clean_cdata(category))
        if tag:
            out.append(tag)
    return tuple(out)


def parse_pub_date(value: str) -> Optional[datetime]:
    """Parse an RFC 1123 date with numeric zone; None when it does not match."""
    value = value.strip()
    if not _NUMERIC_ZONE_RE.fullmatch(value):
        return None
    try:
        return datetime.strptime(value, PUB_DATE_FORMAT)
    except ValueError:
        return None


def normalize(raw: RawEntry) -> Optional[NewsItem]:
    """
    Convert a RawEntry into a NewsItem.

    Returns None (skip) when the publish date cannot be parsed; such entries are
    never defaulted to "now".
    """
    published_at = parse_pub_date(raw.pub_date)
    if published_at is None:
        log.warning("entry_skipped", reason="unparseable pub_date", pub_date=raw.pub_date, title=raw.title)
        return None

    # guid is stable even when the feed rewrites tracking URLs
    link = (raw.guid or raw.link).strip()

    return NewsItem(
        title=clean_title(raw.title),
        link=link,
        description=extract_description(raw.description),
        published_at=published_at,
        categories=clean_categories(raw.categories),
    )


def normalize_entries(entries: Iterable[RawEntry]) -> List[NewsItem]:
    """Normalize every entry, keeping fetch order and dropping skips."""
    items: List[NewsItem] = []
    for raw in entries:
        item = normalize(raw)
        if item is not None:
            items.append(item)
    return items
