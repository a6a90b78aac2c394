from __future__ import annotations

import threading
from typing import List, Optional, Sequence, Tuple

import structlog

from .models import DetectorState, NewsItem

log = structlog.get_logger(__name__)


def detect(state: DetectorState, items: Sequence[NewsItem]) -> Tuple[DetectorState, List[NewsItem]]:
    """
    Compute the delta of ``items`` against ``state`` and the state that follows.

    ``items`` is the normalized fetch in feed order, assumed newest first.

    - Empty input: state unchanged, empty delta.
    - Bootstrap (nothing fetched yet): only the first item is delivered and its
      publish time becomes the watermark.
    - Steady: items strictly newer than the watermark are collected in order;
      the scan stops at the first item that is not newer. Older-looking items
      after that point are never examined, so an out-of-order feed can hide
      new items behind an old one.

    Pure function: same state and same items always give the same result.
    """
    if not items:
        return state, []

    if not state.has_fetched_once or state.watermark is None:
        first = items[0]
        return DetectorState(watermark=first.published_at, has_fetched_once=True), [first]

    delta: List[NewsItem] = []
    for item in items:
        if not item.published_at > state.watermark:
            break
        delta.append(item)

    if not delta:
        return state, []

    watermark = max(state.watermark, max(i.published_at for i in delta))
    return DetectorState(watermark=watermark, has_fetched_once=True), delta


class DeltaDetector:
    """
    Holds the DetectorState for one feed across polling cycles.

    The state lives in memory only; a restart bootstraps again.
    """

    def __init__(self, state: Optional[DetectorState] = None) -> None:
        self._state = state or DetectorState()
        self._lock = threading.Lock()

    @property
    def state(self) -> DetectorState:
        with self._lock:
            return self._state

    def detect(self, items: Sequence[NewsItem]) -> List[NewsItem]:
        with self._lock:
            bootstrap = not self._state.has_fetched_once
            self._state, delta = detect(self._state, items)
            if delta:
                log.info(
                    "delta_detected",
                    bootstrap=bootstrap,
                    new_items=len(delta),
                    watermark=self._state.watermark.isoformat() if self._state.watermark else None,
                )
            return delta
