from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Dict, Set, Union

import structlog

log = structlog.get_logger(__name__)

FILE_NAME = "subscribers.json"


class SubscriberStore:
    """
    Set of subscribed channel ids, persisted as JSON under ``data_dir``.

    File layout: {"<channel id>": true, ...}
    """

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.data_dir / FILE_NAME
        self._active: Dict[int, bool] = {}
        self._lock = threading.RLock()
        try:
            self._load()
        except (OSError, ValueError) as e:
            log.warning("subscribers_not_loaded", path=str(self.path), error=str(e))

    def add(self, recipient: int) -> None:
        with self._lock:
            self._active[recipient] = True
            self._save()
        log.info("subscriber_added", recipient=recipient)

    def remove(self, recipient: int) -> bool:
        """Unsubscribe ``recipient``; returns False if it was not subscribed."""
        with self._lock:
            if recipient not in self._active:
                return False
            del self._active[recipient]
            self._save()
        log.info("subscriber_removed", recipient=recipient)
        return True

    def snapshot(self) -> Set[int]:
        with self._lock:
            return {rid for rid, active in self._active.items() if active}

    def __contains__(self, recipient: object) -> bool:
        with self._lock:
            return bool(self._active.get(recipient))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.snapshot())

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object in {self.path}")
        self._active = {int(k): bool(v) for k, v in data.items()}
        log.info("subscribers_loaded", path=str(self.path), count=len(self._active))

    def _save(self) -> None:
        tmp = self.path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({str(k): v for k, v in self._active.items()}, f)
        os.replace(tmp, self.path)
