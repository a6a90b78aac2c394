from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass
from typing import Optional

import structlog
from dotenv import load_dotenv

from .exceptions import ConfigError

log = structlog.get_logger(__name__)

DEFAULT_FEED_URL = "https://cointelegraph.com/rss"
DEFAULT_UPDATE_INTERVAL = 60.0
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_SEND_DELAY = 0.1
DEFAULT_DATA_DIR = "data"

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")

_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|s|m|h))+")
_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_SECONDS_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class Settings:
    discord_token: str
    feed_url: str = DEFAULT_FEED_URL
    update_interval: float = DEFAULT_UPDATE_INTERVAL
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    send_delay: float = DEFAULT_SEND_DELAY
    data_dir: str = DEFAULT_DATA_DIR
    log_level: str = "info"
    log_file: Optional[str] = None


def parse_duration(value: str) -> float:
    """
    Parse "1m30s", "250ms", "2h" or bare seconds ("45") into seconds.

    Raises ValueError for anything else.
    """
    s = value.strip().lower()
    if _SECONDS_RE.fullmatch(s):
        seconds = float(s)
    elif _DURATION_RE.fullmatch(s):
        seconds = sum(float(n) * _UNITS[unit] for n, unit in _PART_RE.findall(s))
    else:
        raise ValueError(f"invalid duration: {value!r}")
    if not math.isfinite(seconds):
        raise ValueError(f"duration out of range: {value!r}")
    return seconds


def _env_duration(key: str, default: float, *, allow_zero: bool = False) -> float:
    val = os.getenv(key)
    if not val:
        return default
    try:
        seconds = parse_duration(val)
    except ValueError:
        log.warning("invalid_duration", key=key, value=val, default=default)
        return default
    if seconds < 0 or (seconds == 0 and not allow_zero):
        log.warning("invalid_duration", key=key, value=val, default=default)
        return default
    return seconds


def _env_log_level(key: str, default: str) -> str:
    val = (os.getenv(key) or "").strip().lower()
    if not val:
        return default
    if val not in LOG_LEVELS:
        return default
    return "warning" if val == "warn" else val


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment, reading a .env file first.

    DISCORD_BOT_TOKEN is required; every other value has a default.
    """
    load_dotenv(env_file)

    token = (os.getenv("DISCORD_BOT_TOKEN") or "").strip()
    if not token:
        raise ConfigError("DISCORD_BOT_TOKEN is not set. Check your .env file.")

    return Settings(
        discord_token=token,
        feed_url=(os.getenv("RSS_FEED_URL") or "").strip() or DEFAULT_FEED_URL,
        update_interval=_env_duration("UPDATE_INTERVAL", DEFAULT_UPDATE_INTERVAL),
        fetch_timeout=_env_duration("FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        send_delay=_env_duration("SEND_DELAY", DEFAULT_SEND_DELAY, allow_zero=True),
        data_dir=(os.getenv("DATA_DIR") or "").strip() or DEFAULT_DATA_DIR,
        log_level=_env_log_level("LOG_LEVEL", "info"),
        log_file=(os.getenv("LOG_FILE") or "").strip() or None,
    )


def log_settings(settings: Settings) -> None:
    log.info(
        "configuration_loaded",
        feed_url=settings.feed_url,
        update_interval=settings.update_interval,
        fetch_timeout=settings.fetch_timeout,
        data_dir=settings.data_dir,
        log_level=settings.log_level,
        log_file=settings.log_file,
    )
