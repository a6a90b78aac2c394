from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for errors raised by rss_relay."""


class ConfigError(RelayError):
    """Raised when required configuration is missing or unusable."""


class FetchError(RelayError):
    """Raised when an RSS feed cannot be fetched or parsed."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class FetchTimeout(FetchError):
    """The fetch deadline elapsed before the response was read."""


class BadStatus(FetchError):
    """The server answered with a non-success status code."""

    def __init__(self, code: int, *, url: Optional[str] = None) -> None:
        super().__init__(f"Unexpected status code: {code}", url=url)
        self.code = code


class TransportError(FetchError):
    """Connection-level failure (DNS, refused connection, TLS, ...)."""


class MalformedDocument(FetchError):
    """The body could not be parsed as an RSS/Atom document."""
