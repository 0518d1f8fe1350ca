"""Exceptions raised by the talk index engine."""

from typing import Optional


class TalkDropError(Exception):
    """Base class for talk-drop errors."""


class ScheduleFetchError(TalkDropError):
    """A schedule source could not be fetched or parsed.

    Recovered by the refresh scheduler: the previously installed talks stay
    authoritative.
    """

    def __init__(self, location: str, reason: str, cause: Optional[BaseException] = None):
        super().__init__(f"{location}: {reason}")
        self.location = location
        self.reason = reason
        self.cause = cause


class WatcherError(TalkDropError):
    """The filesystem watch can no longer be trusted (root gone or unreadable)."""
