"""
Crawler exception taxonomy.

Item-level errors are recoverable: the pipeline logs, tallies and moves on.
``ScopeFailure`` abandons the current league only.
"""
from __future__ import annotations


class CrawlerError(Exception):
    """Base for errors raised by crawler code."""


class TransientFetchError(CrawlerError):
    """A page action or fetch that may succeed on another attempt."""


class ItemFailure(CrawlerError):
    """A work item exhausted its retries."""

    def __init__(self, label: str, cause: BaseException) -> None:
        self.label = label
        self.cause = cause
        super().__init__(f"{label}: {cause}")


class ScopeFailure(CrawlerError):
    """A prerequisite for a whole league (season, team catalog) is unavailable."""

    def __init__(self, league: str, reason: str) -> None:
        self.league = league
        self.reason = reason
        super().__init__(f"{league}: {reason}")
