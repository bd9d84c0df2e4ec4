from __future__ import annotations


class SearchError(Exception):
    """Base class for search failures."""


class SearchUnavailableError(SearchError):
    """The record store could not be reached or failed mid-query."""

    def __init__(self, message: str = "Search is temporarily unavailable") -> None:
        super().__init__(message)
        self.message = message
