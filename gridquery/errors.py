"""Exception hierarchy for the table query engine."""
from __future__ import annotations


class GridQueryError(Exception):
    """Base class for every error raised by :mod:`gridquery`."""


class RequestDecodeError(GridQueryError, ValueError):
    """The request is structurally invalid and cannot be evaluated."""


class MalformedSearchError(GridQueryError, ValueError):
    """A per-column search term cannot be decoded for the column type."""

    def __init__(self, message: str, *, column: int | None = None, term: str | None = None):
        super().__init__(message)
        self.column = column
        self.term = term


class MalformedRangeError(MalformedSearchError):
    """A numeric/date/time range term is not of the form ``lower...upper``."""


class UnknownTableError(GridQueryError, KeyError):
    """No table is registered under the requested output id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "GridQueryError",
    "MalformedRangeError",
    "MalformedSearchError",
    "RequestDecodeError",
    "UnknownTableError",
]
