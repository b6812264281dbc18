"""Page window selection over an ordered row sequence."""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, TypeVar

log = logging.getLogger(__name__)

ALL_ROWS = -1
"""Wire value of ``length`` meaning "no paging"."""

_ALL_TOKENS = {"-1", "all"}

T = TypeVar("T")


def parse_length(raw: Any) -> Optional[int]:
    """Decode the ``length`` request parameter.

    Returns ``None`` for the "all rows" sentinel (``-1``/``"all"``/missing).
    Anything that is not a non-negative integer is logged and treated as a
    zero-length page so a confused client still gets a valid reply.
    """

    if raw is None:
        return None
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _ALL_TOKENS:
            return None
    elif raw == ALL_ROWS:
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    try:
        length = int(str(raw).strip())
    except (TypeError, ValueError):
        log.warning("The DataTables parameter 'length' is %r (invalid), returning an empty page.", raw)
        return 0
    if length < 0:
        log.warning("The DataTables parameter 'length' is %r (negative), returning an empty page.", raw)
        return 0
    return length


def page(ordered: Sequence[T], start: int, length: Optional[int]) -> Sequence[T]:
    """Slice ``ordered`` to the requested window.

    ``length=None`` (or ``-1``) returns everything; a ``start`` past the end
    yields an empty page.
    """

    if length is None or length == ALL_ROWS:
        return ordered
    start = max(0, int(start))
    if start >= len(ordered):
        return ordered[0:0]
    return ordered[start : start + max(0, int(length))]


__all__ = ["ALL_ROWS", "page", "parse_length"]
