"""HTML escaping of the cells sent back for the current page."""
from __future__ import annotations

import html
import logging
from typing import Any, List, Sequence

from .models import ColumnSpec, is_missing
from .request import EscapeSpec

log = logging.getLogger(__name__)


def resolve_escape_columns(escape: EscapeSpec, n_cols: int) -> List[int]:
    """Turn an :class:`EscapeSpec` into sorted 0-based column positions.

    Explicit indices are 1-based wire positions; a negative list selects every
    column except the ones named.  Out-of-range and zero indices are ignored.
    """

    if escape.escape_all:
        return list(range(n_cols))
    if not escape.indices:
        return []
    valid = [index for index in escape.indices if 0 < abs(index) <= n_cols]
    if len(valid) != len(escape.indices):
        ignored = sorted(set(escape.indices) - set(valid))
        log.warning("Ignoring escape column indices %s outside 1..%d", ignored, n_cols)
    if escape.indices[0] < 0:
        excluded = {-index - 1 for index in valid}
        return [j for j in range(n_cols) if j not in excluded]
    return sorted({index - 1 for index in valid})


def escape_cell(value: Any) -> Any:
    if is_missing(value):
        return value
    return html.escape(str(value), quote=True)


def escape_rows(
    rows: Sequence[Sequence[Any]],
    column_specs: Sequence[ColumnSpec],
    escape: EscapeSpec,
) -> List[List[Any]]:
    """Escape text and categorical cells of the resolved columns.

    Only the page rows are passed in, so the cost is bounded by the page size.
    Cells of other column types are returned untouched.
    """

    targets = [
        j for j in resolve_escape_columns(escape, len(column_specs)) if column_specs[j].escapable
    ]
    if not targets:
        return [list(row) for row in rows]
    escaped: List[List[Any]] = []
    for row in rows:
        cells = list(row)
        for j in targets:
            cells[j] = escape_cell(cells[j])
        escaped.append(cells)
    return escaped


__all__ = ["escape_cell", "escape_rows", "resolve_escape_columns"]
