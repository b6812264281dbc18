"""Stable multi-key ordering of filtered rows."""
from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .models import Table
from .request import ColumnRequest, OrderSpec


def order_keys(
    table: Table,
    positions: np.ndarray,
    order: Sequence[OrderSpec],
    columns: Optional[Sequence[ColumnRequest]] = None,
) -> List[np.ndarray]:
    """One key per orderable ``(column, direction)`` pair, primary key first.

    Keys are the bound table's per-column sort keys (numbers for numeric
    columns, ranks for everything else).  A descending pair negates its key so
    that ties keep falling through to the next pair.  Missing values stay NaN
    and therefore sort last in both directions.
    """

    keys: List[np.ndarray] = []
    for item in order:
        spec = table.column_specs[item.column]
        if not spec.orderable:
            continue
        if columns is not None and not columns[item.column].orderable:
            continue
        key = table.sort_key(item.column)[positions]
        keys.append(-key if item.descending else key)
    return keys


def order_rows(
    table: Table,
    positions: np.ndarray,
    order: Sequence[OrderSpec],
    columns: Optional[Sequence[ColumnRequest]] = None,
) -> np.ndarray:
    """Permute ``positions`` by ``order``; no usable keys keeps the input order."""

    keys = order_keys(table, positions, order, columns)
    if not keys:
        return positions
    # np.lexsort treats its last key as the primary one
    permutation = np.lexsort(tuple(reversed(keys)))
    return positions[permutation]


__all__ = ["order_keys", "order_rows"]
