"""Row predicates for global and per-column search terms.

Every predicate works on a vector of row positions and returns a boolean mask
of the same length.  How a term is interpreted depends only on the
:class:`~gridquery.models.ColumnType` the column was bound with:

* text columns take a literal or regular-expression substring term,
* numeric, date and date-time columns take a ``"lower...upper"`` range,
* categorical and boolean columns take a JSON array of accepted values.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import MalformedRangeError, MalformedSearchError
from .models import ColumnType, Table, coerce_bool, format_cell, is_missing
from .request import ColumnRequest, SearchSpec

log = logging.getLogger(__name__)

RANGE_SEPARATOR = "..."


def grep(pattern: str, values: pd.Series, *, fixed: bool, ignore_case: bool) -> np.ndarray:
    """Substring/regex match of ``pattern`` against rendered cell text.

    A literal case-insensitive search lower-cases both sides and matches
    literally instead of mixing literal mode with case folding.  A regular
    expression that does not compile is assumed to be still being typed and
    matches every row.
    """

    if fixed:
        if ignore_case:
            pattern = pattern.lower()
            values = values.str.lower()
        hits = values.str.contains(pattern, regex=False, na=False)
    else:
        flags = re.IGNORECASE if ignore_case else 0
        try:
            re.compile(pattern, flags)
        except re.error:
            log.debug("Incomplete regular expression %r, matching every row", pattern)
            return np.ones(len(values), dtype=bool)
        hits = values.str.contains(pattern, flags=flags, regex=True, na=False)
    return np.asarray(hits, dtype=bool)


def parse_range(term: str) -> Tuple[str, str]:
    """Split ``"lower...upper"`` into stripped bounds; either may be empty."""

    if RANGE_SEPARATOR not in term:
        raise MalformedRangeError(
            f"The range of a numeric / date / time column must be of the form 'lower...upper', got {term!r}.",
            term=term,
        )
    parts = term.split(RANGE_SEPARATOR)
    if len(parts) != 2:
        raise MalformedRangeError(
            f"The range of a numeric / date / time column must be of length 2, got {term!r}.",
            term=term,
        )
    lower, upper = (part.strip() for part in parts)
    return lower, upper


def _range_bound(bound: str, column_type: ColumnType, values: Any, term: str) -> Any:
    try:
        if column_type is ColumnType.NUMERIC:
            return float(bound)
        stamp = pd.Timestamp(bound)
    except (TypeError, ValueError) as exc:
        raise MalformedRangeError(
            f"Invalid bound {bound!r} in range {term!r} for a {column_type.value} column.", term=term
        ) from exc
    if pd.isna(stamp):
        raise MalformedRangeError(f"Invalid bound {bound!r} in range {term!r}.", term=term)
    column_tz = getattr(values.dt, "tz", None)
    if column_tz is not None and stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    elif column_tz is None and stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    return stamp


def filter_range(values: Any, term: str, column_type: ColumnType) -> np.ndarray:
    """Inclusive range test; missing values never match."""

    lower, upper = parse_range(term)
    lo = _range_bound(lower, column_type, values, term) if lower else None
    hi = _range_bound(upper, column_type, values, term) if upper else None
    mask = np.array(pd.notna(values), dtype=bool)
    if lo is not None:
        mask = mask & np.asarray(values >= lo, dtype=bool)
    if hi is not None:
        mask = mask & np.asarray(values <= hi, dtype=bool)
    return mask


def _decode_accepted(term: str, column: Optional[int]) -> List[Any]:
    try:
        decoded = json.loads(term)
    except json.JSONDecodeError as exc:
        raise MalformedSearchError(
            f"Search term {term!r} is not a JSON array of accepted values.", column=column, term=term
        ) from exc
    if not isinstance(decoded, list):
        decoded = [decoded]
    return decoded


def filter_levels(values: pd.Series, term: str, levels: Sequence[str], column: Optional[int] = None) -> np.ndarray:
    """Categorical membership; values outside the declared ``levels`` never match."""

    accepted = _decode_accepted(term, column)
    wanted = {format_cell(item) for item in accepted if not is_missing(item)}
    if levels:
        wanted &= set(levels)
    mask = np.array(values.isin(wanted), dtype=bool)
    if any(is_missing(item) for item in accepted):
        mask = mask | np.asarray(values.isna(), dtype=bool)
    return mask


def filter_boolean(values: np.ndarray, term: str, column: Optional[int] = None) -> np.ndarray:
    accepted = _decode_accepted(term, column)
    wanted = set()
    for item in accepted:
        if is_missing(item):
            wanted.add(None)
            continue
        flag = coerce_bool(item)
        if flag is not None:
            wanted.add(flag)
    return np.fromiter((item in wanted for item in values), dtype=bool, count=len(values))


def match_column(
    table: Table,
    column: int,
    term: str,
    positions: np.ndarray,
    *,
    regex: bool = False,
    ignore_case: bool = False,
) -> np.ndarray:
    """Evaluate one column's search term over ``positions``; returns a mask."""

    spec = table.column_specs[column]
    column_type = spec.type
    try:
        if column_type is not None and column_type.is_range:
            values = table.range_values(column)
            if isinstance(values, pd.Series):
                values = values.iloc[positions]
            else:
                values = values[positions]
            return filter_range(values, term, column_type)
        if column_type is ColumnType.CATEGORICAL:
            return filter_levels(table.member_values(column).iloc[positions], term, spec.levels, column)
        if column_type is ColumnType.BOOLEAN:
            return filter_boolean(table.member_values(column)[positions], term, column)
    except MalformedSearchError as exc:
        if exc.column is None:
            exc.column = column
        raise
    return grep(term, table.text_values(column).iloc[positions], fixed=not regex, ignore_case=ignore_case)


def global_search(table: Table, search: SearchSpec, columns: Sequence[ColumnRequest]) -> np.ndarray:
    """Positions matching the global term in at least one searchable column.

    An empty term matches every row.
    """

    n_rows = table.n_rows
    if not search.value:
        return np.arange(n_rows, dtype=np.int64)
    hits = np.zeros(n_rows, dtype=bool)
    for j, (col, spec) in enumerate(zip(columns, table.column_specs)):
        if not (col.searchable and spec.searchable):
            continue
        hits |= grep(
            search.value,
            table.text_values(j),
            fixed=not search.regex,
            ignore_case=bool(search.case_insensitive),
        )
    return np.flatnonzero(hits).astype(np.int64)


def column_search(
    table: Table,
    positions: np.ndarray,
    columns: Sequence[ColumnRequest],
    *,
    default_ignore_case: bool = False,
) -> np.ndarray:
    """Narrow ``positions`` by every non-empty per-column term (AND-combined)."""

    for j, (col, spec) in enumerate(zip(columns, table.column_specs)):
        if positions.size == 0:
            break
        term = col.search.value
        if not (col.searchable and spec.searchable) or term == "":
            continue
        ignore_case = col.search.case_insensitive
        if ignore_case is None:
            ignore_case = default_ignore_case
        mask = match_column(table, j, term, positions, regex=col.search.regex, ignore_case=ignore_case)
        positions = positions[mask]
    return positions


__all__ = [
    "RANGE_SEPARATOR",
    "column_search",
    "filter_boolean",
    "filter_levels",
    "filter_range",
    "global_search",
    "grep",
    "match_column",
    "parse_range",
]
