"""Typed table snapshot and response containers for the query engine."""
from __future__ import annotations

import datetime as dt
import json
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

ROWNAMES_COLUMN = " "
"""Name of the column holding row names when a table is bound with ``rownames=True``."""

_TRUE_STRINGS = {"true", "t", "yes", "1"}
_FALSE_STRINGS = {"false", "f", "no", "0"}


def is_missing(value: Any) -> bool:
    """Return ``True`` for ``None``, ``NaN``, ``NaT`` and ``pd.NA``."""

    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def coerce_bool(value: Any) -> Optional[bool]:
    """Best-effort conversion of wire/config values to ``bool``.

    Unrecognised and missing values map to ``None``.
    """

    if is_missing(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def format_cell(value: Any) -> Optional[str]:
    """Render a cell the way global search sees it; missing cells have no text."""

    if is_missing(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (float, np.floating)):
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return repr(number)
    if isinstance(value, np.integer):
        return str(int(value))
    if isinstance(value, dt.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


class ColumnType(str, Enum):
    """Type tag deciding how a column is filtered and ordered."""

    TEXT = "text"
    NUMERIC = "numeric"
    DATE = "date"
    DATETIME = "datetime"
    CATEGORICAL = "categorical"
    BOOLEAN = "boolean"

    @classmethod
    def from_value(cls, value: Union[str, "ColumnType"]) -> "ColumnType":
        """Create a :class:`ColumnType` from a raw string value."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            valid_values = ", ".join(item.value for item in cls)
            raise ValueError(f"Invalid column type '{value}'. Expected one of: {valid_values}.") from exc

    @classmethod
    def infer(cls, series: pd.Series) -> "ColumnType":
        """Derive the type tag from a pandas column."""

        dtype = series.dtype
        if pd.api.types.is_bool_dtype(dtype):
            return cls.BOOLEAN
        if isinstance(dtype, pd.CategoricalDtype):
            return cls.CATEGORICAL
        if pd.api.types.is_datetime64_any_dtype(dtype):
            return cls.DATETIME
        if pd.api.types.is_numeric_dtype(dtype):
            return cls.NUMERIC
        non_null = series.dropna()
        if len(non_null) and all(
            isinstance(item, dt.date) and not isinstance(item, dt.datetime) for item in non_null
        ):
            return cls.DATE
        return cls.TEXT

    @property
    def is_range(self) -> bool:
        return self in (ColumnType.NUMERIC, ColumnType.DATE, ColumnType.DATETIME)


@dataclass(frozen=True)
class ColumnSpec:
    """Per-column metadata resolved once when a table is bound.

    ``type`` may be left as ``None`` in configuration; :class:`Table` fills it
    in from the column dtype.
    """

    name: str
    type: Optional[ColumnType] = None
    searchable: bool = True
    orderable: bool = True
    levels: Tuple[str, ...] = ()

    @property
    def escapable(self) -> bool:
        """Whether HTML escaping applies to cells of this column."""

        return self.type in (ColumnType.TEXT, ColumnType.CATEGORICAL)

    @classmethod
    def from_config(cls, name: str, cfg: Mapping[str, Any]) -> "ColumnSpec":
        """Instantiate a :class:`ColumnSpec` from configuration mapping."""

        type_value = cfg.get("type")
        column_type = ColumnType.from_value(type_value) if type_value is not None else None
        levels_raw = cfg.get("levels") or ()
        if isinstance(levels_raw, str):
            raise ValueError(f"Column '{name}': 'levels' must be a list, got a string.")
        searchable = coerce_bool(cfg.get("searchable", True))
        orderable = coerce_bool(cfg.get("orderable", True))
        if searchable is None or orderable is None:
            raise ValueError(f"Column '{name}': 'searchable' and 'orderable' must be booleans.")
        return cls(
            name=str(name),
            type=column_type,
            searchable=searchable,
            orderable=orderable,
            levels=tuple(str(level) for level in levels_raw),
        )


def build_column_specs(columns_cfg: Mapping[str, Any]) -> Dict[str, ColumnSpec]:
    """Create a mapping of column name to :class:`ColumnSpec` objects."""

    specs: Dict[str, ColumnSpec] = {}
    for name, cfg in (columns_cfg or {}).items():
        specs[str(name)] = ColumnSpec.from_config(str(name), dict(cfg or {}))
    return specs


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return tuple(seen)


class Table:
    """Read-only snapshot of a dataframe bound to its column specs.

    Everything a request needs per column (search text, range values,
    membership values and ordering keys) is computed here once, so requests
    dispatch on :attr:`ColumnSpec.type` without looking at cell values again.
    """

    def __init__(
        self,
        dataframe: pd.DataFrame,
        column_specs: Optional[Union[Iterable[ColumnSpec], Mapping[str, ColumnSpec]]] = None,
        *,
        rownames: bool = False,
    ):
        frame = dataframe.copy()
        if rownames:
            frame.insert(0, ROWNAMES_COLUMN, [str(label) for label in frame.index], allow_duplicates=True)
        frame = frame.reset_index(drop=True)
        frame.columns = [str(name) for name in frame.columns]

        if isinstance(column_specs, Mapping):
            declared = dict(column_specs)
        else:
            declared = {spec.name: spec for spec in column_specs or ()}

        self._frame = frame
        specs: List[ColumnSpec] = []
        self._text: List[pd.Series] = []
        self._range_values: List[Any] = []
        self._members: List[Any] = []
        self._sort_keys: List[np.ndarray] = []
        for j, name in enumerate(frame.columns):
            series = frame.iloc[:, j]
            spec = self._resolve_spec(name, series, declared.get(name))
            text = pd.Series([format_cell(item) for item in series.astype(object).tolist()], dtype=object)
            specs.append(spec)
            self._text.append(text)
            self._bind_column(spec, series, text)
        self._specs: Tuple[ColumnSpec, ...] = tuple(specs)

    @staticmethod
    def _resolve_spec(name: str, series: pd.Series, declared: Optional[ColumnSpec]) -> ColumnSpec:
        spec = declared or ColumnSpec(name=name)
        column_type = spec.type or ColumnType.infer(series)
        levels = spec.levels
        if column_type is ColumnType.CATEGORICAL and not levels:
            if isinstance(series.dtype, pd.CategoricalDtype):
                levels = tuple(format_cell(level) or "" for level in series.cat.categories)
            else:
                levels = tuple(sorted({format_cell(item) for item in series.dropna()} - {None}))
        return replace(spec, name=name, type=column_type, levels=_unique(levels))

    def _bind_column(self, spec: ColumnSpec, series: pd.Series, text: pd.Series) -> None:
        range_values: Any = None
        members: Any = None
        if spec.type is ColumnType.NUMERIC:
            range_values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float, na_value=np.nan)
            sort_key = range_values
        elif spec.type in (ColumnType.DATE, ColumnType.DATETIME):
            range_values = pd.Series(pd.to_datetime(series, errors="coerce"))
            sort_key = range_values.rank(method="dense").to_numpy(dtype=float)
        elif spec.type is ColumnType.CATEGORICAL:
            members = text
            codes = pd.Categorical(text, categories=list(spec.levels)).codes.astype(float)
            codes[codes < 0] = np.nan
            sort_key = codes
        elif spec.type is ColumnType.BOOLEAN:
            members = np.array([coerce_bool(item) for item in series.astype(object).tolist()], dtype=object)
            sort_key = np.array(
                [np.nan if item is None else float(item) for item in members], dtype=float
            )
        else:
            sort_key = text.rank(method="dense").to_numpy(dtype=float)
        self._range_values.append(range_values)
        self._members.append(members)
        self._sort_keys.append(sort_key)

    @property
    def column_specs(self) -> Tuple[ColumnSpec, ...]:
        return self._specs

    @property
    def dataframe(self) -> pd.DataFrame:
        return self._frame

    @property
    def n_rows(self) -> int:
        return len(self._frame)

    @property
    def n_cols(self) -> int:
        return len(self._specs)

    def __len__(self) -> int:
        return self.n_rows

    def text_values(self, column: int) -> pd.Series:
        return self._text[column]

    def range_values(self, column: int) -> Any:
        return self._range_values[column]

    def member_values(self, column: int) -> Any:
        return self._members[column]

    def sort_key(self, column: int) -> np.ndarray:
        return self._sort_keys[column]

    def rows(self, positions: Sequence[int]) -> List[List[Any]]:
        """Return the cells at 0-based ``positions`` as lists of Python objects."""

        if len(positions) == 0:
            return []
        subset = self._frame.iloc[np.asarray(positions, dtype=np.int64)]
        return subset.astype(object).values.tolist()

    @classmethod
    def from_records(
        cls,
        records: Sequence[Sequence[Any]],
        column_specs: Sequence[ColumnSpec],
    ) -> "Table":
        """Bind row-major ``records``; column names come from ``column_specs``."""

        names = [spec.name for spec in column_specs]
        frame = pd.DataFrame.from_records(list(records), columns=names)
        return cls(frame, column_specs)


def _wire_value(value: Any) -> Any:
    if is_missing(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    return value


@dataclass
class DataTablesResponse:
    """Result of one request; ``rows_all``/``rows_current`` hold 1-based row numbers."""

    draw: int
    records_total: int
    records_filtered: int
    data: List[List[Any]] = field(default_factory=list)
    rows_all: List[int] = field(default_factory=list)
    rows_current: List[int] = field(default_factory=list)

    @classmethod
    def degenerate(cls, draw: int, n_rows: int) -> "DataTablesResponse":
        """Reply for a request whose columns no longer match the table."""

        return cls(
            draw=draw,
            records_total=n_rows,
            records_filtered=0,
            data=[],
            rows_all=list(range(1, n_rows + 1)),
            rows_current=[],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation understood by the DataTables client."""

        return {
            "draw": int(self.draw),
            "recordsTotal": int(self.records_total),
            "recordsFiltered": int(self.records_filtered),
            "data": [[_wire_value(cell) for cell in row] for row in self.data],
            "DT_rows_all": [int(i) for i in self.rows_all],
            "DT_rows_current": [int(i) for i in self.rows_current],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


__all__ = [
    "ROWNAMES_COLUMN",
    "ColumnSpec",
    "ColumnType",
    "DataTablesResponse",
    "Table",
    "build_column_specs",
    "coerce_bool",
    "format_cell",
    "is_missing",
]
