"""Data loading utilities producing bound tables."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from .models import ColumnSpec, Table, build_column_specs, format_cell


class TableLoader:
    """Load tabular datasets according to configuration."""

    def __init__(self, data_cfg: Mapping[str, Any], columns_cfg: Optional[Mapping[str, Any]] = None):
        self.data_cfg = dict(data_cfg)
        self.columns_cfg: Dict[str, Dict[str, Any]] = {
            str(name): dict(cfg or {}) for name, cfg in (columns_cfg or {}).items()
        }
        self.column_specs: Dict[str, ColumnSpec] = build_column_specs(self.columns_cfg)

    def load(self) -> pd.DataFrame:
        """Load the configured dataset and apply declared type conversions."""

        path = Path(str(self.data_cfg.get("path", ""))).expanduser().resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Data file not found: {path}")

        kind = str(self.data_cfg.get("kind", "csv")).lower()

        if kind == "csv":
            read_kwargs: Dict[str, Any] = {}
            sep = self.data_cfg.get("sep") or self.data_cfg.get("delimiter")
            if sep is not None:
                read_kwargs["sep"] = sep
            encoding = self.data_cfg.get("encoding")
            if encoding is not None:
                read_kwargs["encoding"] = encoding
            df = pd.read_csv(path, **read_kwargs)
        elif kind == "excel":
            sheet = self.data_cfg.get("sheet", 0)
            df = pd.read_excel(path, sheet_name=sheet)
        else:
            raise ValueError("Data kind must be either 'csv' or 'excel'.")

        for column_name, cfg in self.columns_cfg.items():
            dtype = cfg.get("dtype")
            if dtype is None or column_name not in df.columns:
                continue
            df[column_name] = _convert(df[column_name], str(dtype).lower(), cfg.get("levels"))
        return df

    def get_column_specs(self) -> Iterable[ColumnSpec]:
        """Expose the configured column settings for downstream consumers."""

        return self.column_specs.values()

    def build_table(self, rownames: bool = False) -> Table:
        """Load the dataset and bind it with the configured column specs."""

        return Table(self.load(), self.column_specs, rownames=rownames)


def _convert(series: pd.Series, dtype: str, levels: Optional[Iterable[Any]] = None) -> pd.Series:
    if dtype == "datetime":
        return pd.to_datetime(series, errors="coerce")
    if dtype == "date":
        return pd.to_datetime(series, errors="coerce").dt.date
    if dtype in {"float", "float32", "float64"}:
        return pd.to_numeric(series, errors="coerce")
    if dtype in {"int", "int32", "int64"}:
        return pd.to_numeric(series, errors="coerce").astype("Int64")
    if dtype == "str":
        return series.astype(str)
    if dtype == "bool":
        return series.astype("boolean")
    if dtype == "category":
        if levels:
            return pd.Categorical(series.map(format_cell), categories=[str(level) for level in levels])
        return series.astype("category")
    return series.astype(dtype)


__all__ = ["TableLoader"]
