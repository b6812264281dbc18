from __future__ import annotations

import datetime as dt
import json
import pathlib
import sys

import numpy as np
import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pd = pytest.importorskip("pandas")

from gridquery.models import (
    ROWNAMES_COLUMN,
    ColumnSpec,
    ColumnType,
    DataTablesResponse,
    Table,
    build_column_specs,
    coerce_bool,
    format_cell,
)


def _make_frame() -> "pd.DataFrame":
    return pd.DataFrame(
        {
            "name": ["<b>x</b>", "y"],
            "count": [3, 4],
            "kind": pd.Categorical(["lo", "hi"], categories=["lo", "hi"]),
            "flag": [True, False],
            "when": pd.to_datetime(["2024-05-01 12:00:00", "2024-05-02 00:00:00"]),
        },
        index=["r1", "r2"],
    )


def test_column_types_are_inferred_from_dtypes():
    table = Table(_make_frame())
    types = [spec.type for spec in table.column_specs]
    assert types == [
        ColumnType.TEXT,
        ColumnType.NUMERIC,
        ColumnType.CATEGORICAL,
        ColumnType.BOOLEAN,
        ColumnType.DATETIME,
    ]
    assert table.column_specs[2].levels == ("lo", "hi")


def test_declared_spec_keeps_inferred_type_when_unset():
    table = Table(_make_frame(), [ColumnSpec("count", searchable=False)])
    spec = table.column_specs[1]
    assert spec.type is ColumnType.NUMERIC
    assert spec.searchable is False


def test_rownames_prepends_text_column_without_touching_source():
    frame = _make_frame()
    table = Table(frame, rownames=True)
    assert table.n_cols == frame.shape[1] + 1
    assert table.column_specs[0].name == ROWNAMES_COLUMN
    assert table.column_specs[0].type is ColumnType.TEXT
    assert table.text_values(0).tolist() == ["r1", "r2"]
    assert ROWNAMES_COLUMN not in frame.columns


def test_rows_returns_python_values_in_requested_order():
    table = Table(_make_frame())
    rows = table.rows([1, 0])
    assert rows[0][0] == "y"
    assert rows[1][1] == 3
    assert isinstance(rows[1][1], int)
    assert table.rows([]) == []


def test_text_rendering_of_cells():
    assert format_cell(3.0) == "3"
    assert format_cell(2.5) == "2.5"
    assert format_cell(None) is None
    assert format_cell(float("nan")) is None
    assert format_cell(pd.NaT) is None
    assert format_cell(True) == "True"
    assert format_cell(np.int64(7)) == "7"
    assert format_cell(pd.Timestamp("2024-01-02 03:04:05")) == "2024-01-02 03:04:05"
    assert format_cell(dt.date(2024, 1, 2)) == "2024-01-02"


def test_coerce_bool_variants():
    assert coerce_bool("TRUE") is True
    assert coerce_bool("f") is False
    assert coerce_bool(0) is False
    assert coerce_bool(None) is None
    assert coerce_bool("maybe") is None


def test_column_spec_from_config():
    spec = ColumnSpec.from_config("x", {"type": "Numeric", "orderable": "false"})
    assert spec.type is ColumnType.NUMERIC
    assert spec.orderable is False
    assert spec.searchable is True

    specs = build_column_specs({"g": {"type": "categorical", "levels": ["a", "b"]}})
    assert specs["g"].levels == ("a", "b")
    assert specs["g"].escapable


def test_column_spec_from_config_rejects_unknown_type():
    with pytest.raises(ValueError, match="Invalid column type"):
        ColumnSpec.from_config("x", {"type": "decimal"})


def test_sort_keys_place_missing_values_last():
    frame = pd.DataFrame({"label": ["b", None, "a"]})
    key = Table(frame).sort_key(0)
    assert key[2] < key[0]
    assert np.isnan(key[1])


def test_response_wire_format():
    response = DataTablesResponse(
        draw=2,
        records_total=3,
        records_filtered=1,
        data=[[np.int64(5), float("nan"), pd.Timestamp("2024-01-01"), None, pd.NA]],
        rows_all=[3],
        rows_current=[3],
    )
    wire = response.to_dict()
    assert wire == {
        "draw": 2,
        "recordsTotal": 3,
        "recordsFiltered": 1,
        "data": [[5, None, "2024-01-01T00:00:00", None, None]],
        "DT_rows_all": [3],
        "DT_rows_current": [3],
    }
    assert json.loads(response.to_json()) == wire


def test_degenerate_response():
    response = DataTablesResponse.degenerate(draw=9, n_rows=3)
    assert response.records_total == 3
    assert response.records_filtered == 0
    assert response.data == []
    assert response.rows_all == [1, 2, 3]
    assert response.rows_current == []
