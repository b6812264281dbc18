from __future__ import annotations

import json
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from gridquery.config import EngineConfig
from gridquery.errors import RequestDecodeError
from gridquery.request import (
    ColumnRequest,
    DataTablesRequest,
    EscapeSpec,
    OrderSpec,
    SearchSpec,
    parse_query_string,
)

BODY = (
    "draw=3"
    "&columns%5B0%5D%5Bdata%5D=0&columns%5B0%5D%5Bsearchable%5D=true&columns%5B0%5D%5Borderable%5D=true"
    "&columns%5B0%5D%5Bsearch%5D%5Bvalue%5D=a%26b&columns%5B0%5D%5Bsearch%5D%5Bregex%5D=false"
    "&columns%5B1%5D%5Bdata%5D=1&columns%5B1%5D%5Bsearchable%5D=false&columns%5B1%5D%5Borderable%5D=false"
    "&columns%5B1%5D%5Bsearch%5D%5Bvalue%5D=&columns%5B1%5D%5Bsearch%5D%5Bregex%5D=true"
    "&order%5B0%5D%5Bcolumn%5D=1&order%5B0%5D%5Bdir%5D=desc"
    "&order%5B1%5D%5Bcolumn%5D=0&order%5B1%5D%5Bdir%5D=asc"
    "&start=20&length=10"
    "&search%5Bvalue%5D=foo+bar&search%5Bregex%5D=false&search%5BcaseInsensitive%5D=false"
    "&escape=-1"
)


def test_parse_query_string_nests_bracketed_keys():
    params = parse_query_string(BODY)
    assert params["draw"] == "3"
    assert params["columns"]["0"]["search"]["value"] == "a&b"
    assert params["columns"]["1"]["searchable"] == "false"
    assert params["order"]["1"] == {"column": "0", "dir": "asc"}
    assert params["search"]["value"] == "foo bar"


def test_parse_query_string_flat_and_bytes():
    flat = parse_query_string(b"?a%5Bb%5D=1&c=", nested=False)
    assert flat == {"a[b]": "1", "c": ""}


def test_from_body_builds_typed_request():
    request = DataTablesRequest.from_body(BODY)
    assert request.draw == 3
    assert request.search == SearchSpec("foo bar", regex=False, case_insensitive=False)
    assert request.columns == (
        ColumnRequest(searchable=True, orderable=True, search=SearchSpec("a&b")),
        ColumnRequest(searchable=False, orderable=False, search=SearchSpec("", regex=True)),
    )
    assert request.order == (OrderSpec(1, descending=True), OrderSpec(0, descending=False))
    assert request.start == 20
    assert request.length == 10
    assert request.escape == EscapeSpec(escape_all=False, indices=(-1,))


def test_from_body_accepts_json():
    payload = {
        "draw": 1,
        "search": {"value": "x", "regex": True},
        "columns": [{"searchable": True, "orderable": True, "search": {"value": "", "regex": False}}],
        "order": [{"column": 0, "dir": "desc"}],
        "start": 0,
        "length": -1,
        "escape": False,
    }
    request = DataTablesRequest.from_body(json.dumps(payload))
    assert request.search.regex is True
    assert request.search.case_insensitive is True
    assert request.length is None
    assert request.escape == EscapeSpec(escape_all=False)
    assert request.order == (OrderSpec(0, descending=True),)


def test_json_integral_floats_are_accepted():
    payload = {
        "draw": 2.0,
        "columns": [{"search": {"value": ""}}],
        "order": [{"column": 0.0, "dir": "asc"}],
        "start": 10.0,
        "length": 10.0,
    }
    request = DataTablesRequest.from_body(json.dumps(payload))
    assert request.draw == 2
    assert request.start == 10
    assert request.length == 10
    assert request.order == (OrderSpec(0),)


def test_missing_options_use_config_defaults():
    config = EngineConfig(case_insensitive=False, escape="2,3")
    request = DataTablesRequest.from_params({"draw": "1"}, config)
    assert request.search.case_insensitive is False
    assert request.escape == EscapeSpec(False, (2, 3))
    assert request.length is None
    assert request.columns == ()


def test_negative_start_is_clamped():
    assert DataTablesRequest.from_params({"start": "-4"}).start == 0


def test_unparsable_length_becomes_zero():
    assert DataTablesRequest.from_params({"length": "ten"}).length == 0


@pytest.mark.parametrize(
    "value, expected",
    [
        ("true", EscapeSpec(True)),
        ("FALSE", EscapeSpec(False)),
        ("1,3", EscapeSpec(False, (1, 3))),
        ("-2", EscapeSpec(False, (-2,))),
        ([1, 2], EscapeSpec(False, (1, 2))),
        (True, EscapeSpec(True)),
    ],
)
def test_escape_spec_from_value(value, expected):
    assert EscapeSpec.from_value(value) == expected


@pytest.mark.parametrize(
    "params",
    [
        {"draw": "x"},
        {"columns": {"0": {}}, "order": {"0": {"column": "0", "dir": "up"}}},
        {"columns": {"0": {}}, "order": {"0": {"column": "3", "dir": "asc"}}},
        {"columns": {"0": {}}, "order": {"0": {"dir": "asc"}}},
        {"columns": {"a": {}}},
        {"escape": "1,-2"},
        {"escape": "1,x"},
        {"search": ["x"]},
    ],
)
def test_structural_problems_raise(params):
    with pytest.raises(RequestDecodeError):
        DataTablesRequest.from_params(params)


def test_invalid_json_body():
    with pytest.raises(RequestDecodeError):
        DataTablesRequest.from_body("{not json")
