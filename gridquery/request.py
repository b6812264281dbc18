"""Decoding of DataTables server-side processing requests.

The browser posts a URL-encoded body with bracketed keys such as
``columns[0][search][value]``.  :func:`parse_query_string` turns that body
into nested dicts and :meth:`DataTablesRequest.from_params` validates the
result into typed, immutable request objects.  JSON-shaped payloads (real
lists and booleans) are accepted as well.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl

from .config import EngineConfig
from .errors import RequestDecodeError
from .models import coerce_bool
from .pager import parse_length

log = logging.getLogger(__name__)

_KEY_HEAD = re.compile(r"^([^\[]*)((?:\[[^\]]*\])*)$")
_KEY_PART = re.compile(r"\[([^\]]*)\]")


def _split_key(key: str) -> List[str]:
    match = _KEY_HEAD.match(key)
    if not match or not match.group(1):
        return [key]
    return [match.group(1)] + _KEY_PART.findall(match.group(2))


def parse_query_string(body: Union[str, bytes], nested: bool = True) -> Dict[str, Any]:
    """Decode a URL-encoded body, nesting bracketed keys into dicts."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if body.startswith("?"):
        body = body[1:]
    params: Dict[str, Any] = {}
    for key, value in parse_qsl(body, keep_blank_values=True):
        if not nested:
            params[key] = value
            continue
        parts = _split_key(key)
        node = params
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return params


def _as_list(value: Any, name: str) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        try:
            keyed = sorted((int(key), item) for key, item in value.items())
        except (TypeError, ValueError) as exc:
            raise RequestDecodeError(f"'{name}' must be indexed by integers, got keys {list(value)!r}.") from exc
        return [item for _, item in keyed]
    raise RequestDecodeError(f"'{name}' must be a list, got {type(value).__name__}.")


def _as_int(value: Any, name: str, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise RequestDecodeError(f"'{name}' must be an integer, got {value!r}.")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise RequestDecodeError(f"'{name}' must be an integer, got {value!r}.") from exc


def _flag(value: Any, default: Optional[bool]) -> Optional[bool]:
    flag = coerce_bool(value)
    return default if flag is None else flag


def _as_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    raise RequestDecodeError(f"'{name}' must be an object, got {type(value).__name__}.")


@dataclass(frozen=True)
class SearchSpec:
    """A search term with its matching options.

    ``case_insensitive`` is ``None`` on a column search that did not set it,
    in which case the global search's setting applies.
    """

    value: str = ""
    regex: bool = False
    case_insensitive: Optional[bool] = None

    @classmethod
    def from_params(cls, raw: Any, name: str, *, case_default: Optional[bool] = None) -> "SearchSpec":
        if isinstance(raw, str):
            return cls(value=raw, case_insensitive=case_default)
        raw = _as_mapping(raw, name)
        value = raw.get("value")
        return cls(
            value="" if value is None else str(value),
            regex=bool(_flag(raw.get("regex"), False)),
            case_insensitive=_flag(raw.get("caseInsensitive"), case_default),
        )


@dataclass(frozen=True)
class ColumnRequest:
    searchable: bool = True
    orderable: bool = True
    search: SearchSpec = field(default_factory=SearchSpec)

    @classmethod
    def from_params(cls, raw: Any, index: int) -> "ColumnRequest":
        raw = _as_mapping(raw, f"columns[{index}]")
        return cls(
            searchable=bool(_flag(raw.get("searchable"), True)),
            orderable=bool(_flag(raw.get("orderable"), True)),
            search=SearchSpec.from_params(raw.get("search"), f"columns[{index}][search]"),
        )


@dataclass(frozen=True)
class OrderSpec:
    """One ``(column, direction)`` pair; ``column`` is 0-based."""

    column: int
    descending: bool = False

    @classmethod
    def from_params(cls, raw: Any, index: int) -> "OrderSpec":
        raw = _as_mapping(raw, f"order[{index}]")
        column = _as_int(raw.get("column"), f"order[{index}][column]", default=-1)
        if column < 0:
            raise RequestDecodeError(f"'order[{index}][column]' must be a non-negative integer.")
        direction = str(raw.get("dir") or "asc").strip().lower()
        if direction not in ("asc", "desc"):
            raise RequestDecodeError(f"'order[{index}][dir]' must be 'asc' or 'desc', got {direction!r}.")
        return cls(column=column, descending=direction == "desc")


@dataclass(frozen=True)
class EscapeSpec:
    """Which columns of the page get HTML-escaped.

    ``indices`` are 1-based wire positions, either all positive (escape these)
    or all negative (escape all except these).
    """

    escape_all: bool = True
    indices: Tuple[int, ...] = ()

    @classmethod
    def from_value(cls, value: Any) -> "EscapeSpec":
        if isinstance(value, bool):
            return cls(escape_all=value)
        if isinstance(value, (list, tuple)):
            pieces = [str(item) for item in value]
        else:
            text = str(value).strip()
            if text.lower() == "true":
                return cls(escape_all=True)
            if text.lower() == "false" or text == "":
                return cls(escape_all=False)
            pieces = text.split(",")
        try:
            indices = tuple(int(piece.strip()) for piece in pieces if piece.strip())
        except ValueError as exc:
            raise RequestDecodeError(f"'escape' must be true, false or a list of integers, got {value!r}.") from exc
        if any(index > 0 for index in indices) and any(index < 0 for index in indices):
            raise RequestDecodeError(f"'escape' cannot mix positive and negative indices: {value!r}.")
        return cls(escape_all=False, indices=indices)


@dataclass(frozen=True)
class DataTablesRequest:
    """A validated server-side processing request.

    ``length`` is ``None`` when the client asked for every row.
    """

    draw: int = 0
    search: SearchSpec = field(default_factory=lambda: SearchSpec(case_insensitive=True))
    columns: Tuple[ColumnRequest, ...] = ()
    order: Tuple[OrderSpec, ...] = ()
    start: int = 0
    length: Optional[int] = None
    escape: EscapeSpec = field(default_factory=EscapeSpec)

    @classmethod
    def from_params(cls, params: Mapping[str, Any], config: Optional[EngineConfig] = None) -> "DataTablesRequest":
        """Validate a decoded parameter mapping."""

        config = config or EngineConfig()
        params = _as_mapping(params, "request")
        draw = _as_int(params.get("draw"), "draw")
        search = SearchSpec.from_params(params.get("search"), "search", case_default=config.case_insensitive)
        columns = tuple(
            ColumnRequest.from_params(item, index)
            for index, item in enumerate(_as_list(params.get("columns"), "columns"))
        )
        order = tuple(
            OrderSpec.from_params(item, index)
            for index, item in enumerate(_as_list(params.get("order"), "order"))
        )
        for item in order:
            if item.column >= len(columns):
                raise RequestDecodeError(
                    f"Order column {item.column} is out of range for {len(columns)} columns."
                )
        start = _as_int(params.get("start"), "start")
        if start < 0:
            log.warning("The DataTables parameter 'start' is %d (negative), using 0.", start)
            start = 0
        escape_raw = params.get("escape")
        escape = EscapeSpec.from_value(config.escape if escape_raw is None else escape_raw)
        return cls(
            draw=draw,
            search=search,
            columns=columns,
            order=order,
            start=start,
            length=parse_length(params.get("length")),
            escape=escape,
        )

    @classmethod
    def from_body(cls, body: Union[str, bytes], config: Optional[EngineConfig] = None) -> "DataTablesRequest":
        """Decode a raw request body, either URL-encoded or a JSON object."""

        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        text = body.strip()
        if text.startswith("{"):
            try:
                params = json.loads(text)
            except json.JSONDecodeError as exc:
                raise RequestDecodeError(f"Request body is not valid JSON: {exc}") from exc
        else:
            params = parse_query_string(text)
        return cls.from_params(params, config)


__all__ = [
    "ColumnRequest",
    "DataTablesRequest",
    "EscapeSpec",
    "OrderSpec",
    "SearchSpec",
    "parse_query_string",
]
