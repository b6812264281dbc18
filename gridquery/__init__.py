"""Server-side filtering, ordering and paging for DataTables-style grids."""
from .config import AppConfig, EngineConfig, load_config
from .errors import (
    GridQueryError,
    MalformedRangeError,
    MalformedSearchError,
    RequestDecodeError,
    UnknownTableError,
)
from .loader import TableLoader
from .models import ColumnSpec, ColumnType, DataTablesResponse, Table
from .query_engine import QueryEngine, evaluate
from .registry import DataTableRegistry
from .request import ColumnRequest, DataTablesRequest, EscapeSpec, OrderSpec, SearchSpec, parse_query_string

__all__ = [
    "AppConfig",
    "ColumnRequest",
    "ColumnSpec",
    "ColumnType",
    "DataTableRegistry",
    "DataTablesRequest",
    "DataTablesResponse",
    "EngineConfig",
    "EscapeSpec",
    "GridQueryError",
    "MalformedRangeError",
    "MalformedSearchError",
    "OrderSpec",
    "QueryEngine",
    "RequestDecodeError",
    "SearchSpec",
    "Table",
    "TableLoader",
    "UnknownTableError",
    "evaluate",
    "load_config",
    "parse_query_string",
]
