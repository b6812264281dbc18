"""Server-side processing: filter, order and page a bound table."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .config import EngineConfig
from .errors import RequestDecodeError
from .escaper import escape_rows
from .matcher import column_search, global_search
from .models import DataTablesResponse, Table
from .ordering import order_rows
from .pager import page
from .request import DataTablesRequest

log = logging.getLogger(__name__)


def evaluate(table: Table, request: DataTablesRequest) -> DataTablesResponse:
    """Compute the response for ``request`` against ``table``.

    The table is only read.  A request whose column list does not match the
    table (typically sent just before the table was replaced) gets a valid
    but empty reply instead of an error so the client can reload.
    """

    n_rows = table.n_rows
    if len(request.columns) != table.n_cols:
        log.info(
            "Request draw=%d describes %d columns but the table has %d, returning an empty reply",
            request.draw,
            len(request.columns),
            table.n_cols,
        )
        return DataTablesResponse.degenerate(request.draw, n_rows)

    for item in request.order:
        if not 0 <= item.column < table.n_cols:
            raise RequestDecodeError(
                f"Order column {item.column} is out of range for a table with {table.n_cols} columns."
            )

    positions = global_search(table, request.search, request.columns)
    if positions.size:
        positions = column_search(
            table,
            positions,
            request.columns,
            default_ignore_case=bool(request.search.case_insensitive),
        )
    positions = order_rows(table, positions, request.order, request.columns)
    current = page(positions, request.start, request.length)

    data = escape_rows(table.rows(current), table.column_specs, request.escape)
    return DataTablesResponse(
        draw=request.draw,
        records_total=n_rows,
        records_filtered=int(positions.size),
        data=data,
        rows_all=(positions + 1).tolist(),
        rows_current=(np.asarray(current, dtype=np.int64) + 1).tolist(),
    )


class QueryEngine:
    """A table snapshot paired with the defaults used to decode its requests."""

    def __init__(self, table: Table, config: Optional[EngineConfig] = None):
        self._table = table
        self._config = config or EngineConfig()

    @property
    def table(self) -> Table:
        return self._table

    @property
    def config(self) -> EngineConfig:
        return self._config

    def query(self, request: DataTablesRequest) -> DataTablesResponse:
        return evaluate(self._table, request)

    def handle_body(self, body) -> DataTablesResponse:
        """Decode a raw request body and evaluate it."""

        return self.query(DataTablesRequest.from_body(body, self._config))


__all__ = ["QueryEngine", "evaluate"]
