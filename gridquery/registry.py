"""Per-session store of tables served through server-side processing.

The transport layer owns HTTP; this registry holds the table snapshot behind
each output id, hands out the Ajax URL the client should post to, and turns a
posted body into the JSON reply.  Replacing a table swaps the snapshot
atomically, so a request that is already running finishes against the table
it started with.
"""
from __future__ import annotations

import json
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

import pandas as pd

from .config import EngineConfig
from .errors import UnknownTableError
from .models import ColumnSpec, DataTablesResponse, Table
from .query_engine import evaluate
from .request import DataTablesRequest

log = logging.getLogger(__name__)

FilterFunc = Callable[[Table, DataTablesRequest], DataTablesResponse]
TableSource = Union[Table, pd.DataFrame]


@dataclass(frozen=True)
class DataObject:
    table: Table
    filter: FilterFunc


class DataTableRegistry:
    """Register tables under output ids and answer DataTables requests for them."""

    def __init__(self, token: Optional[str] = None, config: Optional[EngineConfig] = None):
        self.token = token or secrets.token_hex(8)
        self.config = config or EngineConfig()
        self._objects: Dict[str, DataObject] = {}
        self._lock = threading.Lock()

    def _bind(
        self,
        data: TableSource,
        rownames: Optional[bool],
        column_specs: Optional[Iterable[ColumnSpec]],
    ) -> Table:
        if isinstance(data, Table):
            return data
        if rownames is None:
            rownames = self.config.rownames
        return Table(pd.DataFrame(data), column_specs, rownames=rownames)

    def url(self, output_id: str) -> str:
        return f"session/{self.token}/dataobj/{output_id}?w=&nonce={secrets.token_hex(8)}"

    def register(
        self,
        data: TableSource,
        output_id: Optional[str] = None,
        *,
        rownames: Optional[bool] = None,
        column_specs: Optional[Iterable[ColumnSpec]] = None,
        filter: FilterFunc = evaluate,
    ) -> str:
        """Store ``data`` and return the Ajax URL serving it.

        ``filter`` may replace :func:`~gridquery.query_engine.evaluate` with a
        custom ``(table, request) -> DataTablesResponse`` callable.
        """

        if output_id is None:
            output_id = secrets.token_hex(6)
        table = self._bind(data, rownames, column_specs)
        with self._lock:
            self._objects[output_id] = DataObject(table=table, filter=filter)
        log.debug("Registered table %s (%d rows, %d columns)", output_id, table.n_rows, table.n_cols)
        return self.url(output_id)

    def replace(
        self,
        output_id: str,
        data: TableSource,
        *,
        rownames: Optional[bool] = None,
        column_specs: Optional[Iterable[ColumnSpec]] = None,
        filter: Optional[FilterFunc] = None,
    ) -> str:
        """Swap in a new snapshot for an existing output id.

        The replacement should keep the column count; requests still
        describing the old columns receive an empty reply until the client
        reloads.
        """

        table = self._bind(data, rownames, column_specs)
        with self._lock:
            current = self._objects.get(output_id)
            if current is None:
                raise UnknownTableError(f"No table registered under '{output_id}'.")
            if current.table.n_cols != table.n_cols:
                log.warning(
                    "Table %s replaced with %d columns (was %d)", output_id, table.n_cols, current.table.n_cols
                )
            self._objects[output_id] = DataObject(table=table, filter=filter or current.filter)
        return self.url(output_id)

    def remove(self, output_id: str) -> None:
        with self._lock:
            self._objects.pop(output_id, None)

    def get(self, output_id: str) -> DataObject:
        with self._lock:
            try:
                return self._objects[output_id]
            except KeyError:
                raise UnknownTableError(f"No table registered under '{output_id}'.") from None

    def __contains__(self, output_id: object) -> bool:
        with self._lock:
            return output_id in self._objects

    def handle(self, output_id: str, body: Union[str, bytes]) -> Tuple[int, str]:
        """Answer a posted request body with ``(status, json_text)``.

        Failures while decoding or filtering are reported to the client as
        ``{"error": message}`` with status 200, which the table displays.
        """

        try:
            data_object = self.get(output_id)
        except UnknownTableError as exc:
            log.warning("Request for unknown table %s", output_id)
            return 404, json.dumps({"error": str(exc)})

        try:
            request = DataTablesRequest.from_body(body, self.config)
            response = data_object.filter(data_object.table, request)
            payload: Dict[str, Any] = response.to_dict()
        except Exception as exc:
            log.exception("Filtering table %s failed", output_id)
            payload = {"error": str(exc)}
        return 200, json.dumps(payload, ensure_ascii=False, default=str)


__all__ = ["DataObject", "DataTableRegistry", "FilterFunc"]
