"""Foreign-key traversal from a seed row.

Starting from one row, the traverser walks the schema graph in both
directions:

- forward: rows in other tables whose foreign keys point at the current row
  (its dependents)
- backward: rows the current row's foreign keys point at (its prerequisites)

Example:
    >>> traverser = Traverser(graph, DirectBackend(conn, "public"))
    >>> session = traverser.run("vehicle", "id", vehicle_id)
    >>> session.tables
    ['vehicle', 'ownership', 'person', 'rental', 'manufacturer', 'model']
"""

import logging
from dataclasses import dataclass
from typing import Any

from pgslice.cancellation import CancelToken
from pgslice.decoder import RowDecoder
from pgslice.exceptions import AmbiguousRowError
from pgslice.models import (
    MULTIPLE_ROWS,
    ROW_ABSENT,
    ExtractionSession,
    SchemaGraph,
    TableInfo,
)

logger = logging.getLogger(__name__)

MULTIPLE_MATCH_LATEST = "latest"
MULTIPLE_MATCH_ERROR = "error"


@dataclass(frozen=True)
class _Lookup:
    table: str
    column: str
    value: Any
    # lookups through a referenced column expect a unique match
    expects_unique: bool = True


class Traverser:
    """
    Walk foreign keys from a seed row and collect connected rows.

    Each call to run() works on its own ExtractionSession, so one traverser
    can serve several extractions as long as the backend allows it.
    """

    def __init__(
        self,
        graph: SchemaGraph,
        backend,
        primary_keys: dict[str, str] | None = None,
        default_primary_key: str | None = "id",
        multiple_match: str = MULTIPLE_MATCH_LATEST,
    ):
        """
        Initialize traverser.

        Args:
            graph: Schema graph to walk
            backend: Row source with a fetch_rows() method
            primary_keys: Per-table identifying column overrides
            default_primary_key: Identifying column used when a table has
                neither an override nor an introspected primary key
            multiple_match: "latest" picks the newest of several matches,
                "error" raises AmbiguousRowError
        """
        if multiple_match not in (MULTIPLE_MATCH_LATEST, MULTIPLE_MATCH_ERROR):
            raise ValueError(
                f"Unknown multiple_match '{multiple_match}'. "
                f"Available: '{MULTIPLE_MATCH_LATEST}', '{MULTIPLE_MATCH_ERROR}'."
            )
        self.graph = graph
        self.backend = backend
        self.primary_keys = primary_keys or {}
        self.default_primary_key = default_primary_key
        self.multiple_match = multiple_match
        self._decoders: dict[str, RowDecoder] = {}

    def identity_column(self, table_info: TableInfo) -> str | None:
        """
        Column identifying rows of a table.

        Also used as the tie-break when several rows match a lookup.
        """
        configured = self.primary_keys.get(table_info.name)
        if configured and table_info.has_column(configured):
            return configured
        if table_info.pk_column:
            return table_info.pk_column
        if self.default_primary_key and table_info.has_column(self.default_primary_key):
            return self.default_primary_key
        return None

    def _decoder(self, table_info: TableInfo) -> RowDecoder:
        if table_info.name not in self._decoders:
            self._decoders[table_info.name] = RowDecoder(
                table_info, self.identity_column(table_info)
            )
        return self._decoders[table_info.name]

    def run(
        self,
        table: str,
        column: str,
        value: Any,
        session: ExtractionSession | None = None,
        cancel: CancelToken | None = None,
    ) -> ExtractionSession:
        """
        Collect every row connected to the seed row.

        Args:
            table: Seed table
            column: Column identifying the seed row
            value: Value of that column
            session: Session to fill (a fresh one by default)
            cancel: Token checked before every lookup

        Returns:
            The filled session

        Raises:
            TableNotFoundError: If the seed table is not in the graph
            ColumnNotFoundError: If the seed column does not exist
            QueryFailureError: If a lookup fails
            ExtractionCancelledError: If cancelled or timed out
            AmbiguousRowError: If multiple_match is "error" and a unique
                lookup matched several rows
        """
        if session is None:
            session = ExtractionSession()

        self.graph.get_table(table).get_column(column)

        # Depth-first; children are pushed in reverse so they pop in order
        stack = [_Lookup(table, column, value)]
        while stack:
            lookup = stack.pop()
            if not session.mark_visited(lookup.table, lookup.column, lookup.value):
                continue
            children = self._visit(lookup, session, cancel)
            stack.extend(reversed(children))

        logger.info(
            f"Extracted {session.row_count} row(s) from {len(session.rows)} table(s) "
            f"with {session.fetch_count} lookup(s)"
        )
        return session

    def _visit(
        self,
        lookup: _Lookup,
        session: ExtractionSession,
        cancel: CancelToken | None,
    ) -> list[_Lookup]:
        table_info = self.graph.get_table(lookup.table)
        order_by = self.identity_column(table_info)

        if cancel is not None:
            cancel.check()

        logger.debug(
            f"Fetching {lookup.table} where {lookup.column} = {lookup.value!r}"
            + (f" order by {order_by} desc" if order_by else "")
        )
        session.fetch_count += 1
        rows = self.backend.fetch_rows(
            table_info, lookup.column, lookup.value, order_by=order_by, limit=2, cancel=cancel
        )

        if not rows:
            logger.debug(f"No row in {lookup.table} where {lookup.column} = {lookup.value!r}")
            session.warn(ROW_ABSENT, lookup.table, lookup.column, str(lookup.value))
            return []

        if len(rows) > 1:
            if lookup.expects_unique and self.multiple_match == MULTIPLE_MATCH_ERROR:
                raise AmbiguousRowError(lookup.table, lookup.column, lookup.value)
            if lookup.expects_unique:
                logger.warning(
                    f"Several rows in {lookup.table} have {lookup.column} = "
                    f"{lookup.value!r}; keeping the latest by {order_by}"
                )
            session.warn(MULTIPLE_ROWS, lookup.table, lookup.column, str(lookup.value))

        row = self._decoder(table_info).decode(rows[0], session)
        if not session.add_row(row):
            # Same row reached through another path; it was expanded already
            return []

        children = []

        # Forward: rows elsewhere that reference this row
        for fk in self.graph.incoming(lookup.table):
            referenced_value = row.values.get(fk.referenced_column)
            if referenced_value is None:
                continue
            children.append(
                _Lookup(fk.table, fk.column, referenced_value, expects_unique=False)
            )

        # Backward: rows this row references
        for fk in table_info.foreign_keys:
            fk_value = row.values.get(fk.column)
            if fk_value is None:
                continue
            if fk.referenced_table not in self.graph:
                logger.debug(
                    f"Not following {fk.qualified_name}: "
                    f"table '{fk.referenced_table}' is not in the schema graph"
                )
                continue
            children.append(_Lookup(fk.referenced_table, fk.referenced_column, fk_value))

        return children
