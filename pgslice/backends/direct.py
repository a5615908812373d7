"""Direct backend - reads rows from and replays statements into PostgreSQL."""

import logging
from typing import Any

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json, Jsonb
from psycopg.types.string import TextLoader

from pgslice.cancellation import CancelToken
from pgslice.exceptions import ExtractionCancelledError, QueryFailureError
from pgslice.models import KIND_JSON, KIND_JSONB, TableInfo

logger = logging.getLogger(__name__)


class DirectBackend:
    """
    Execute lookups and inserts against a live database.

    Lookups use bound parameters and composed identifiers; nothing from the
    data is interpolated into SQL text.
    """

    def __init__(
        self,
        conn: Connection,
        schema: str,
        statement_timeout: float | None = None,
    ):
        """
        Initialize backend.

        Args:
            conn: PostgreSQL connection
            schema: Schema name for qualified table names
            statement_timeout: Per-statement limit in seconds (optional)
        """
        self.conn = conn
        self.schema = schema
        self.statement_timeout = statement_timeout

    def _timeout_ms(self, cancel: CancelToken | None) -> int | None:
        limits = []
        if self.statement_timeout is not None:
            limits.append(self.statement_timeout)
        if cancel is not None and cancel.remaining() is not None:
            limits.append(cancel.remaining())
        if not limits:
            return None
        # statement_timeout = 0 disables the limit in PostgreSQL
        return max(1, int(min(limits) * 1000))

    def fetch_rows(
        self,
        table_info: TableInfo,
        column: str,
        value: Any,
        order_by: str | None = None,
        limit: int = 2,
        cancel: CancelToken | None = None,
    ) -> list[dict[str, Any]]:
        """
        Select rows of a table where column equals value.

        Args:
            table_info: Table metadata
            column: Column to filter on
            value: Value the column must equal
            order_by: Column to sort on, descending (optional)
            limit: Maximum number of rows to return
            cancel: Token bounding the statement duration

        Returns:
            Rows as dicts keyed by column name

        Raises:
            QueryFailureError: If the query fails
            ExtractionCancelledError: If the statement hit its time limit
        """
        query = sql.SQL("SELECT {columns} FROM {table} WHERE {column} = %s").format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in table_info.column_names),
            table=sql.Identifier(self.schema, table_info.name),
            column=sql.Identifier(column),
        )
        if order_by:
            query += sql.SQL(" ORDER BY {} DESC").format(sql.Identifier(order_by))
        query += sql.SQL(" LIMIT %s")

        timeout_ms = self._timeout_ms(cancel)

        try:
            with self.conn.transaction():
                with self.conn.cursor(row_factory=dict_row) as cur:
                    # json/jsonb arrive as JSON text, never as parsed values
                    cur.adapters.register_loader("json", TextLoader)
                    cur.adapters.register_loader("jsonb", TextLoader)
                    if timeout_ms is not None:
                        cur.execute(
                            sql.SQL("SET LOCAL statement_timeout = {}").format(
                                sql.Literal(timeout_ms)
                            )
                        )
                    cur.execute(query, (value, limit))
                    return cur.fetchall()
        except psycopg.errors.QueryCanceled as e:
            raise ExtractionCancelledError("statement timeout exceeded") from e
        except psycopg.Error as e:
            raise QueryFailureError(table_info.name, str(e).strip()) from e

    def insert_rows(self, statement, batch_size: int = 100) -> int:
        """
        Insert the rows of one extracted statement using multi-row INSERTs.

        Args:
            statement: InsertStatement produced by the emitter
            batch_size: Number of rows per INSERT statement

        Returns:
            Number of rows inserted
        """
        table_info = statement.table_info
        rows = statement.rows
        if not rows:
            return 0
        if any(fk.is_self_referencing for fk in table_info.foreign_keys):
            # a child may precede its parent; FKs are checked per statement
            batch_size = len(rows)

        adapters = [_param_adapter(col.kind) for col in table_info.columns]
        single_placeholder = sql.SQL("({})").format(
            sql.SQL(", ").join(sql.Placeholder() * len(table_info.columns))
        )

        inserted = 0
        with self.conn.cursor() as cur:
            # Process in batches
            for i in range(0, len(rows), batch_size):
                batch = rows[i : i + batch_size]

                query = sql.SQL("INSERT INTO {table} ({columns}) VALUES {values}").format(
                    table=sql.Identifier(statement.schema, table_info.name),
                    columns=sql.SQL(", ").join(
                        sql.Identifier(c) for c in table_info.column_names
                    ),
                    values=sql.SQL(", ").join([single_placeholder] * len(batch)),
                )

                # Flatten values: [row1_col1, row1_col2, row2_col1, row2_col2, ...]
                values = []
                for row in batch:
                    for adapt, value in zip(adapters, row.value_list):
                        values.append(adapt(value))

                cur.execute(query, values)
                inserted += len(batch)

        logger.debug(f"Inserted {inserted} row(s) into {statement.schema}.{table_info.name}")
        return inserted

    def replay(self, statements) -> int:
        """
        Insert every statement, in order, inside one transaction.

        Raises:
            QueryFailureError: If any insert fails (nothing is kept)
        """
        total = 0
        current = "<none>"
        try:
            with self.conn.transaction():
                for statement in statements:
                    current = statement.table_info.name
                    total += self.insert_rows(statement)
        except psycopg.Error as e:
            raise QueryFailureError(current, str(e).strip()) from e
        logger.info(f"Replayed {total} row(s) from {len(statements)} statement(s)")
        return total


def _param_adapter(kind: str):
    """Return a function preparing a decoded value for parameter binding."""
    if kind == KIND_JSON:
        wrapper = Json
    elif kind == KIND_JSONB:
        wrapper = Jsonb
    else:
        return lambda v: v

    def adapt(value):
        if value is None:
            return value
        if isinstance(value, str):
            # already JSON text
            return wrapper(value, dumps=_json_text)
        return wrapper(value)

    return adapt


def _json_text(text: str) -> str:
    return text
