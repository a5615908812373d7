"""Staging backend - in-memory backend for testing without database."""

from typing import Any

from pgslice.cancellation import CancelToken
from pgslice.models import TableInfo


class StagingBackend:
    """
    In-memory row source and replay target.

    Simulates the lookups of DirectBackend:
    - Filters rows by comparing stringified values (like a text cast)
    - Orders by a column descending, NULLs last
    - Stores replayed rows in memory (not database)

    Use case: Fast unit tests, offline development, prototyping extraction.
    """

    def __init__(self, data: dict[str, list[dict[str, Any]]] | None = None):
        """
        Initialize staging backend.

        Args:
            data: Optional initial rows per table
        """
        self._data: dict[str, list[dict[str, Any]]] = {}
        self.queries: list[tuple[str, str, str]] = []
        for table, rows in (data or {}).items():
            self.add_rows(table, rows)

    def add_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Add rows to the in-memory table."""
        self._data.setdefault(table, []).extend(dict(row) for row in rows)

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
        Return rows of a table where column equals value.

        Args:
            table_info: Table metadata
            column: Column to filter on
            value: Value the column must equal
            order_by: Column to sort on, descending (optional)
            limit: Maximum number of rows to return
            cancel: Checked before the lookup

        Returns:
            Copies of the matching rows
        """
        if cancel is not None:
            cancel.check()
        self.queries.append((table_info.name, column, str(value)))

        matches = [
            dict(row)
            for row in self._data.get(table_info.name, [])
            if row.get(column) is not None and str(row.get(column)) == str(value)
        ]
        if order_by:
            with_value = [r for r in matches if r.get(order_by) is not None]
            without_value = [r for r in matches if r.get(order_by) is None]
            with_value.sort(key=lambda r: r[order_by], reverse=True)
            matches = with_value + without_value
        return matches[:limit]

    def insert_rows(self, statement, batch_size: int = 100) -> int:
        """
        Simulate replaying a statement (store typed values in memory).

        Returns:
            Number of rows stored
        """
        self.add_rows(statement.table_info.name, [dict(row.values) for row in statement.rows])
        return len(statement.rows)

    def replay(self, statements) -> int:
        return sum(self.insert_rows(statement) for statement in statements)

    def get_data(self, table_name: str) -> list[dict[str, Any]]:
        """
        Get in-memory data for inspection.

        Args:
            table_name: Table name

        Returns:
            List of row dicts for the table
        """
        return self._data.get(table_name, [])
