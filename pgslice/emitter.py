"""Render extracted rows as INSERT statements."""

from dataclasses import dataclass

from pgslice.decoder import quote_identifier
from pgslice.models import ExtractedRow, ExtractionSession, SchemaGraph, TableInfo

HEADER = "-- File generated by pgslice. DO NOT EDIT.\n\n"


@dataclass
class InsertStatement:
    """
    One multi-row INSERT for a single table.

    Attributes:
        schema: Schema the table lives in
        table_info: Table metadata (columns in ordinal order)
        rows: Extracted rows, in discovery order
    """

    schema: str
    table_info: TableInfo
    rows: list[ExtractedRow]

    @property
    def table(self) -> str:
        return self.table_info.name

    @property
    def columns(self) -> list[str]:
        return self.table_info.column_names

    @property
    def values(self) -> list[list]:
        """Typed values per row, in column order."""
        return [row.value_list for row in self.rows]

    @property
    def literals(self) -> list[list[str]]:
        """SQL literals per row, in column order."""
        return [row.literal_list for row in self.rows]

    def to_sql(self) -> str:
        target = f"{quote_identifier(self.schema)}.{quote_identifier(self.table)}"
        column_list = ",".join(quote_identifier(c) for c in self.columns)
        value_rows = ",\n".join(f"({', '.join(lits)})" for lits in self.literals)
        return f"INSERT\nINTO {target}({column_list})\nVALUES\n{value_rows}\n;"

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "columns": self.columns,
            "rows": self.literals,
        }


def build_statements(
    graph: SchemaGraph,
    session: ExtractionSession,
    order: list[str],
    schema: str = "public",
) -> list[InsertStatement]:
    """
    Build one statement per populated table, following the given order.

    Args:
        graph: Schema graph the rows were extracted with
        session: Session holding the extracted rows
        order: Table names, dependencies first
        schema: Schema used to qualify table names
    """
    statements = []
    for table in order:
        rows = session.rows.get(table)
        if not rows:
            continue
        statements.append(
            InsertStatement(schema=schema, table_info=graph.get_table(table), rows=rows)
        )
    return statements


def render_sql(statements: list[InsertStatement]) -> list[str]:
    """Render each statement as SQL text."""
    return [statement.to_sql() for statement in statements]


def render_script(statements: list[InsertStatement], header: bool = True) -> str:
    """Render statements as one script, separated by blank lines."""
    body = "\n\n".join(render_sql(statements))
    if body:
        body += "\n"
    return (HEADER if header else "") + body
