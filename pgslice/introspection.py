"""Schema introspection with caching."""

import logging
from collections.abc import Iterable

from psycopg import Connection

from pgslice.exceptions import SchemaNotFoundError, TableNotFoundError
from pgslice.models import ColumnInfo, SchemaGraph, TableInfo

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Introspect a PostgreSQL schema into a SchemaGraph."""

    def __init__(self, conn: Connection, schema: str, skip_tables: Iterable[str] = ()):
        """
        Initialize introspector.

        Args:
            conn: PostgreSQL connection
            schema: Schema to introspect
            skip_tables: Tables left out of the graph (e.g. migrations)

        Raises:
            SchemaNotFoundError: If schema doesn't exist
        """
        self.conn = conn
        self.schema = schema
        self.skip_tables = set(skip_tables)
        self._table_cache: dict[str, TableInfo] = {}
        self._graph_cache: SchemaGraph | None = None

        # Validate schema exists
        self._validate_schema()

    def _validate_schema(self) -> None:
        """Validate that schema exists in database."""
        with self.conn.cursor() as cur:
            cur.execute(
                "SELECT EXISTS(SELECT 1 FROM information_schema.schemata WHERE schema_name = %s)",
                (self.schema,),
            )
            exists = cur.fetchone()[0]
            if not exists:
                raise SchemaNotFoundError(self.schema)

    def get_table_names(self) -> list[str]:
        """Get names of all base tables in schema, minus skipped ones."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s
                  AND table_type = 'BASE TABLE'
                ORDER BY table_name
                """,
                (self.schema,),
            )
            rows = cur.fetchall()

        return [row[0] for row in rows if row[0] not in self.skip_tables]

    def get_tables(self) -> list[TableInfo]:
        """Get all tables in schema (cached)."""
        return [self.get_table_info(name) for name in self.get_table_names()]

    def get_table_info(self, table_name: str) -> TableInfo:
        """Get complete table information (cached)."""
        if table_name in self._table_cache:
            return self._table_cache[table_name]

        columns = self.get_columns(table_name)
        if not columns:
            raise TableNotFoundError(table_name, self.schema)

        table_info = TableInfo(name=table_name, columns=columns, schema=self.schema)
        self._table_cache[table_name] = table_info
        return table_info

    def get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get all columns for a table with primary key and foreign key targets."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    c.column_name,
                    c.data_type,
                    c.ordinal_position,
                    c.is_nullable,
                    c.column_default,
                    CASE WHEN pk.column_name IS NOT NULL THEN true ELSE false END AS is_pk,
                    fk.foreign_table_name,
                    fk.foreign_column_name
                FROM information_schema.columns c
                LEFT JOIN (
                    SELECT kcu.column_name
                    FROM information_schema.table_constraints tc
                    JOIN information_schema.key_column_usage kcu
                      ON tc.constraint_name = kcu.constraint_name
                      AND tc.table_schema = kcu.table_schema
                    WHERE tc.constraint_type = 'PRIMARY KEY'
                      AND tc.table_schema = %s
                      AND tc.table_name = %s
                ) pk ON c.column_name = pk.column_name
                LEFT JOIN (
                    SELECT DISTINCT ON (kcu.column_name)
                        kcu.column_name,
                        ccu.table_name AS foreign_table_name,
                        ccu.column_name AS foreign_column_name
                    FROM information_schema.table_constraints AS tc
                    JOIN information_schema.key_column_usage AS kcu
                      ON tc.constraint_name = kcu.constraint_name
                      AND tc.table_schema = kcu.table_schema
                    JOIN information_schema.constraint_column_usage AS ccu
                      ON ccu.constraint_name = tc.constraint_name
                      AND ccu.table_schema = tc.table_schema
                    WHERE tc.constraint_type = 'FOREIGN KEY'
                      AND tc.table_schema = %s
                      AND tc.table_name = %s
                    ORDER BY kcu.column_name, tc.constraint_name
                ) fk ON c.column_name = fk.column_name
                WHERE c.table_schema = %s
                  AND c.table_name = %s
                ORDER BY c.ordinal_position
                """,
                (self.schema, table_name, self.schema, table_name, self.schema, table_name),
            )
            rows = cur.fetchall()

        return [
            ColumnInfo(
                name=row[0],
                pg_type=row[1],
                ordinal_position=row[2],
                is_nullable=row[3] == "YES",
                default_value=row[4],
                is_primary_key=row[5],
                referenced_table=row[6],
                referenced_column=row[7],
            )
            for row in rows
        ]

    def build_graph(self) -> SchemaGraph:
        """Build the schema graph (cached)."""
        if self._graph_cache is not None:
            return self._graph_cache

        graph = SchemaGraph(self.get_tables())
        for table in graph.tables.values():
            for fk in table.foreign_keys:
                if fk.referenced_table not in graph:
                    logger.debug(
                        f"{fk.qualified_name} references '{fk.referenced_table}', "
                        f"which is skipped or outside schema '{self.schema}'"
                    )

        logger.info(f"Introspected {len(graph)} table(s) in schema '{self.schema}'")
        self._graph_cache = graph
        return graph

    def clear_cache(self) -> None:
        """Clear cached introspection data."""
        self._table_cache.clear()
        self._graph_cache = None
