"""Data models and type definitions."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from pgslice.exceptions import ColumnNotFoundError, DuplicateTableError, TableNotFoundError

# Column kinds understood by the row decoder
KIND_TEXT = "text"
KIND_UUID = "uuid"
KIND_TIMESTAMP = "timestamp"
KIND_INTEGER = "integer"
KIND_JSON = "json"
KIND_JSONB = "jsonb"
KIND_OTHER = "other"

# information_schema.columns.data_type → column kind
PG_TYPE_KINDS = {
    "text": KIND_TEXT,
    "character varying": KIND_TEXT,
    "varchar": KIND_TEXT,
    "character": KIND_TEXT,
    "char": KIND_TEXT,
    "name": KIND_TEXT,
    "uuid": KIND_UUID,
    "timestamp": KIND_TIMESTAMP,
    "timestamp without time zone": KIND_TIMESTAMP,
    "timestamp with time zone": KIND_TIMESTAMP,
    "timestamptz": KIND_TIMESTAMP,
    "integer": KIND_INTEGER,
    "smallint": KIND_INTEGER,
    "bigint": KIND_INTEGER,
    "json": KIND_JSON,
    "jsonb": KIND_JSONB,
}


def column_kind(pg_type: str) -> str:
    """Classify a declared PostgreSQL type into a decoder kind."""
    return PG_TYPE_KINDS.get(pg_type.lower(), KIND_OTHER)


@dataclass(frozen=True)
class ColumnInfo:
    """
    Column metadata from database introspection.

    Attributes:
        name: Column name
        pg_type: PostgreSQL data type as reported by information_schema
        ordinal_position: 1-based position of the column in its table
        is_nullable: Whether column allows NULL values
        is_primary_key: Whether column is (part of) the primary key
        default_value: Database default value expression (if any)
        referenced_table: Table this column points at, for foreign keys
        referenced_column: Column this column points at, for foreign keys
    """

    name: str
    pg_type: str
    ordinal_position: int = 0
    is_nullable: bool = True
    is_primary_key: bool = False
    default_value: str | None = None
    referenced_table: str | None = None
    referenced_column: str | None = None

    @property
    def kind(self) -> str:
        return column_kind(self.pg_type)

    @property
    def is_foreign_key(self) -> bool:
        return bool(self.referenced_table and self.referenced_column)


@dataclass(frozen=True)
class ForeignKeyInfo:
    """
    Foreign key relationship metadata.

    Attributes:
        table: Table owning the foreign key column
        column: Foreign key column name in this table
        referenced_table: Parent table being referenced
        referenced_column: Column in parent table (usually PK)
    """

    table: str
    column: str
    referenced_table: str
    referenced_column: str

    @property
    def is_self_referencing(self) -> bool:
        return self.table == self.referenced_table

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass
class TableInfo:
    """
    Table metadata.

    Attributes:
        name: Table name
        columns: Column metadata, kept sorted by ordinal position
        schema: Schema the table lives in
    """

    name: str
    columns: list[ColumnInfo]
    schema: str = "public"

    def __post_init__(self):
        self.columns = sorted(self.columns, key=lambda c: c.ordinal_position)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def foreign_keys(self) -> list[ForeignKeyInfo]:
        """Foreign keys declared on this table, in column order."""
        return [
            ForeignKeyInfo(
                table=self.name,
                column=c.name,
                referenced_table=c.referenced_table,
                referenced_column=c.referenced_column,
            )
            for c in self.columns
            if c.is_foreign_key
        ]

    @property
    def pk_column(self) -> str | None:
        """
        Get primary key column name.

        Returns:
            First primary key column name or None if no PK found
        """
        for col in self.columns:
            if col.is_primary_key:
                return col.name
        return None

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def get_column(self, name: str) -> ColumnInfo:
        """
        Get a column by name.

        Raises:
            ColumnNotFoundError: If the table has no such column
        """
        for col in self.columns:
            if col.name == name:
                return col
        raise ColumnNotFoundError(name, self.name)


class SchemaGraph:
    """
    Tables and foreign-key edges of one schema.

    Populated once (usually by SchemaIntrospector) and only read afterwards.
    Outgoing edges are stored on the columns; incoming edges are found by
    scanning every table.
    """

    def __init__(self, tables: list[TableInfo] | None = None):
        self._tables: dict[str, TableInfo] = {}
        for table in tables or []:
            self.add_table(table)

    def add_table(self, table: TableInfo) -> None:
        """
        Register a table.

        Raises:
            DuplicateTableError: If a table with this name is already registered
        """
        if table.name in self._tables:
            raise DuplicateTableError(table.name)
        self._tables[table.name] = table

    @property
    def tables(self) -> Mapping[str, TableInfo]:
        return MappingProxyType(self._tables)

    def __contains__(self, table_name: str) -> bool:
        return table_name in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def get_table(self, name: str) -> TableInfo:
        """
        Get a table by name.

        Raises:
            TableNotFoundError: If the table is not part of the graph
        """
        try:
            return self._tables[name]
        except KeyError:
            raise TableNotFoundError(name) from None

    def outgoing(self, table_name: str) -> list[ForeignKeyInfo]:
        """Foreign keys declared on a table (tables it depends on)."""
        return self.get_table(table_name).foreign_keys

    def incoming(self, table_name: str) -> list[ForeignKeyInfo]:
        """
        Foreign keys elsewhere in the graph that point at a table.

        Ordered by referencing table name, then column position, so that
        traversal order does not depend on registration order.
        """
        self.get_table(table_name)
        edges = []
        for name in sorted(self._tables):
            for fk in self._tables[name].foreign_keys:
                if fk.referenced_table == table_name:
                    edges.append(fk)
        return edges


@dataclass
class ExtractedRow:
    """
    One materialized row.

    Attributes:
        table: Table the row was read from
        columns: Column names in ordinal order
        values: Decoded value per column
        literals: SQL literal per column
        identity: Value identifying the row within its table
    """

    table: str
    columns: list[str]
    values: dict[str, Any]
    literals: dict[str, str]
    identity: Any = None

    def __getitem__(self, column: str) -> Any:
        return self.values[column]

    @property
    def literal_list(self) -> list[str]:
        return [self.literals[c] for c in self.columns]

    @property
    def value_list(self) -> list[Any]:
        return [self.values[c] for c in self.columns]


# Warning kinds recorded during an extraction
ROW_ABSENT = "row_absent"
MULTIPLE_ROWS = "multiple_rows"
UNSUPPORTED_TYPE = "unsupported_type"


@dataclass(frozen=True)
class ExtractionWarning:
    """Non-fatal condition met while traversing."""

    kind: str
    table: str
    column: str
    detail: str = ""


@dataclass
class ExtractionSession:
    """
    Mutable state of one traversal.

    Created for a single extraction call and discarded afterwards.

    Attributes:
        rows: Table name → rows in discovery order
        visited: Fetch keys (table, column, value) already issued
        identities: (table, identity) pairs already recorded
        warnings: Non-fatal conditions, in the order they happened
    """

    rows: dict[str, list[ExtractedRow]] = field(default_factory=dict)
    visited: set[tuple[str, str, str]] = field(default_factory=set)
    identities: set[tuple[str, str]] = field(default_factory=set)
    warnings: list[ExtractionWarning] = field(default_factory=list)
    fetch_count: int = 0

    def mark_visited(self, table: str, column: str, value: Any) -> bool:
        """
        Record a fetch key.

        Returns:
            False if the key had already been visited
        """
        key = (table, column, str(value))
        if key in self.visited:
            return False
        self.visited.add(key)
        return True

    def add_row(self, row: ExtractedRow) -> bool:
        """
        Record a row unless a row with the same identity was recorded before.

        Returns:
            True if the row was added
        """
        key = (row.table, repr(row.identity))
        if key in self.identities:
            return False
        self.identities.add(key)
        self.rows.setdefault(row.table, []).append(row)
        return True

    def warn(self, kind: str, table: str, column: str, detail: str = "") -> None:
        self.warnings.append(ExtractionWarning(kind, table, column, detail))

    @property
    def tables(self) -> list[str]:
        return list(self.rows)

    @property
    def row_count(self) -> int:
        return sum(len(rows) for rows in self.rows.values())
