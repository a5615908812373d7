"""Custom exceptions with helpful error messages."""


class PgSliceError(Exception):
    """Base exception for pgslice errors."""

    pass


class SchemaNotFoundError(PgSliceError):
    """Schema does not exist in database."""

    def __init__(self, schema: str):
        self.schema = schema
        super().__init__(
            f"Schema '{schema}' not found in database.\n\n"
            f"Suggestions:\n"
            f"1. Check schema name spelling\n"
            f"2. Pass the schema explicitly: pgslice extract --schema <name> ...\n"
            f"3. Check database connection settings"
        )


class TableNotFoundError(PgSliceError):
    """Table is not part of the schema graph."""

    def __init__(self, table: str, schema: str | None = None):
        self.table = table
        location = f" in schema '{schema}'" if schema else ""
        super().__init__(
            f"Table '{table}' not found{location}.\n\n"
            f"Suggestions:\n"
            f"1. Check table name spelling\n"
            f"2. Make sure the table is not listed in extraction.skip_tables\n"
            f"3. Run 'pgslice inspect' to list the tables that were discovered"
        )


class ColumnNotFoundError(PgSliceError):
    """Column does not exist on a table."""

    def __init__(self, column: str, table: str):
        self.column = column
        self.table = table
        super().__init__(
            f"Column '{column}' not found in table '{table}'.\n\n"
            f"Suggestions:\n"
            f"1. Check column name spelling\n"
            f"2. Use --column to choose the identifying column of the seed row"
        )


class DuplicateTableError(PgSliceError):
    """Two tables registered under the same name."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(
            f"Table '{table}' is already registered in the schema graph.\n\n"
            f"Suggestions:\n"
            f"1. Build a fresh SchemaGraph per extraction\n"
            f"2. Check the introspection query for duplicated table rows"
        )


class QueryFailureError(PgSliceError):
    """Underlying query execution failed."""

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(
            f"Query against table '{table}' failed: {reason}\n\n"
            f"Suggestions:\n"
            f"1. Check that the connected role can SELECT from '{table}'\n"
            f"2. Re-run with --debug to see the issued statements"
        )


class CircularDependencyError(PgSliceError):
    """Circular dependency detected in table relationships."""

    def __init__(self, tables: set[str]):
        self.tables = set(tables)
        tables_str = ", ".join(sorted(tables))
        super().__init__(
            f"Circular dependency detected involving tables: {tables_str}\n\n"
            f"Suggestions:\n"
            f"1. Check foreign key relationships for cycles\n"
            f"2. Declare one edge as deferred in pgslice.toml:\n"
            f"   [extraction]\n"
            f"   deferred_foreign_keys = [\"<table>.<column>\"]\n"
            f"3. Temporarily remove FK constraint, load data, then re-add constraint"
        )


class ExtractionCancelledError(PgSliceError):
    """Traversal aborted by cancellation or timeout."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(
            f"Extraction aborted ({reason}); no statements were produced.\n\n"
            f"Suggestions:\n"
            f"1. Increase extraction.statement_timeout or --timeout\n"
            f"2. Seed the extraction from a more specific row"
        )


class AmbiguousRowError(PgSliceError):
    """More than one row matched a lookup that requires a unique match."""

    def __init__(self, table: str, column: str, value: object):
        self.table = table
        self.column = column
        self.value = value
        super().__init__(
            f"More than one row in '{table}' has {column} = {value!r}.\n\n"
            f"Suggestions:\n"
            f"1. Seed from a unique column (usually the primary key)\n"
            f"2. Set extraction.multiple_match = \"latest\" to pick the newest row"
        )


class DecodeError(PgSliceError):
    """Raw column value could not be decoded."""

    def __init__(self, column: str, pg_type: str, reason: str):
        self.column = column
        self.pg_type = pg_type
        super().__init__(f"Could not decode column '{column}' (type: {pg_type}): {reason}")


class ConfigError(PgSliceError):
    """Configuration is missing or invalid."""

    pass
