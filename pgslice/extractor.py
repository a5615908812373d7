"""Extractor API: seed row in, ordered INSERT statements out."""

import logging
from dataclasses import dataclass, field
from typing import Any

from psycopg import Connection

from pgslice.backends.direct import DirectBackend
from pgslice.cancellation import CancelToken
from pgslice.config import Config
from pgslice.dependency import DependencyGraph
from pgslice.emitter import InsertStatement, build_statements, render_script, render_sql
from pgslice.introspection import SchemaIntrospector
from pgslice.models import ExtractionSession, ExtractionWarning, SchemaGraph
from pgslice.traversal import Traverser

logger = logging.getLogger(__name__)


@dataclass
class Extraction:
    """
    Result of one extraction.

    Attributes:
        statements: INSERT statements, dependencies first
        order: Table names in insertion order
        warnings: Non-fatal conditions met while traversing
    """

    statements: list[InsertStatement]
    order: list[str]
    warnings: list[ExtractionWarning] = field(default_factory=list)

    def to_sql(self) -> list[str]:
        return render_sql(self.statements)

    def to_script(self, header: bool = True) -> str:
        return render_script(self.statements, header=header)

    def to_dicts(self) -> list[dict]:
        return [statement.to_dict() for statement in self.statements]

    def __len__(self) -> int:
        return len(self.statements)

    def __bool__(self) -> bool:
        return bool(self.statements)


class Extractor:
    """Declarative API for extracting a connected slice of rows."""

    def __init__(
        self,
        graph: SchemaGraph,
        backend,
        config: Config | None = None,
        schema: str | None = None,
    ):
        """
        Initialize Extractor.

        Args:
            graph: Schema graph describing the tables
            backend: Row source (DirectBackend or StagingBackend)
            config: Extraction settings (defaults apply when omitted)
            schema: Schema used to qualify emitted table names
        """
        self.graph = graph
        self.backend = backend
        self.config = config or Config()
        self.schema = schema or self.config.database.schema
        self.traverser = Traverser(
            graph,
            backend,
            primary_keys=self.config.primary_keys(),
            default_primary_key=self.config.extraction.default_primary_key,
            multiple_match=self.config.extraction.multiple_match,
        )

    @classmethod
    def from_connection(
        cls, conn: Connection, config: Config | None = None, schema: str | None = None
    ) -> "Extractor":
        """
        Build an extractor by introspecting a live database.

        Raises:
            SchemaNotFoundError: If schema doesn't exist
        """
        config = config or Config()
        schema = schema or config.database.schema
        introspector = SchemaIntrospector(
            conn, schema, skip_tables=config.extraction.skip_tables
        )
        backend = DirectBackend(
            conn, schema, statement_timeout=config.extraction.statement_timeout
        )
        return cls(introspector.build_graph(), backend, config=config, schema=schema)

    def extract(
        self,
        table: str,
        column: str,
        value: Any,
        cancel: CancelToken | None = None,
    ) -> Extraction:
        """
        Extract every row connected to the seed row.

        Args:
            table: Seed table
            column: Column identifying the seed row
            value: Value of that column
            cancel: Token to cancel or time-limit the extraction

        Returns:
            Extraction with statements in dependency order (empty when the
            seed row does not exist)

        Raises:
            TableNotFoundError: If the seed table is not in the graph
            ColumnNotFoundError: If the seed column does not exist
            QueryFailureError: If a lookup fails
            ExtractionCancelledError: If cancelled or timed out
            AmbiguousRowError: If a unique lookup matched several rows
            CircularDependencyError: If the extracted tables cannot be ordered
        """
        session = ExtractionSession()
        self.traverser.run(table, column, value, session=session, cancel=cancel)
        return self.emit(session)

    def emit(self, session: ExtractionSession) -> Extraction:
        """
        Order the tables of a finished session and build statements.

        Raises:
            CircularDependencyError: If the extracted tables cannot be ordered
        """
        if not session.rows:
            return Extraction(statements=[], order=[], warnings=list(session.warnings))

        dependencies = DependencyGraph.for_tables(
            self.graph,
            session.tables,
            deferred=self.config.extraction.deferred_foreign_keys,
        )
        order = dependencies.topological_sort()
        statements = build_statements(self.graph, session, order, schema=self.schema)

        logger.debug(f"Insert order: {', '.join(order)}")
        return Extraction(statements=statements, order=order, warnings=list(session.warnings))
