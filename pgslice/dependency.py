"""Dependency graph and insertion ordering."""

import heapq
import logging
from collections import defaultdict
from collections.abc import Iterable

from pgslice.exceptions import CircularDependencyError
from pgslice.models import ForeignKeyInfo, SchemaGraph

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed graph for table dependencies."""

    def __init__(self):
        self._graph: dict[str, set[str]] = defaultdict(set)
        self._tables: set[str] = set()
        self.dropped: list[ForeignKeyInfo] = []

    @classmethod
    def for_tables(
        cls,
        schema: SchemaGraph,
        tables: Iterable[str],
        deferred: Iterable[str] = (),
    ) -> "DependencyGraph":
        """
        Build the graph induced by a set of populated tables.

        Edges pointing outside the set are dropped (and kept in ``dropped``),
        self-references never constrain order, and foreign keys listed in
        ``deferred`` as "table.column" are ignored.

        Args:
            schema: Schema graph holding the foreign keys
            tables: Names of the tables that will be emitted
            deferred: Foreign keys excluded from ordering
        """
        graph = cls()
        table_set = set(tables)
        deferred_set = set(deferred)

        for table in sorted(table_set):
            graph.add_table(table)
            for fk in schema.outgoing(table):
                if fk.is_self_referencing or fk.qualified_name in deferred_set:
                    continue
                if fk.referenced_table not in table_set:
                    logger.debug(
                        f"Dropping ordering edge {fk.qualified_name} -> "
                        f"{fk.referenced_table}: no rows extracted for target"
                    )
                    graph.dropped.append(fk)
                    continue
                graph.add_dependency(table, fk.referenced_table)

        return graph

    def add_table(self, table: str) -> None:
        """Add a table to the graph."""
        self._tables.add(table)
        if table not in self._graph:
            self._graph[table] = set()

    def add_dependency(self, table: str, depends_on: str) -> None:
        """Add a dependency: table depends on depends_on."""
        self._tables.add(table)
        self._tables.add(depends_on)
        self._graph[table].add(depends_on)
        if depends_on not in self._graph:
            self._graph[depends_on] = set()

    def topological_sort(self) -> list[str]:
        """
        Sort tables in dependency order using Kahn's algorithm.

        Among tables that are ready at the same time, the one with the
        smallest name comes first, so the order is deterministic.

        Returns:
            Tables in order such that dependencies come before dependents.

        Raises:
            CircularDependencyError: If circular dependency detected
        """
        # in-degree = number of unresolved dependencies of each table
        in_degree: dict[str, int] = {
            table: len(self._graph[table] - {table}) for table in self._tables
        }

        dependents: dict[str, set[str]] = defaultdict(set)
        for table in self._tables:
            for dep in self._graph[table]:
                if dep != table:
                    dependents[dep].add(table)

        ready = [table for table in self._tables if in_degree[table] == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            table = heapq.heappop(ready)
            result.append(table)

            for other_table in dependents[table]:
                in_degree[other_table] -= 1
                if in_degree[other_table] == 0:
                    heapq.heappush(ready, other_table)

        # Check for cycles
        if len(result) != len(self._tables):
            missing = self._tables - set(result)
            raise CircularDependencyError(missing)

        return result
