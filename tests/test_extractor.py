"""Tests for the Extractor API against the in-memory backend."""

import pytest

from conftest import MANUFACTURER_ID, MODEL_ID, VEHICLE_ID
from pgslice import Extractor, StagingBackend
from pgslice.config import Config, ExtractionConfig
from pgslice.exceptions import CircularDependencyError
from pgslice.models import ColumnInfo, SchemaGraph, TableInfo

EXPECTED_ORDER = ["manufacturer", "model", "person", "vehicle", "ownership", "rental"]


def test_statements_in_dependency_order(vehicle_graph, vehicle_backend):
    """Referenced tables are inserted before the tables pointing at them."""
    extraction = Extractor(vehicle_graph, vehicle_backend).extract("vehicle", "id", VEHICLE_ID)

    assert extraction.order == EXPECTED_ORDER
    assert [s.table for s in extraction.statements] == EXPECTED_ORDER

    position = {table: i for i, table in enumerate(extraction.order)}
    for statement in extraction.statements:
        for fk in vehicle_graph.outgoing(statement.table):
            assert position[fk.referenced_table] < position[statement.table]


def test_minimal_slice_is_three_statements():
    """A vehicle with its manufacturer and model yields three INSERTs, vehicle last."""
    graph = SchemaGraph(
        [
            TableInfo(
                name="manufacturer",
                columns=[
                    ColumnInfo(name="id", pg_type="uuid", ordinal_position=1, is_primary_key=True),
                    ColumnInfo(name="name", pg_type="text", ordinal_position=2),
                ],
            ),
            TableInfo(
                name="model",
                columns=[
                    ColumnInfo(name="id", pg_type="uuid", ordinal_position=1, is_primary_key=True),
                    ColumnInfo(name="name", pg_type="text", ordinal_position=2),
                ],
            ),
            TableInfo(
                name="vehicle",
                columns=[
                    ColumnInfo(name="id", pg_type="uuid", ordinal_position=1, is_primary_key=True),
                    ColumnInfo(
                        name="make",
                        pg_type="uuid",
                        ordinal_position=2,
                        referenced_table="manufacturer",
                        referenced_column="id",
                    ),
                    ColumnInfo(
                        name="model",
                        pg_type="uuid",
                        ordinal_position=3,
                        referenced_table="model",
                        referenced_column="id",
                    ),
                ],
            ),
        ]
    )
    backend = StagingBackend(
        {
            "manufacturer": [{"id": MANUFACTURER_ID, "name": "Saab"}],
            "model": [{"id": MODEL_ID, "name": "900"}],
            "vehicle": [{"id": VEHICLE_ID, "make": MANUFACTURER_ID, "model": MODEL_ID}],
        }
    )

    sql = Extractor(graph, backend).extract("vehicle", "id", VEHICLE_ID).to_sql()

    assert len(sql) == 3
    assert '"vehicle"' in sql[-1]
    assert f"('{VEHICLE_ID}', '{MANUFACTURER_ID}', '{MODEL_ID}')" in sql[-1]


def test_output_is_deterministic(vehicle_graph, vehicle_backend):
    extractor = Extractor(vehicle_graph, vehicle_backend)

    first = extractor.extract("vehicle", "id", VEHICLE_ID).to_script()
    second = extractor.extract("vehicle", "id", VEHICLE_ID).to_script()

    assert first == second


def test_missing_seed_gives_empty_extraction(vehicle_graph, vehicle_backend):
    extraction = Extractor(vehicle_graph, vehicle_backend).extract("person", "name", "Nobody")

    assert not extraction
    assert extraction.to_sql() == []
    assert extraction.order == []
    assert len(extraction.warnings) == 1


def _team_graph() -> SchemaGraph:
    return SchemaGraph(
        [
            TableInfo(
                name="employee",
                columns=[
                    ColumnInfo(name="id", pg_type="integer", ordinal_position=1, is_primary_key=True),
                    ColumnInfo(
                        name="team", pg_type="integer", ordinal_position=2, referenced_table="team", referenced_column="id"
                    ),
                ],
            ),
            TableInfo(
                name="team",
                columns=[
                    ColumnInfo(name="id", pg_type="integer", ordinal_position=1, is_primary_key=True),
                    ColumnInfo(
                        name="lead",
                        pg_type="integer",
                        ordinal_position=2,
                        referenced_table="employee",
                        referenced_column="id",
                    ),
                ],
            ),
        ]
    )


def _team_backend() -> StagingBackend:
    return StagingBackend({"employee": [{"id": 1, "team": 10}], "team": [{"id": 10, "lead": 1}]})


def test_cycle_between_extracted_tables_fails():
    with pytest.raises(CircularDependencyError) as exc_info:
        Extractor(_team_graph(), _team_backend()).extract("employee", "id", 1)

    assert exc_info.value.tables == {"employee", "team"}


def test_deferred_foreign_key_breaks_cycle():
    config = Config(extraction=ExtractionConfig(deferred_foreign_keys=["team.lead"]))

    extraction = Extractor(_team_graph(), _team_backend(), config=config).extract("employee", "id", 1)

    assert extraction.order == ["team", "employee"]


def test_to_dicts(vehicle_graph, vehicle_backend):
    dicts = Extractor(vehicle_graph, vehicle_backend).extract("vehicle", "id", VEHICLE_ID).to_dicts()

    assert [d["table"] for d in dicts] == EXPECTED_ORDER
    person = dicts[2]
    assert person["columns"] == ["id", "name"]
    assert person["rows"][0][1] == "'O''Brien'"


def test_configured_schema_qualifies_output(vehicle_graph, vehicle_backend):
    extraction = Extractor(vehicle_graph, vehicle_backend, schema="fleet").extract("vehicle", "id", VEHICLE_ID)

    assert all('INTO "fleet".' in sql for sql in extraction.to_sql())


def test_replay_into_staging(vehicle_graph, vehicle_backend):
    """Replaying an extraction reproduces the connected rows elsewhere."""
    extraction = Extractor(vehicle_graph, vehicle_backend).extract("vehicle", "id", VEHICLE_ID)
    target = StagingBackend()

    inserted = target.replay(extraction.statements)

    assert inserted == 6
    assert target.get_data("vehicle")[0]["id"] == VEHICLE_ID
    assert target.get_data("person")[0]["name"] == "O'Brien"
