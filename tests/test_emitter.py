"""Tests for INSERT statement rendering."""

from pgslice.decoder import RowDecoder
from pgslice.emitter import HEADER, InsertStatement, build_statements, render_script
from pgslice.models import ColumnInfo, ExtractionSession, TableInfo

PERSON = TableInfo(
    name="person",
    columns=[
        ColumnInfo(name="id", pg_type="integer", ordinal_position=1, is_primary_key=True),
        ColumnInfo(name="name", pg_type="text", ordinal_position=2),
        ColumnInfo(name="nickname", pg_type="text", ordinal_position=3),
    ],
)


def _statement(*raw_rows: dict, schema: str = "public") -> InsertStatement:
    decoder = RowDecoder(PERSON, identity_column="id")
    return InsertStatement(schema=schema, table_info=PERSON, rows=[decoder.decode(r) for r in raw_rows])


def test_single_row_layout():
    """Keywords, target and values each go on their own line."""
    statement = _statement({"id": 1, "name": "Ann", "nickname": None})

    assert statement.to_sql() == (
        'INSERT\nINTO "public"."person"("id","name","nickname")\nVALUES\n(1, \'Ann\', NULL)\n;'
    )


def test_multiple_rows_share_one_statement():
    statement = _statement(
        {"id": 1, "name": "Ann", "nickname": None},
        {"id": 2, "name": "O'Brien", "nickname": "OB"},
    )

    assert statement.to_sql().splitlines()[3:] == [
        "(1, 'Ann', NULL),",
        "(2, 'O''Brien', 'OB')",
        ";",
    ]


def test_schema_qualifies_target():
    statement = _statement({"id": 1, "name": "Ann", "nickname": None}, schema="crm")
    assert 'INTO "crm"."person"' in statement.to_sql()


def test_to_dict():
    statement = _statement({"id": 3, "name": "Bo", "nickname": None})

    assert statement.to_dict() == {
        "table": "person",
        "columns": ["id", "name", "nickname"],
        "rows": [["3", "'Bo'", "NULL"]],
    }
    assert statement.values == [[3, "Bo", None]]


def test_build_statements_follows_order_and_skips_empty_tables(vehicle_graph):
    decoder = RowDecoder(vehicle_graph.get_table("model"), identity_column="id")
    session = ExtractionSession()
    session.add_row(decoder.decode({"id": "22222222-2222-4222-8222-222222222222", "name": "900"}))

    statements = build_statements(vehicle_graph, session, ["manufacturer", "model"], schema="fleet")

    assert [s.table for s in statements] == ["model"]
    assert statements[0].schema == "fleet"


def test_render_script():
    first = _statement({"id": 1, "name": "Ann", "nickname": None})
    second = _statement({"id": 2, "name": "Bo", "nickname": None})

    script = render_script([first, second])

    assert script.startswith(HEADER)
    assert script == HEADER + first.to_sql() + "\n\n" + second.to_sql() + "\n"
    assert render_script([first], header=False) == first.to_sql() + "\n"


def test_render_empty_script():
    assert render_script([]) == HEADER
    assert render_script([], header=False) == ""
