"""CLI commands for pgslice."""

import json
import logging
import sys
from pathlib import Path

import click
import psycopg

from pgslice.cancellation import CancelToken
from pgslice.config import Config, TableConfig
from pgslice.exceptions import PgSliceError
from pgslice.extractor import Extractor
from pgslice.introspection import SchemaIntrospector
from pgslice.models import ROW_ABSENT


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _load_config(config_path: str | None) -> Config:
    if config_path:
        return Config.from_toml(config_path)
    try:
        return Config.find_and_load()
    except FileNotFoundError:
        return Config()


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="pgslice")
def cli() -> None:
    """pgslice - extract a foreign-key connected slice of a PostgreSQL database."""
    pass


@cli.command()
@click.argument("table")
@click.argument("value")
@click.option("--column", default=None, help="Column identifying the seed row (default: primary key)")
@click.option("--database-url", envvar="DATABASE_URL", help="Database URL to connect to")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to pgslice.toml")
@click.option("--schema", default=None, help="Schema to extract from (default: from config)")
@click.option("--output", "-o", default="generated.sql", show_default=True, help="Output file, '-' for stdout")
@click.option("--format", "output_format", type=click.Choice(["sql", "json"]), default="sql", show_default=True)
@click.option("--timeout", type=float, default=None, help="Abort the extraction after N seconds")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def extract(
    table: str,
    value: str,
    column: str | None,
    database_url: str | None,
    config_path: str | None,
    schema: str | None,
    output: str,
    output_format: str,
    timeout: float | None,
    debug: bool,
) -> None:
    """Extract the rows connected to TABLE.COLUMN = VALUE as INSERT statements."""
    _setup_logging(debug)

    try:
        config = _load_config(config_path)
    except (FileNotFoundError, PgSliceError) as e:
        _fail(str(e))

    url = database_url or config.database.url
    if not url:
        _fail("--database-url (or DATABASE_URL environment variable) must be set")

    try:
        with psycopg.connect(url) as conn:
            extractor = Extractor.from_connection(conn, config=config, schema=schema)
            seed_column = column or extractor.traverser.identity_column(
                extractor.graph.get_table(table)
            )
            if seed_column is None:
                _fail(f"Table '{table}' has no primary key; pass --column")
            result = extractor.extract(table, seed_column, value, cancel=CancelToken(timeout))
    except PgSliceError as e:
        _fail(str(e))
    except psycopg.Error as e:
        _fail(f"Database error: {e}")
    except KeyboardInterrupt:
        click.echo("Error: interrupted; no output written", err=True)
        sys.exit(130)

    for warning in result.warnings:
        if warning.kind != ROW_ABSENT:
            click.echo(f"Warning: {warning.kind} {warning.table}.{warning.column} {warning.detail}", err=True)

    if output_format == "json":
        text = json.dumps(result.to_dicts(), indent=2) + "\n"
    else:
        text = result.to_script()

    if output == "-":
        click.echo(text, nl=False)
    else:
        Path(output).write_text(text)
        click.echo(f"Wrote {len(result)} statement(s) to {output}", err=True)


@cli.command()
@click.argument("schema", required=False)
@click.option("--database-url", envvar="DATABASE_URL", help="Database URL to connect to")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to pgslice.toml")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def inspect(schema: str | None, database_url: str | None, config_path: str | None, debug: bool) -> None:
    """Inspect SCHEMA and print an example pgslice.toml for it."""
    _setup_logging(debug)

    try:
        config = _load_config(config_path)
    except (FileNotFoundError, PgSliceError) as e:
        _fail(str(e))

    if schema is None:
        schema = config.database.schema
        click.echo(f"Assuming schema \"{schema}\" (pass the schema name as the first argument to override)", err=True)

    url = database_url or config.database.url
    if not url:
        _fail("--database-url (or DATABASE_URL environment variable) must be set")

    try:
        with psycopg.connect(url) as conn:
            introspector = SchemaIntrospector(conn, schema, skip_tables=config.extraction.skip_tables)
            graph = introspector.build_graph()
    except PgSliceError as e:
        _fail(str(e))
    except psycopg.Error as e:
        _fail(f"Unable to inspect schema: {e}")

    if len(graph) == 0:
        _fail(f"No tables found in schema {schema}")

    config.database.schema = schema
    for name, table in graph.tables.items():
        existing = config.tables.get(name)
        primary_key = (existing and existing.primary_key) or table.pk_column
        config.tables[name] = TableConfig(primary_key=primary_key)

    click.echo("# An example configuration for the provided database follows.")
    click.echo("# You may need to edit this to suit your needs.\n")
    click.echo(config.to_toml(), nl=False)

    click.echo("\n# Foreign keys:")
    for name in sorted(graph.tables):
        for fk in graph.outgoing(name):
            click.echo(f"#   {fk.qualified_name} -> {fk.referenced_table}.{fk.referenced_column}")


if __name__ == "__main__":
    cli()
