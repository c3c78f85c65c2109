"""Database subcommand for the CLI."""

import json

import click

from splitlab.db import connect_to_duckdb, initialize_schema

database_option = click.option(
    "--database",
    envvar="SPLITLAB_DB_PATH",
    default="splitlab.duckdb",
    show_default=True,
    help="Path to the DuckDB database file.",
)


def _schema_info(table) -> list[dict]:
    return [
        {
            "column_name": name,
            "column_type": str(dtype),
            "nullable": dtype.nullable,
        }
        for name, dtype in table.schema().items()
    ]


@click.group(name="db")
def db_cli():
    """Commands for database schema management."""
    pass


@db_cli.command(name="init")
@database_option
def init_db(database):
    """Create the experiment, assignment and event tables if they are missing."""
    conn = connect_to_duckdb(database)
    created = initialize_schema(conn)
    if created:
        click.echo(f"Created tables: {', '.join(created)}", err=True)

    # dump the existing schema to stdout
    schema_info = {
        table_name: _schema_info(conn.table(table_name))
        for table_name in conn.list_tables()
    }
    click.echo(json.dumps(schema_info, indent=2))


@db_cli.command(name="list-tables")
@database_option
def list_tables(database):
    """List all tables in the database."""
    conn = connect_to_duckdb(database)
    click.echo(json.dumps(conn.list_tables(), indent=2))


@db_cli.command(name="inspect")
@database_option
@click.option("--table-name", required=True, help="Name of the table to inspect.")
def inspect_table(database, table_name):
    """Inspect the schema and row count of a table."""
    conn = connect_to_duckdb(database)
    if table_name not in conn.list_tables():
        click.echo(
            json.dumps({"error": f"Table '{table_name}' not found."}),
            err=True,
        )
        raise SystemExit(1)

    table = conn.table(table_name)
    output = {
        "table_name": table_name,
        "row_count": int(table.count().execute()),
        "schema": _schema_info(table),
    }
    click.echo(json.dumps(output, indent=2))
