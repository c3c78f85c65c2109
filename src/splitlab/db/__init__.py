"""Database connection and schema management."""

import os

import ibis

EXPERIMENTS_TABLE = "experiments"
ASSIGNMENTS_TABLE = "experiment_assignments"
EVENTS_TABLE = "events"

TABLE_SCHEMAS = {
    EXPERIMENTS_TABLE: ibis.schema(
        [
            ("id", "string"),
            ("name", "string"),
            ("description", "string"),
            ("status", "string"),
            # JSON array of variant names
            ("variants", "string"),
            ("goal_event", "string"),
            ("start_date", "timestamp"),
            ("end_date", "timestamp"),
            ("created_at", "timestamp"),
        ]
    ),
    ASSIGNMENTS_TABLE: ibis.schema(
        [
            ("experiment_id", "string"),
            ("user_id", "string"),
            ("variant", "string"),
            ("assigned_at", "timestamp"),
        ]
    ),
    EVENTS_TABLE: ibis.schema(
        [
            ("event_name", "string"),
            ("user_id", "string"),
            ("timestamp", "timestamp"),
            # JSON object of event properties
            ("properties", "string"),
            ("session_id", "string"),
        ]
    ),
}


def connect_to_duckdb(database: str = ":memory:", read_only: bool = False):
    """Return an Ibis connection to a DuckDB database file (or memory)."""
    return ibis.duckdb.connect(database=database, read_only=read_only)


def read_only_from_env() -> bool:
    return os.getenv("SPLITLAB_DB_READ_ONLY", "False").lower() in ("true", "1", "t")


def get_db_connection_from_env():
    """
    Returns an Ibis connection to the analytics database using environment variables.
    """
    return connect_to_duckdb(
        database=os.getenv("SPLITLAB_DB_PATH", "splitlab.duckdb"),
        read_only=read_only_from_env(),
    )


def initialize_schema(con) -> list[str]:
    """
    Ensures the experiment, assignment and event tables exist.
    This is idempotent and safe to call on every application startup.

    Returns the names of the tables that were created.
    """
    existing = set(con.list_tables())
    created = []
    for name, schema in TABLE_SCHEMAS.items():
        if name in existing:
            continue
        con.create_table(name, schema=schema)
        created.append(name)
    return created
