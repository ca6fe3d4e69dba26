"""Tests for backend-specific SQL, URLs and column mappings.

These compile statements against each SQLAlchemy dialect, so they need
neither a running server nor the async driver packages.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import pytest
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable
from webhook_ingester.adapters import create_adapter
from webhook_ingester.adapters.mysql import MysqlAdapter
from webhook_ingester.adapters.postgres import PostgresAdapter
from webhook_ingester.adapters.sqlite import SqliteAdapter
from webhook_ingester.config import DatabaseConfig
from webhook_ingester.event_models import QueryOptions, WebhookEvent

EVENT = WebhookEvent(
    id="rec_1",
    event_type="email.delivered",
    event_id="evt_1",
    data={"type": "email.delivered", "id": "evt_1"},
    created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    received_at=datetime(2024, 5, 1, 12, 0, 5, tzinfo=timezone.utc),
)


def compile_sql(clause, dialect) -> str:
    return " ".join(str(clause.compile(dialect=dialect)).split())


def test_postgres_insert_uses_on_conflict_do_nothing():
    """PostgreSQL skips duplicates with ON CONFLICT on event_id."""
    adapter = PostgresAdapter("postgresql://u:p@localhost/db")
    sql = compile_sql(adapter.insert_statement(adapter.row_values(EVENT)), postgresql.dialect())

    assert sql.startswith("INSERT INTO webhook_events")
    assert "ON CONFLICT (event_id) DO NOTHING" in sql


def test_mysql_insert_uses_insert_ignore():
    """MySQL skips duplicates with INSERT IGNORE."""
    adapter = MysqlAdapter("mysql://u:p@localhost/db")
    sql = compile_sql(adapter.insert_statement(adapter.row_values(EVENT)), mysql.dialect())

    assert sql.startswith("INSERT IGNORE INTO webhook_events")


def test_sqlite_insert_uses_on_conflict_do_nothing():
    """SQLite skips duplicates with ON CONFLICT on event_id."""
    adapter = SqliteAdapter("events.db")
    sql = compile_sql(adapter.insert_statement(adapter.row_values(EVENT)), sqlite.dialect())

    assert "ON CONFLICT (event_id) DO NOTHING" in sql


def test_postgres_schema_uses_native_types():
    """PostgreSQL stores data as JSONB and timestamps as TIMESTAMPTZ."""
    ddl = compile_sql(CreateTable(PostgresAdapter("postgresql://localhost/db").table), postgresql.dialect())

    assert "CREATE TABLE webhook_events" in ddl
    assert "data JSONB NOT NULL" in ddl
    assert "created_at TIMESTAMP WITH TIME ZONE NOT NULL" in ddl
    assert "received_at TIMESTAMP WITH TIME ZONE NOT NULL" in ddl
    assert "PRIMARY KEY (id)" in ddl
    assert "UNIQUE (event_id)" in ddl


def test_mysql_schema_uses_native_types():
    """MySQL stores data as JSON and timestamps as microsecond DATETIME on InnoDB."""
    ddl = compile_sql(CreateTable(MysqlAdapter("mysql://localhost/db").table), mysql.dialect())

    assert "event_id VARCHAR(255) NOT NULL" in ddl
    assert "data JSON NOT NULL" in ddl
    assert "created_at DATETIME(6) NOT NULL" in ddl
    assert "UNIQUE (event_id)" in ddl
    assert "ENGINE=InnoDB" in ddl
    assert "CHARSET=utf8mb4" in ddl


def test_sqlite_schema_uses_text_columns():
    """SQLite stores data and timestamps as TEXT."""
    ddl = compile_sql(CreateTable(SqliteAdapter("events.db").table), sqlite.dialect())

    assert "data TEXT NOT NULL" in ddl
    assert "created_at TEXT NOT NULL" in ddl
    assert "UNIQUE (event_id)" in ddl


@pytest.mark.parametrize(
    "adapter,dialect",
    [
        (PostgresAdapter("postgresql://localhost/db"), postgresql.dialect()),
        (MysqlAdapter("mysql://localhost/db"), mysql.dialect()),
        (SqliteAdapter("events.db"), sqlite.dialect()),
    ],
)
def test_indexes_on_event_type_and_created_at_desc(adapter, dialect):
    """Every backend indexes event_type and created_at (descending)."""
    indexes = {index.name: index for index in adapter.table.indexes}

    assert set(indexes) == {"idx_webhook_events_event_type", "idx_webhook_events_created_at"}
    created_at_ddl = compile_sql(CreateIndex(indexes["idx_webhook_events_created_at"]), dialect)
    assert "(created_at DESC)" in created_at_ddl


def test_table_name_is_quoted_per_dialect():
    """Unusual table names are quoted with each dialect's identifier rules."""
    pg = PostgresAdapter("postgresql://localhost/db", table_name="veilmail-events")
    my = MysqlAdapter("mysql://localhost/db", table_name="veilmail-events")

    assert 'INSERT INTO "veilmail-events"' in compile_sql(pg.insert_statement(pg.row_values(EVENT)), postgresql.dialect())
    assert "INSERT IGNORE INTO `veilmail-events`" in compile_sql(my.insert_statement(my.row_values(EVENT)), mysql.dialect())


def test_query_filters_orders_and_paginates():
    """The list query filters on event_type, orders newest first and pages."""
    adapter = PostgresAdapter("postgresql://localhost/db")
    stmt = adapter.build_query(QueryOptions(type="email.bounced", limit=2, offset=2))
    sql = compile_sql(stmt, postgresql.dialect())

    assert "WHERE webhook_events.event_type =" in sql
    assert "ORDER BY webhook_events.created_at DESC LIMIT" in sql
    assert "OFFSET" in sql

    params = stmt.compile(dialect=postgresql.dialect()).params
    assert sorted(params.values(), key=str) == [2, 2, "email.bounced"]


def test_query_without_type_has_no_where_clause():
    adapter = SqliteAdapter("events.db")
    sql = compile_sql(adapter.build_query(QueryOptions()), sqlite.dialect())

    assert "WHERE" not in sql


def test_postgres_url_uses_asyncpg():
    """postgres:// URLs get the asyncpg driver and sslmode becomes ssl."""
    url = PostgresAdapter("postgres://user:pw@db.example.com:5432/events?sslmode=require").engine_url()

    assert url.drivername == "postgresql+asyncpg"
    assert url.host == "db.example.com"
    assert url.database == "events"
    assert url.query == {"ssl": "require"}


def test_mysql_url_uses_aiomysql_with_utf8mb4():
    url = MysqlAdapter("mysql://user:pw@db.example.com/events").engine_url()

    assert url.drivername == "mysql+aiomysql"
    assert url.query["charset"] == "utf8mb4"


@pytest.mark.parametrize(
    "target,database",
    [
        ("./data/events.db", "./data/events.db"),
        ("/var/lib/ingester/events.db", "/var/lib/ingester/events.db"),
        ("sqlite:///events.db", "events.db"),
        (":memory:", ":memory:"),
    ],
)
def test_sqlite_url_accepts_paths_and_urls(target, database):
    url = SqliteAdapter(target).engine_url()

    assert url.drivername == "sqlite+aiosqlite"
    assert url.database == database


def test_mysql_timestamps_are_naive_utc():
    """MySQL DATETIME values are written as naive UTC and read back as aware UTC."""
    adapter = MysqlAdapter("mysql://localhost/db")
    aware = datetime(2024, 5, 1, 14, 0, 0, 123456, tzinfo=timezone(timedelta(hours=2)))

    encoded = adapter.encode_timestamp(aware)
    assert encoded == datetime(2024, 5, 1, 12, 0, 0, 123456)
    assert adapter.decode_timestamp(encoded) == aware


def test_sqlite_timestamps_are_fixed_width_utc_text():
    """SQLite timestamps are fixed-width ISO strings so text order is time order."""
    adapter = SqliteAdapter("events.db")
    value = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    encoded = adapter.encode_timestamp(value)
    assert encoded == "2024-05-01T12:00:00.000000Z"
    assert adapter.decode_timestamp(encoded) == value
    assert adapter.encode_timestamp(value + timedelta(microseconds=1)) > encoded


def test_sqlite_data_is_serialized_json_text():
    adapter = SqliteAdapter("events.db")
    encoded = adapter.encode_data({"a": [1, 2], "b": "ü"})

    assert isinstance(encoded, str)
    assert adapter.decode_data(encoded) == {"a": [1, 2], "b": "ü"}


def test_decode_data_passes_through_native_documents():
    """Drivers that already decoded JSON are returned unchanged."""
    adapter = PostgresAdapter("postgresql://localhost/db")
    assert adapter.decode_data({"already": "decoded"}) == {"already": "decoded"}
    assert adapter.decode_data('{"as": "text"}') == {"as": "text"}


@pytest.mark.parametrize(
    "db_type,adapter_cls",
    [("postgres", PostgresAdapter), ("mysql", MysqlAdapter), ("sqlite", SqliteAdapter)],
)
def test_create_adapter_selects_backend(db_type, adapter_cls):
    adapter = create_adapter(DatabaseConfig(type=db_type, url="target"), table_name="events")

    assert isinstance(adapter, adapter_cls)
    assert adapter.table_name == "events"
    assert adapter.url == "target"


def test_create_adapter_default_table_name():
    adapter = create_adapter(DatabaseConfig(type="sqlite", url="events.db"))
    assert adapter.table_name == "veilmail_webhook_events"


def test_create_adapter_rejects_unknown_type():
    with pytest.raises(ValueError, match="Supported types: postgres, mysql, sqlite"):
        create_adapter(SimpleNamespace(type="oracle", url="x"))
