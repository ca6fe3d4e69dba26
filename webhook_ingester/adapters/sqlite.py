"""SQLite storage adapter (aiosqlite driver)."""
from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy import event
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.dml import Insert
from .base import DEFAULT_TABLE_NAME
from .sql import SQLAlchemyAdapter, json_dumps
from ..normalizer import to_utc

MEMORY_DATABASE = ":memory:"


class SqliteAdapter(SQLAlchemyAdapter):
    """Embedded file-backed implementation of the storage contract.

    SQLite has no native timestamp or JSON column, so both are stored as
    TEXT: payloads as serialized JSON and instants as fixed-width UTC
    ISO-8601 strings, which sort chronologically as text.
    """

    backend = "sqlite"

    def __init__(self, url: str, table_name: str = DEFAULT_TABLE_NAME, busy_timeout: float = 30.0):
        """
        Initialize the adapter.

        Args:
            url: File path, ``sqlite:///`` URL or ``:memory:``
            table_name: Name of the events table
            busy_timeout: Seconds a writer waits on a locked database
        """
        super().__init__(url, table_name)
        self.busy_timeout = busy_timeout

    def engine_url(self) -> URL:
        if self.url.startswith("sqlite"):
            return self._parsed_url().set(drivername="sqlite+aiosqlite")
        return URL.create("sqlite+aiosqlite", database=self.url)

    @property
    def in_memory(self) -> bool:
        return self.engine_url().database in (None, "", MEMORY_DATABASE)

    def engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"connect_args": {"timeout": self.busy_timeout}}
        if self.in_memory:
            # Every new connection to :memory: would be a fresh, empty database
            options["poolclass"] = StaticPool
        return options

    def on_engine_created(self, engine: AsyncEngine) -> None:
        if self.in_memory:
            return

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_wal(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    def encode_timestamp(self, value: datetime) -> str:
        return to_utc(value).replace(tzinfo=None).isoformat(timespec="microseconds") + "Z"

    def decode_timestamp(self, value: Any) -> datetime:
        if isinstance(value, str):
            return datetime.fromisoformat(value.rstrip("Z")).replace(tzinfo=timezone.utc)
        return to_utc(value)

    def encode_data(self, value: Dict[str, Any]) -> str:
        return json_dumps(value)

    def insert_statement(self, values: Dict[str, Any]) -> Insert:
        return (
            sqlite_insert(self.table)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["event_id"])
        )
