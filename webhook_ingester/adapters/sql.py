"""SQLAlchemy Core implementation shared by the relational backends.

Each backend subclass supplies its column types, engine URL and native
conflict-ignoring insert; this module owns the engine lifecycle, the
filtered/paginated query and the row <-> event mapping.
"""
from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, List

import orjson
import structlog
from sqlalchemy import Column, Index, MetaData, Select, Table, Text, UniqueConstraint, select
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql.dml import Insert
from sqlalchemy.types import TypeEngine

from .base import DatabaseAdapter, DEFAULT_TABLE_NAME
from ..errors import DatabaseConnectionError, IngesterError, StorageError, UninitializedError
from ..event_models import QueryOptions, WebhookEvent
from ..normalizer import to_utc

log = structlog.get_logger()


def json_dumps(value: Any) -> str:
    """JSON serializer handed to SQLAlchemy for native JSON columns."""
    return orjson.dumps(value).decode("utf-8")


class SQLAlchemyAdapter(DatabaseAdapter):
    """Storage adapter backed by a SQLAlchemy ``AsyncEngine``.

    The engine (and its connection pool) is created by ``connect()`` and is
    shared by every concurrent request until ``close()``.
    """

    string_type: TypeEngine = Text()
    data_type: TypeEngine = Text()
    timestamp_type: TypeEngine = Text()
    table_options: Dict[str, Any] = {}

    def __init__(self, url: str, table_name: str = DEFAULT_TABLE_NAME):
        """
        Initialize the adapter without touching the database.

        Args:
            url: Connection string (or file path for SQLite)
            table_name: Name of the events table
        """
        self.url = url
        self.table_name = table_name
        self.metadata = MetaData()
        self.table = self._build_table(self.metadata)
        self._engine: AsyncEngine | None = None

    @abstractmethod
    def engine_url(self) -> URL:
        """Return the SQLAlchemy URL with this backend's async driver."""

    @abstractmethod
    def insert_statement(self, values: Dict[str, Any]) -> Insert:
        """Build an INSERT that silently skips rows whose event_id already exists."""

    def engine_options(self) -> Dict[str, Any]:
        return {}

    def on_engine_created(self, engine: AsyncEngine) -> None:
        pass

    def encode_timestamp(self, value: datetime) -> Any:
        return to_utc(value)

    def decode_timestamp(self, value: Any) -> datetime:
        return to_utc(value)

    def encode_data(self, value: Dict[str, Any]) -> Any:
        return value

    def decode_data(self, value: Any) -> Dict[str, Any]:
        if isinstance(value, (str, bytes, bytearray)):
            return orjson.loads(value)
        return value

    def _build_table(self, metadata: MetaData) -> Table:
        table = Table(
            self.table_name,
            metadata,
            Column("id", self.string_type, primary_key=True),
            Column("event_type", self.string_type, nullable=False),
            Column("event_id", self.string_type, nullable=False),
            Column("data", self.data_type, nullable=False),
            Column("created_at", self.timestamp_type, nullable=False),
            Column("received_at", self.timestamp_type, nullable=False),
            UniqueConstraint("event_id", name=f"uq_{self.table_name}_event_id"),
            Index(f"idx_{self.table_name}_event_type", "event_type"),
            **self.table_options,
        )
        # Attaches itself to the table through the column
        Index(f"idx_{self.table_name}_created_at", table.c.created_at.desc())
        return table

    def _parsed_url(self) -> URL:
        return make_url(self.url)

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise UninitializedError(
                f"{self.backend} adapter is not connected. Call connect() first."
            )
        return self._engine

    def _wrap_error(self, operation: str, exc: SQLAlchemyError) -> IngesterError:
        log.error(
            "storage.failed",
            backend=self.backend,
            operation=operation,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        if isinstance(exc, DBAPIError) and exc.connection_invalidated:
            return DatabaseConnectionError(
                self.backend, f"Lost connection to {self.backend} database during {operation}"
            )
        return StorageError(f"{self.backend} {operation} failed")

    async def connect(self) -> None:
        """
        Create the engine and prove it by opening one connection.

        Raises:
            DatabaseConnectionError: On a missing driver, bad URL or unreachable server
        """
        if self._engine is not None:
            return

        engine: AsyncEngine | None = None
        try:
            engine = create_async_engine(
                self.engine_url(),
                json_serializer=json_dumps,
                json_deserializer=orjson.loads,
                **self.engine_options(),
            )
            self.on_engine_created(engine)
            async with engine.connect():
                pass
        except Exception as e:
            log.error(
                "adapter.connect_failed",
                backend=self.backend,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            if engine is not None:
                await engine.dispose()
            raise DatabaseConnectionError(self.backend) from e

        self._engine = engine
        log.info("adapter.connected", backend=self.backend, table=self.table_name)

    async def create_schema(self) -> None:
        engine = self._require_engine()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(self.metadata.create_all)
        except SQLAlchemyError as e:
            raise self._wrap_error("create_schema", e) from e
        log.info("adapter.schema_ready", backend=self.backend, table=self.table_name)

    def row_values(self, event: WebhookEvent) -> Dict[str, Any]:
        """Map an event onto this backend's column representation."""
        return {
            "id": event.id,
            "event_type": event.event_type,
            "event_id": event.event_id,
            "data": self.encode_data(event.data),
            "created_at": self.encode_timestamp(event.created_at),
            "received_at": self.encode_timestamp(event.received_at),
        }

    async def insert(self, event: WebhookEvent) -> None:
        engine = self._require_engine()
        stmt = self.insert_statement(self.row_values(event))
        try:
            async with engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap_error("insert", e) from e

        log.info(
            "event.duplicate" if result.rowcount == 0 else "event.stored",
            id=event.id,
            event_id=event.event_id,
            event_type=event.event_type,
            backend=self.backend,
        )

    def build_query(self, options: QueryOptions) -> Select:
        t = self.table
        stmt = (
            select(t.c.id, t.c.event_type, t.c.event_id, t.c.data, t.c.created_at, t.c.received_at)
            .order_by(t.c.created_at.desc())
            .limit(options.limit)
            .offset(options.offset)
        )
        if options.type:
            stmt = stmt.where(t.c.event_type == options.type)
        return stmt

    async def query(self, options: QueryOptions | None = None) -> List[WebhookEvent]:
        engine = self._require_engine()
        options = options or QueryOptions()
        try:
            async with engine.connect() as conn:
                rows = (await conn.execute(self.build_query(options))).mappings().all()
        except SQLAlchemyError as e:
            raise self._wrap_error("query", e) from e

        return [
            WebhookEvent(
                id=row["id"],
                event_type=row["event_type"],
                event_id=row["event_id"],
                data=self.decode_data(row["data"]),
                created_at=self.decode_timestamp(row["created_at"]),
                received_at=self.decode_timestamp(row["received_at"]),
            )
            for row in rows
        ]

    async def close(self) -> None:
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        log.info("adapter.closed", backend=self.backend)
