"""PostgreSQL storage adapter (asyncpg driver)."""
from typing import Any, Dict
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, insert as pg_insert
from sqlalchemy.engine import URL
from sqlalchemy.sql.dml import Insert
from .sql import SQLAlchemyAdapter


class PostgresAdapter(SQLAlchemyAdapter):
    """PostgreSQL implementation of the storage contract.

    Payloads are stored as JSONB and timestamps as TIMESTAMPTZ. Duplicate
    event_ids are skipped with ``ON CONFLICT (event_id) DO NOTHING``.
    """

    backend = "postgres"
    data_type = JSONB()
    timestamp_type = TIMESTAMP(timezone=True)

    def engine_url(self) -> URL:
        url = self._parsed_url().set(drivername="postgresql+asyncpg")
        # asyncpg spells libpq's sslmode as ssl
        if "sslmode" in url.query:
            sslmode = url.query["sslmode"]
            url = url.difference_update_query(["sslmode"]).update_query_dict({"ssl": sslmode})
        return url

    def engine_options(self) -> Dict[str, Any]:
        return {"pool_pre_ping": True}

    def insert_statement(self, values: Dict[str, Any]) -> Insert:
        return (
            pg_insert(self.table)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["event_id"])
        )
