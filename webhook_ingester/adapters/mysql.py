"""MySQL storage adapter (aiomysql driver)."""
from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy import insert
from sqlalchemy.dialects.mysql import DATETIME, JSON, VARCHAR
from sqlalchemy.engine import URL
from sqlalchemy.sql.dml import Insert
from .sql import SQLAlchemyAdapter
from ..normalizer import to_utc


class MysqlAdapter(SQLAlchemyAdapter):
    """MySQL implementation of the storage contract.

    DATETIME carries no zone, so instants are written as naive UTC with
    microsecond precision and re-tagged as UTC on read. Duplicate event_ids
    are skipped with ``INSERT IGNORE``.
    """

    backend = "mysql"
    string_type = VARCHAR(255)
    data_type = JSON()
    timestamp_type = DATETIME(fsp=6)
    table_options = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    def engine_url(self) -> URL:
        url = self._parsed_url().set(drivername="mysql+aiomysql")
        if "charset" not in url.query:
            url = url.update_query_dict({"charset": "utf8mb4"})
        return url

    def engine_options(self) -> Dict[str, Any]:
        return {"pool_pre_ping": True, "pool_recycle": 3600}

    def encode_timestamp(self, value: datetime) -> datetime:
        return to_utc(value).replace(tzinfo=None)

    def decode_timestamp(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return to_utc(value)

    def insert_statement(self, values: Dict[str, Any]) -> Insert:
        return insert(self.table).values(**values).prefix_with("IGNORE", dialect="mysql")
