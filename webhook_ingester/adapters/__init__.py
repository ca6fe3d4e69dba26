"""Storage adapters and the factory that selects one from configuration.

Backend modules are imported on demand, so only the chosen backend's
driver needs to be installed.
"""
import importlib
import structlog
from .base import DatabaseAdapter, DEFAULT_TABLE_NAME
from ..config import DatabaseConfig

log = structlog.get_logger()

ADAPTERS = {
    "postgres": ("webhook_ingester.adapters.postgres", "PostgresAdapter"),
    "mysql": ("webhook_ingester.adapters.mysql", "MysqlAdapter"),
    "sqlite": ("webhook_ingester.adapters.sqlite", "SqliteAdapter"),
}


def create_adapter(config: DatabaseConfig, table_name: str = "veilmail_webhook_events") -> DatabaseAdapter:
    """
    Create the adapter for the configured database type.

    Args:
        config: Database type and connection target
        table_name: Name of the events table

    Returns:
        An unconnected DatabaseAdapter

    Raises:
        ValueError: If the database type is not supported
    """
    try:
        module_name, class_name = ADAPTERS[config.type]
    except KeyError:
        raise ValueError(
            f'Unsupported database type: "{config.type}". '
            f"Supported types: {', '.join(ADAPTERS)}"
        ) from None

    adapter_cls = getattr(importlib.import_module(module_name), class_name)
    log.info("adapter.selected", type=config.type, table=table_name)
    return adapter_cls(config.url, table_name)


__all__ = ["ADAPTERS", "DatabaseAdapter", "DEFAULT_TABLE_NAME", "create_adapter"]
