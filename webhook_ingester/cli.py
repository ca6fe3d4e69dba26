"""
Command-line entry point.

Usage:
    webhook-ingester [--config PATH]

Configuration comes from the optional JSON file, then environment
variables (PORT, WEBHOOK_SECRET, DATABASE_TYPE, DATABASE_URL, TABLE_NAME),
then defaults.
"""
import argparse
import asyncio
import sys
from .adapters import create_adapter
from .config import Settings, load_settings
from .errors import IngesterError
from .logging import get_logger, setup_logging
from .server import IngesterServer

logger = get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="webhook-ingester",
        description="Receive VeilMail webhook events and store them in your database.",
    )
    parser.add_argument("-c", "--config", help="Path to a JSON config file")
    return parser.parse_args(argv)


async def run(settings: Settings) -> None:
    """Connect storage, ensure the schema and serve until shutdown."""
    adapter = create_adapter(settings.database, settings.TABLE_NAME)

    logger.info("database.connecting", database=settings.DATABASE_TYPE)
    await adapter.connect()
    try:
        await adapter.create_schema()
    except IngesterError:
        await adapter.close()
        raise

    server = IngesterServer(settings, adapter)
    base_url = f"http://localhost:{settings.PORT}"
    logger.info(
        "service_ready",
        port=settings.PORT,
        table=settings.TABLE_NAME,
        webhook_endpoint=f"POST {base_url}/webhook",
        events_endpoint=f"GET {base_url}/events",
        health_endpoint=f"GET {base_url}/health",
    )
    await server.serve()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        setup_logging()
        logger.error("config.invalid", config_path=args.config, error=str(e))
        return 1

    setup_logging(json_output=settings.LOG_JSON, level=settings.LOG_LEVEL)

    try:
        asyncio.run(run(settings))
    except IngesterError as e:
        logger.error("startup.failed", error=str(e), cause=str(e.__cause__))
        return 1
    except KeyboardInterrupt:
        pass

    logger.info("service_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
