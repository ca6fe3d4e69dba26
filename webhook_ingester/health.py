"""
Health check payload for the liveness endpoint.
"""
from datetime import datetime, timezone
from typing import Dict, Any


class HealthChecker:
    """
    Health checker for the webhook ingester.

    Reports process liveness only; it never queries the database, so a
    slow or failing backend cannot make the probe itself fail.
    """

    def __init__(self, database_type: str):
        self.database_type = database_type

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - basic health check.

        Returns:
            dict: Status, current UTC timestamp and active database type
        """
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "database": self.database_type,
        }
