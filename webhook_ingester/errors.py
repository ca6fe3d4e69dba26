"""Error taxonomy for the webhook ingester.

Each error carries the HTTP status and the public message the router
returns for it. The public message never includes backend details; the
underlying cause stays on ``__cause__`` and in server-side logs.
"""


class IngesterError(Exception):
    """Base exception for ingester failures"""

    status_code = 500
    public_message = "Internal server error"


class AuthenticationError(IngesterError):
    """Raised when a webhook signature is missing or invalid"""

    status_code = 401
    public_message = "Invalid webhook signature"


class ValidationError(IngesterError):
    """Raised when a webhook body is not a JSON object"""

    status_code = 400
    public_message = "Invalid JSON payload"


class UninitializedError(IngesterError):
    """Raised when an adapter is used before connect() or after close()"""


class DatabaseConnectionError(IngesterError):
    """Raised when the backing store is unreachable or its driver is missing"""

    def __init__(self, backend: str, message: str | None = None):
        self.backend = backend
        super().__init__(message or f"Failed to connect to {backend} database")


class StorageError(IngesterError):
    """Raised when an insert or query fails in the backing store"""
