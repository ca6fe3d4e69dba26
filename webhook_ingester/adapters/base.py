"""Base adapter interface for webhook event storage backends."""
from abc import ABC, abstractmethod
from typing import List
from ..event_models import QueryOptions, WebhookEvent

DEFAULT_TABLE_NAME = "webhook_events"


class DatabaseAdapter(ABC):
    """Abstract interface that every storage backend implements identically."""

    backend: str = "unknown"

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the handle to the backing store.

        Must be called before any other operation.

        Raises:
            DatabaseConnectionError: If the store is unreachable or its driver is missing
        """
        pass

    @abstractmethod
    async def create_schema(self) -> None:
        """
        Create the events table and its indexes if they do not exist.

        Safe to call repeatedly; never drops or alters existing structure.
        """
        pass

    @abstractmethod
    async def insert(self, event: WebhookEvent) -> None:
        """
        Store an event, ignoring it if its event_id is already stored.

        Args:
            event: The normalized event to persist
        """
        pass

    @abstractmethod
    async def query(self, options: QueryOptions | None = None) -> List[WebhookEvent]:
        """
        Retrieve stored events, newest first.

        Args:
            options: Optional type filter and limit/offset pagination

        Returns:
            Events ordered by created_at descending
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the handle. A second call is a no-op."""
        pass
